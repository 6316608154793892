"""
Service Container Exceptions.

This module defines custom exceptions for the service container and the
auto-load machinery.
"""

class ServiceRegistryError(Exception):
    """Base exception for all service container errors."""
    pass


class InvalidNameError(ServiceRegistryError):
    """Raised when a service name is not a non-empty string."""
    def __init__(self, service_name):
        super().__init__(
            f"Service names must be non-empty strings. Service: {service_name!r} is not valid."
        )
        self.service_name = service_name


class DuplicateServiceError(ServiceRegistryError):
    """Raised when a service name is already registered."""
    def __init__(self, service_name, hint=None):
        message = f"Service {service_name} is already registered."
        if hint:
            message += f" {hint}"
        super().__init__(message)
        self.service_name = service_name


class ServiceNotFoundError(ServiceRegistryError):
    """Raised when a requested service is not registered."""
    def __init__(self, service_name, message=None):
        super().__init__(message or f"Service not found: {service_name}")
        self.service_name = service_name


class NotRegisteredError(ServiceNotFoundError):
    """Raised by resolve() for an unknown service name."""
    def __init__(self, service_name):
        super().__init__(service_name, f"Service {service_name} has not been registered.")


class NotFoundError(ServiceNotFoundError):
    """Raised by dispose() for an unknown service name."""
    def __init__(self, service_name):
        super().__init__(service_name, f"Service {service_name} does not exist.")


class ServiceConstructionError(ServiceRegistryError):
    """Raised when a service fails to instantiate."""
    def __init__(self, service_name, reason=None):
        message = f"Error creating service: {service_name}"
        if reason:
            message += f" - {reason}"
        super().__init__(message)
        self.service_name = service_name
        self.reason = reason


class ServiceDisposalError(ServiceRegistryError):
    """Raised when a service disposer fails."""
    def __init__(self, service_name, reason=None):
        message = f"Service disposal failed: {service_name}"
        if reason:
            message += f" - {reason}"
        super().__init__(message)
        self.service_name = service_name
        self.reason = reason


class InvalidModuleError(ServiceRegistryError):
    """Raised when an auto-loaded module does not export a valid service."""
    def __init__(self, module_id, reason=None):
        message = f"{module_id} does not export a valid service module."
        if reason:
            message += f" {reason}"
        super().__init__(message)
        self.module_id = module_id
        self.reason = reason


class LoaderError(ServiceRegistryError):
    """Base exception for module loader failures."""
    pass


class DirectoryEnumerationError(LoaderError):
    """Raised when a module source cannot be listed."""
    def __init__(self, source, reason=None):
        message = f"Cannot enumerate service modules in: {source}"
        if reason:
            message += f" - {reason}"
        super().__init__(message)
        self.source = source
        self.reason = reason


class ModuleLoadError(LoaderError):
    """Raised when a service module fails to import."""
    def __init__(self, module_id, reason=None):
        message = f"Failed to load service module: {module_id}"
        if reason:
            message += f" - {reason}"
        super().__init__(message)
        self.module_id = module_id
        self.reason = reason
