"""
Service Container Package.

This package provides an asyncio service registry: register named
services, resolve them on demand, dispose of them on command, and
auto-load service modules from a directory.

Core components:
- ServiceContainer: Registry of named services
- ServiceDescriptor: Immutable description of a service to register
- DirectoryModuleLoader: Filesystem loader used by auto-load
- ContainerConfig / ConfigManager: Construction-time settings
"""

from .config import (
    AutoLoadConfig,
    ConfigManager,
    ContainerConfig,
    LoggingConfig,
    load_config
)

from .container import (
    ServiceContainer,
    get_container
)

from .descriptor import (
    FactoryKind,
    LoggingPolicy,
    RegistryEntry,
    ServiceDescriptor
)

from .loader import (
    DirectoryModuleLoader,
    ServiceLoader
)

from .exceptions import (
    ServiceRegistryError,
    InvalidNameError,
    DuplicateServiceError,
    ServiceNotFoundError,
    NotRegisteredError,
    NotFoundError,
    ServiceConstructionError,
    ServiceDisposalError,
    InvalidModuleError,
    LoaderError,
    DirectoryEnumerationError,
    ModuleLoadError
)

__all__ = [
    # Container
    'ServiceContainer',
    'get_container',

    # Descriptors
    'FactoryKind',
    'LoggingPolicy',
    'RegistryEntry',
    'ServiceDescriptor',

    # Loading
    'DirectoryModuleLoader',
    'ServiceLoader',

    # Configuration
    'AutoLoadConfig',
    'ConfigManager',
    'ContainerConfig',
    'LoggingConfig',
    'load_config',

    # Exceptions
    'ServiceRegistryError',
    'InvalidNameError',
    'DuplicateServiceError',
    'ServiceNotFoundError',
    'NotRegisteredError',
    'NotFoundError',
    'ServiceConstructionError',
    'ServiceDisposalError',
    'InvalidModuleError',
    'LoaderError',
    'DirectoryEnumerationError',
    'ModuleLoadError'
]
