"""
Service Container.

This module provides the ServiceContainer, which stores named services,
resolves them on demand, disposes of them on command, and auto-loads
service modules from a directory.

Concurrency:
    All operations are coroutines run on one event loop. Registration is a
    "check name absent, then store" sequence that may suspend in between
    (awaitable factory results), so two concurrent register() calls for the
    same name can both pass the duplicate check and the last one wins. Set
    ContainerConfig.serialize_mutations to run register, dispose,
    dispose_all, upsert and auto_load one at a time. Hooks must not call
    those operations on the same container in that mode.
"""

import asyncio
import contextlib
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

from service_container.config import ContainerConfig
from service_container.custom_logging import get_logger
from service_container.descriptor import LoggingPolicy, RegistryEntry, ServiceDescriptor
from service_container.exceptions import (
    DuplicateServiceError,
    InvalidModuleError,
    InvalidNameError,
    NotFoundError,
    NotRegisteredError,
    ServiceDisposalError,
)
from service_container.instantiation import create_service_instance, maybe_await
from service_container.loader import DirectoryModuleLoader, ServiceLoader, SourceLocation


class ServiceContainer:
    """
    Registry of named services.

    Eager services are instantiated at registration and the same value is
    returned by every resolve(). Lazy services are stored unresolved and
    instantiated on every resolve() call, so a lazy CLASS service yields a
    new object each time.
    """

    _instance: Optional["ServiceContainer"] = None

    def __init__(self,
                 config: Optional[ContainerConfig] = None,
                 loader: Optional[ServiceLoader] = None):
        """
        Initialize the service container.

        Args:
            config: Container settings (defaults used if None)
            loader: Module loader for auto_load (directory loader if None)
        """
        self.config = config or ContainerConfig()
        self.logger = get_logger(f"container.{self.config.name}")
        self.loader = loader or DirectoryModuleLoader(self.config.autoload.export_name)
        self._entries: Dict[str, RegistryEntry] = {}
        self._lock = asyncio.Lock() if self.config.serialize_mutations else None

        if self.config.register_as_current:
            if ServiceContainer._instance is not None:
                self.logger.warning(
                    f"Replacing current container '{ServiceContainer._instance.config.name}'"
                )
            ServiceContainer._instance = self

    @classmethod
    def get_instance(cls) -> Optional["ServiceContainer"]:
        """Return the current container, if one has been registered."""
        return cls._instance

    @classmethod
    def clear_instance(cls) -> None:
        """Forget the current container."""
        cls._instance = None

    @property
    def extras(self) -> Dict[str, Any]:
        """Application settings supplied through ContainerConfig.extras."""
        return self.config.extras

    def __repr__(self):
        return f"ServiceContainer<{self.config.name}, services={len(self._entries)}>"

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def has(self, name: str) -> bool:
        """Check if a service is registered."""
        return name in self

    def names(self) -> List[str]:
        """List registered service names in registration order."""
        return list(self._entries)

    def get_status(self) -> Dict[str, Any]:
        """
        Get status information for all registered services.

        Returns:
            Dictionary with the container name and per-service status
        """
        return {
            "name": self.config.name,
            "services": {
                name: entry.get_status() for name, entry in self._entries.items()
            },
        }

    # ------------------------------------------------------------------ #
    # Registration

    async def register(self, descriptors: Iterable[ServiceDescriptor]) -> "ServiceContainer":
        """
        Register services in the given order.

        Not transactional: if a descriptor fails, the ones before it stay
        registered.

        Args:
            descriptors: Descriptors to register

        Returns:
            The container itself

        Raises:
            InvalidNameError: If a name is not a non-empty string
            DuplicateServiceError: If a name is already registered
            ServiceConstructionError: If an eager service fails to instantiate
        """
        async with self._mutation():
            return await self._register(descriptors)

    async def _register(self, descriptors: Iterable[ServiceDescriptor]) -> "ServiceContainer":
        for descriptor in descriptors:
            if not isinstance(descriptor, ServiceDescriptor):
                raise TypeError(
                    f"Expected a ServiceDescriptor, got {type(descriptor).__name__}"
                )

            name = descriptor.name
            if not self._is_valid_name(name):
                self.logger.error(f"Rejected service with invalid name: {name!r}")
                raise InvalidNameError(name)

            if name in self._entries:
                self.logger.error(f"Service {name} is already registered")
                raise DuplicateServiceError(name)

            if descriptor.lazy:
                entry = RegistryEntry(descriptor)
            else:
                try:
                    value = await create_service_instance(descriptor)
                except Exception as e:
                    self.logger.error(f"Failed to instantiate service {name}: {e}")
                    raise
                entry = RegistryEntry(descriptor, value=value, resolved=True)

            self._entries[name] = entry
            self.logger.debug(
                f"Stored service {name} ({descriptor.kind.value}, lazy={descriptor.lazy})"
            )

            await self._log_registration(descriptor)

            if descriptor.initializer is not None:
                self.logger.debug(f"Running initializer for service {name}")
                await maybe_await(descriptor.initializer(self))

        return self

    async def _log_registration(self, descriptor: ServiceDescriptor) -> None:
        policy = descriptor.logging
        if policy is LoggingPolicy.NONE:
            return

        # Container-wide override replaces the per-service policy
        if self.config.logger is not None:
            await maybe_await(self.config.logger(self, descriptor))
        elif callable(policy):
            await maybe_await(policy(self, descriptor))
        else:
            self.logger.info(f"Registered service: {descriptor.name}...")

    # ------------------------------------------------------------------ #
    # Resolution

    async def resolve(self, name: str) -> Any:
        """
        Resolve a service by name.

        Args:
            name: Service name

        Returns:
            The cached value for eager services, or a freshly
            instantiated value for lazy ones

        Raises:
            NotRegisteredError: If the name is not registered
            ServiceConstructionError: If a lazy service fails to instantiate
        """
        entry = self._entries.get(name) if isinstance(name, str) else None
        if entry is None:
            raise NotRegisteredError(name)

        if entry.resolved:
            return entry.value

        self.logger.debug(f"Instantiating lazy service {name}")
        return await create_service_instance(entry.descriptor)

    # ------------------------------------------------------------------ #
    # Disposal

    async def dispose(self, name: str) -> None:
        """
        Dispose of a service.

        The disposer hook runs first; the name is removed afterwards even
        if the disposer fails.

        Args:
            name: Service name

        Raises:
            NotFoundError: If the name is not registered
            ServiceDisposalError: If the disposer hook raised
        """
        async with self._mutation():
            await self._dispose(name)

    async def _dispose(self, name: str) -> None:
        entry = self._entries.get(name) if isinstance(name, str) else None
        if entry is None:
            raise NotFoundError(name)

        try:
            if entry.disposer is not None:
                await maybe_await(entry.disposer(self, entry))
        except Exception as e:
            self.logger.error(f"Disposer for service {name} failed: {e}")
            raise ServiceDisposalError(name, e) from e
        finally:
            # A concurrent upsert may already have replaced the entry
            if self._entries.get(name) is entry:
                del self._entries[name]

        self.logger.debug(f"Disposed service {name}")

    async def dispose_all(self) -> None:
        """Dispose of every registered service, logging disposer failures."""
        async with self._mutation():
            names = list(self._entries)
            self.logger.debug(f"Disposing {len(names)} services")

            for name in names:
                # Removed by an earlier disposer
                if name not in self._entries:
                    continue
                try:
                    await self._dispose(name)
                except ServiceDisposalError as e:
                    self.logger.warning(f"Continuing after disposal failure: {e}")

    async def upsert(self, descriptor: ServiceDescriptor) -> "ServiceContainer":
        """
        Register a service, replacing an existing one of the same name.

        Args:
            descriptor: Descriptor to register

        Returns:
            The container itself

        Raises:
            ServiceDisposalError: If disposing the existing service failed;
                the new descriptor is not registered in that case
        """
        async with self._mutation():
            if descriptor.name in self:
                self.logger.info(f"Replacing service: {descriptor.name}")
                await self._dispose(descriptor.name)
            return await self._register([descriptor])

    # ------------------------------------------------------------------ #
    # Auto-load

    async def auto_load(self, source: SourceLocation) -> None:
        """
        Discover service modules at source and register them by priority.

        Every module is loaded and checked before anything is registered.
        Existing services are disposed during that pass when the incoming
        descriptor enables upsert.

        Args:
            source: Location handed to the loader (a directory path for
                the default loader)

        Raises:
            InvalidModuleError: If a module does not export a valid service
            DuplicateServiceError: If a name is already registered without
                upsert, or declared by two modules
            LoaderError: If the loader cannot list or import modules
        """
        async with self._mutation():
            await self._auto_load(source)

    async def _auto_load(self, source: SourceLocation) -> None:
        identifiers = [
            identifier for identifier in await self.loader.list_modules(source)
            if self._accepts_module(identifier)
        ]
        self.logger.info(f"Auto-loading {len(identifiers)} service modules from {source}")

        accepted: List[ServiceDescriptor] = []
        declared_by: Dict[str, str] = {}

        for identifier in identifiers:
            export = await self.loader.load_module(source, identifier)
            descriptor = self._to_descriptor(identifier, export)
            name = descriptor.name

            if name in declared_by:
                raise DuplicateServiceError(
                    name, f"Declared by both {declared_by[name]} and {identifier}."
                )
            declared_by[name] = identifier

            if name in self._entries:
                if descriptor.upsert:
                    self.logger.info(f"Replacing service {name} from {identifier}")
                    await self._dispose(name)
                else:
                    self.logger.error(f"Auto-load aborted: service {name} already exists")
                    raise DuplicateServiceError(
                        name, "Did you mean to enable the upsert option?"
                    )

            accepted.append(descriptor)

        # Stable sort: equal priorities keep discovery order
        accepted.sort(key=lambda descriptor: descriptor.priority, reverse=True)

        await self._register(accepted)
        self.logger.info(f"Auto-loaded {len(accepted)} services from {source}")

    def _accepts_module(self, identifier: str) -> bool:
        settings = self.config.autoload
        if settings.exclusion_prefix and identifier.startswith(settings.exclusion_prefix):
            return False
        return identifier.endswith(settings.module_extension)

    def _to_descriptor(self, identifier: str, export: Any) -> ServiceDescriptor:
        if isinstance(export, ServiceDescriptor):
            # Re-checked here: a frozen instance can still be patched after construction
            try:
                export.check_options()
            except TypeError as e:
                raise InvalidModuleError(identifier, str(e)) from e
            descriptor = export
        elif isinstance(export, Mapping):
            try:
                descriptor = ServiceDescriptor.from_mapping(export)
            except (TypeError, ValueError) as e:
                raise InvalidModuleError(identifier, str(e)) from e
        else:
            raise InvalidModuleError(
                identifier,
                f"Expected a ServiceDescriptor or mapping, got {type(export).__name__}.",
            )

        if not self._is_valid_name(descriptor.name):
            raise InvalidModuleError(identifier, "Service name must be a non-empty string.")
        return descriptor

    # ------------------------------------------------------------------ #

    @staticmethod
    def _is_valid_name(name: Any) -> bool:
        return isinstance(name, str) and bool(name.strip())

    def _mutation(self):
        return self._lock if self._lock is not None else contextlib.nullcontext()


def get_container() -> ServiceContainer:
    """Get the current container, creating and registering one if needed."""
    container = ServiceContainer.get_instance()
    if container is None:
        container = ServiceContainer(ContainerConfig(register_as_current=True))
    return container
