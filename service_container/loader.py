"""Module loaders used by ServiceContainer.auto_load.

A loader turns a source location into module identifiers and, for each
identifier, the object the module exports. Filtering by file extension and
exclusion prefix is done by the container, not the loader.
"""

import asyncio
import hashlib
import importlib.util
import os
import sys
from pathlib import Path
from typing import Any, List, Protocol, Union, runtime_checkable

from service_container.custom_logging import get_logger
from service_container.exceptions import DirectoryEnumerationError, ModuleLoadError

logger = get_logger("loader")

SourceLocation = Union[str, os.PathLike]


@runtime_checkable
class ServiceLoader(Protocol):
    """Loader collaborator contract for auto-load."""

    async def list_modules(self, source: SourceLocation) -> List[str]:
        """Return candidate module identifiers at source, in a stable order."""
        ...

    async def load_module(self, source: SourceLocation, identifier: str) -> Any:
        """Import one module and return its export, or None if it has none."""
        ...


class DirectoryModuleLoader:
    """Loads service modules from the Python files of a directory.

    Each module is expected to bind its descriptor (a ServiceDescriptor or
    a mapping) to a module-level attribute, ``service`` by default.
    """

    def __init__(self, export_name: str = "service"):
        """Initialize the loader.

        Args:
            export_name: Module attribute holding the service export
        """
        self.export_name = export_name

    async def list_modules(self, source: SourceLocation) -> List[str]:
        """List directory entries sorted by name.

        Raises:
            DirectoryEnumerationError: If the directory cannot be read
        """
        directory = Path(source)
        try:
            entries = await asyncio.to_thread(os.listdir, directory)
        except OSError as e:
            logger.error(f"Cannot list service directory {directory}: {e}")
            raise DirectoryEnumerationError(directory, e) from e

        return sorted(entries)

    async def load_module(self, source: SourceLocation, identifier: str) -> Any:
        """Import a module file in a worker thread and return its export attribute.

        Raises:
            ModuleLoadError: If the file cannot be imported
        """
        file_path = Path(source) / identifier
        module = await asyncio.to_thread(self._import_file, file_path)
        return getattr(module, self.export_name, None)

    def _import_file(self, file_path: Path):
        module_name = self._module_name(file_path)
        spec = importlib.util.spec_from_file_location(module_name, file_path)
        if spec is None or spec.loader is None:
            raise ModuleLoadError(file_path.name, "could not build an import spec")

        module = importlib.util.module_from_spec(spec)
        # Registered before exec so dataclasses and pickling can find the module
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            logger.error(f"Failed to load service module {file_path}: {e}")
            raise ModuleLoadError(file_path.name, e) from e

        logger.debug(f"Loaded service module {file_path} as {module_name}")
        return module

    @staticmethod
    def _module_name(file_path: Path) -> str:
        digest = hashlib.sha1(str(file_path.resolve()).encode("utf-8")).hexdigest()[:10]
        return f"_service_container_autoload_{digest}_{file_path.stem.lstrip('!')}"
