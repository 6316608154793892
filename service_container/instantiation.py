"""
Instantiation strategies for service descriptors.

Dispatches on the descriptor's FactoryKind. Constructors and functions may
raise anything; all failures surface as ServiceConstructionError.
"""

import inspect
from typing import Any

from service_container.descriptor import FactoryKind, ServiceDescriptor
from service_container.exceptions import ServiceConstructionError


async def maybe_await(value: Any) -> Any:
    """Await value if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


def _construct(descriptor: ServiceDescriptor) -> Any:
    args = descriptor.inject

    if descriptor.kind is FactoryKind.FUNCTION:
        return descriptor.service(*args)
    if descriptor.kind is FactoryKind.INSTANCE:
        return descriptor.service
    if descriptor.kind is FactoryKind.CLASS:
        if not inspect.isclass(descriptor.service):
            raise TypeError(
                f"CLASS service payload must be a class, got {type(descriptor.service).__name__}"
            )
        return descriptor.service(*args)

    raise TypeError(f"Unsupported factory kind: {descriptor.kind!r}")


async def create_service_instance(descriptor: ServiceDescriptor) -> Any:
    """
    Produce the resolved value for a descriptor.

    Args:
        descriptor: Descriptor to instantiate

    Returns:
        The function result (awaited if a coroutine), the constructed
        object, or the instance payload itself

    Raises:
        ServiceConstructionError: If construction fails for any reason
    """
    try:
        return await maybe_await(_construct(descriptor))
    except Exception as e:
        raise ServiceConstructionError(descriptor.name, e) from e
