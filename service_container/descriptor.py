"""
Service descriptor definitions for the service container.

A ServiceDescriptor is the unit of registration: it names a service, tags
how to instantiate it, and carries the optional lifecycle hooks. The
container stores a RegistryEntry per registered name.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Union


class FactoryKind(Enum):
    """How a descriptor's payload becomes the resolved value."""
    CLASS = "class"        # Constructed with the inject args
    FUNCTION = "function"  # Called with the inject args
    INSTANCE = "instance"  # Used as-is

    @classmethod
    def parse(cls, value: Union["FactoryKind", str]) -> "FactoryKind":
        """Accept a FactoryKind or its case-insensitive string value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        valid = ", ".join(kind.value for kind in cls)
        raise ValueError(f"Unknown factory kind: {value!r} (expected one of: {valid})")


class LoggingPolicy(Enum):
    """Built-in registration logging policies."""
    STANDARD = "standard"  # Emit a "Registered service" notice
    NONE = "none"          # Stay silent

    @classmethod
    def parse(cls, value: Any) -> Union["LoggingPolicy", Callable[..., Any]]:
        """Accept a LoggingPolicy, its string value, or a custom callable."""
        if isinstance(value, cls) or callable(value):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        raise ValueError(f"Unknown logging policy: {value!r}")


_OPTION_KEYS = frozenset(
    {"inject", "lazy", "priority", "upsert", "initializer", "disposer", "logging"}
)


@dataclass(frozen=True)
class ServiceDescriptor:
    """
    Immutable description of a service to register.

    Attributes:
        name: Unique service name
        kind: Instantiation strategy for the payload
        service: The class, function or pre-built instance
        inject: Positional arguments passed on construction (ignored for INSTANCE)
        lazy: Defer instantiation until resolve()
        priority: Auto-load ordering, higher registers first
        upsert: During auto-load, replace an existing service of the same name
        initializer: Called with (container) after registration, may be async
        disposer: Called with (container, entry) on dispose, may be async
        logging: LoggingPolicy or a callable taking (container, descriptor)
    """

    name: str
    kind: FactoryKind
    service: Any
    inject: Tuple[Any, ...] = ()
    lazy: bool = False
    priority: int = 0
    upsert: bool = False
    initializer: Optional[Callable[..., Any]] = None
    disposer: Optional[Callable[..., Any]] = None
    logging: Union[LoggingPolicy, Callable[..., Any]] = LoggingPolicy.STANDARD

    def __post_init__(self):
        if not isinstance(self.kind, FactoryKind):
            raise TypeError(f"kind must be a FactoryKind, got {type(self.kind).__name__}")
        self.check_options()
        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "inject", tuple(self.inject or ()))
        object.__setattr__(self, "logging", LoggingPolicy.parse(self.logging))

    def check_options(self):
        """
        Check the types of the auto-load and laziness flags.

        Raises:
            TypeError: If lazy or upsert is not a bool, or priority is not an int
        """
        for flag in ("lazy", "upsert"):
            value = getattr(self, flag)
            if not isinstance(value, bool):
                raise TypeError(f"{flag} must be a bool, got {type(value).__name__}")
        # bool is an int subclass but never a meaningful priority
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise TypeError(f"priority must be an int, got {type(self.priority).__name__}")

    @classmethod
    def from_mapping(cls, data: Mapping) -> "ServiceDescriptor":
        """
        Build a descriptor from the mapping shape used by service modules.

        Expected shape::

            {
                "name": "Clock",
                "kind": "class",
                "service": Clock,
                "options": {"lazy": True, "priority": 5, "inject": [1, 2]},
            }

        Raises:
            TypeError: If data or its options are not mappings
            ValueError: If required keys are missing or values are invalid
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Expected a mapping, got {type(data).__name__}")

        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Service mapping requires a non-empty string 'name'")
        if "service" not in data:
            raise ValueError(f"Service mapping '{name}' has no 'service' entry")
        if "kind" not in data:
            raise ValueError(f"Service mapping '{name}' has no 'kind' entry")

        options = data.get("options") or {}
        if not isinstance(options, Mapping):
            raise TypeError(f"Options for '{name}' must be a mapping")
        unknown = set(options) - _OPTION_KEYS
        if unknown:
            raise ValueError(f"Unknown options for '{name}': {sorted(unknown)}")

        return cls(
            name=name,
            kind=FactoryKind.parse(data["kind"]),
            service=data["service"],
            inject=tuple(options.get("inject") or ()),
            lazy=_parse_flag(name, "lazy", options.get("lazy", False)),
            priority=_parse_priority(name, options.get("priority")),
            upsert=_parse_flag(name, "upsert", options.get("upsert", False)),
            initializer=options.get("initializer"),
            disposer=options.get("disposer"),
            logging=options.get("logging", LoggingPolicy.STANDARD),
        )


def _parse_flag(name: str, option: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Option '{option}' for '{name}' must be true or false, got {value!r}")
    return value


def _parse_priority(name: str, value: Any) -> int:
    """Accept ints, integral floats and integer strings. None means 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Priority for '{name}' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError(f"Priority for '{name}' must be an integer, got {value!r}")


@dataclass
class RegistryEntry:
    """What the container stores for one registered name."""
    descriptor: ServiceDescriptor
    value: Any = None
    resolved: bool = False  # False while a lazy descriptor is unresolved

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def disposer(self) -> Optional[Callable[..., Any]]:
        return self.descriptor.disposer

    def get_status(self) -> dict:
        return {
            "kind": self.descriptor.kind.value,
            "lazy": self.descriptor.lazy,
            "resolved": self.resolved,
            "priority": self.descriptor.priority,
        }
