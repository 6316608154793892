"""Shared fixtures for the service container test suite."""

import pytest

from service_container import ContainerConfig, ServiceContainer


class Clock:
    """Eager class service used across tests."""

    def __init__(self, tz="UTC"):
        self.tz = tz


class Ticker:
    """Lazy class service used across tests."""

    def __init__(self, interval=1, *extra):
        self.interval = interval
        self.extra = extra


class FakeLoader:
    """In-memory loader: identifiers map to the object each module exports."""

    def __init__(self, modules):
        self.modules = dict(modules)
        self.loaded = []

    async def list_modules(self, source):
        return list(self.modules)

    async def load_module(self, source, identifier):
        self.loaded.append(identifier)
        return self.modules[identifier]


@pytest.fixture(autouse=True)
def reset_current_container():
    """Keep the process-wide current container from leaking between tests."""
    ServiceContainer.clear_instance()
    yield
    ServiceContainer.clear_instance()


@pytest.fixture
def container():
    return ServiceContainer(ContainerConfig(name="test"))


@pytest.fixture
def clock_cls():
    return Clock


@pytest.fixture
def ticker_cls():
    return Ticker


@pytest.fixture
def make_container():
    """Build a container around a FakeLoader for the given module exports."""
    def _make(modules=None, **config_kwargs):
        config_kwargs.setdefault("name", "test")
        loader = FakeLoader(modules or {})
        return ServiceContainer(ContainerConfig(**config_kwargs), loader=loader)
    return _make
