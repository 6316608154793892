"""
Test suite for ServiceContainer registration, resolution and disposal.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from service_container import (
    ContainerConfig,
    DuplicateServiceError,
    FactoryKind,
    InvalidNameError,
    LoggingPolicy,
    NotFoundError,
    NotRegisteredError,
    RegistryEntry,
    ServiceConstructionError,
    ServiceContainer,
    ServiceDescriptor,
    ServiceDisposalError,
    ServiceNotFoundError,
    get_container,
)


def class_service(name, cls, **kwargs):
    return ServiceDescriptor(name=name, kind=FactoryKind.CLASS, service=cls, **kwargs)


class TestRegister:
    """Test register() and the instantiation strategies."""

    @pytest.mark.asyncio
    async def test_register_returns_container_for_chaining(self, container, clock_cls):
        result = await container.register([class_service("Clock", clock_cls)])

        assert result is container
        assert "Clock" in container

    @pytest.mark.asyncio
    async def test_eager_class_service_is_cached(self, container, clock_cls):
        await container.register([class_service("Clock", clock_cls, lazy=False)])

        first = await container.resolve("Clock")
        second = await container.resolve("Clock")

        assert isinstance(first, clock_cls)
        assert first is second

    @pytest.mark.asyncio
    async def test_class_service_receives_inject_args(self, container, ticker_cls):
        await container.register([class_service("Ticker", ticker_cls, inject=(5, "a", "b"))])

        ticker = await container.resolve("Ticker")

        assert ticker.interval == 5
        assert ticker.extra == ("a", "b")

    @pytest.mark.asyncio
    async def test_function_service_resolves_to_call_result(self, container):
        add = Mock(return_value=7)
        await container.register([
            ServiceDescriptor(name="sum", kind=FactoryKind.FUNCTION, service=add, inject=(3, 4))
        ])

        assert await container.resolve("sum") == 7
        add.assert_called_once_with(3, 4)

    @pytest.mark.asyncio
    async def test_async_function_result_is_awaited(self, container):
        async def connect(url):
            await asyncio.sleep(0)
            return {"url": url}

        await container.register([
            ServiceDescriptor(name="db", kind=FactoryKind.FUNCTION, service=connect,
                              inject=("sqlite://",))
        ])

        assert await container.resolve("db") == {"url": "sqlite://"}

    @pytest.mark.asyncio
    async def test_instance_service_is_returned_unchanged(self, container):
        settings = {"debug": True}
        await container.register([
            ServiceDescriptor(name="settings", kind=FactoryKind.INSTANCE, service=settings,
                              inject=("ignored",))
        ])

        assert await container.resolve("settings") is settings

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_name", ["", "   ", 42, None])
    async def test_invalid_name_rejected(self, container, clock_cls, bad_name):
        with pytest.raises(InvalidNameError):
            await container.register([class_service(bad_name, clock_cls)])

        assert len(container) == 0

    @pytest.mark.asyncio
    async def test_duplicate_name_leaves_first_entry_untouched(self, container, clock_cls):
        await container.register([class_service("Clock", clock_cls)])
        original = await container.resolve("Clock")

        with pytest.raises(DuplicateServiceError) as exc_info:
            await container.register([class_service("Clock", clock_cls, inject=("CET",))])

        assert exc_info.value.service_name == "Clock"
        assert await container.resolve("Clock") is original

    @pytest.mark.asyncio
    async def test_construction_failure_is_wrapped(self, container):
        class Broken:
            def __init__(self):
                raise RuntimeError("boom")

        with pytest.raises(ServiceConstructionError) as exc_info:
            await container.register([class_service("Broken", Broken)])

        assert exc_info.value.service_name == "Broken"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "Broken" not in container

    @pytest.mark.asyncio
    async def test_class_kind_requires_a_class(self, container):
        with pytest.raises(ServiceConstructionError):
            await container.register([class_service("notaclass", lambda: object())])

    @pytest.mark.asyncio
    async def test_batch_is_not_transactional(self, container, clock_cls, ticker_cls):
        batch = [
            class_service("Clock", clock_cls),
            class_service("Ticker", ticker_cls),
            class_service("Clock", clock_cls),
            class_service("Later", clock_cls),
        ]

        with pytest.raises(DuplicateServiceError):
            await container.register(batch)

        assert container.names() == ["Clock", "Ticker"]

    @pytest.mark.asyncio
    async def test_lazy_service_not_instantiated_at_registration(self, container):
        factory = Mock(return_value="value")
        await container.register([
            ServiceDescriptor(name="lazy", kind=FactoryKind.FUNCTION, service=factory, lazy=True)
        ])

        factory.assert_not_called()
        assert container.get_status()["services"]["lazy"]["resolved"] is False

    @pytest.mark.asyncio
    async def test_initializers_run_sequentially_in_order(self, container, clock_cls):
        events = []

        def make_initializer(tag):
            async def initializer(registry):
                assert registry is container
                events.append(f"{tag}:start")
                await asyncio.sleep(0.01)
                events.append(f"{tag}:end")
            return initializer

        await container.register([
            class_service("A", clock_cls, initializer=make_initializer("A")),
            class_service("B", clock_cls, initializer=make_initializer("B")),
        ])

        assert events == ["A:start", "A:end", "B:start", "B:end"]

    @pytest.mark.asyncio
    async def test_sync_initializer_receives_container(self, container, clock_cls):
        initializer = Mock()

        await container.register([class_service("Clock", clock_cls, initializer=initializer)])

        initializer.assert_called_once_with(container)


class TestRegistrationLogging:
    """Test the per-service logging policy and the container-wide override."""

    @pytest.mark.asyncio
    async def test_standard_policy_emits_notice(self, container, clock_cls, caplog):
        caplog.set_level(logging.INFO, logger="service_container")

        await container.register([class_service("Clock", clock_cls)])

        assert "Registered service: Clock..." in caplog.messages

    @pytest.mark.asyncio
    async def test_none_policy_is_silent(self, container, clock_cls, caplog):
        caplog.set_level(logging.INFO, logger="service_container")

        await container.register([class_service("Clock", clock_cls, logging="none")])

        assert not any("Registered service" in message for message in caplog.messages)

    @pytest.mark.asyncio
    async def test_callable_policy_invoked_for_lazy_service(self, container, ticker_cls):
        hook = Mock()
        descriptor = class_service("Ticker", ticker_cls, lazy=True, logging=hook)

        await container.register([descriptor])

        hook.assert_called_once_with(container, descriptor)

    @pytest.mark.asyncio
    async def test_container_override_replaces_service_policy(self, clock_cls, caplog):
        caplog.set_level(logging.INFO, logger="service_container")
        override = AsyncMock()
        service_hook = Mock()
        container = ServiceContainer(ContainerConfig(name="quiet", logger=override))

        standard = class_service("Clock", clock_cls)
        custom = class_service("Other", clock_cls, logging=service_hook)
        silent = class_service("Silent", clock_cls, logging=LoggingPolicy.NONE)
        await container.register([standard, custom, silent])

        assert override.await_count == 2
        override.assert_any_await(container, standard)
        override.assert_any_await(container, custom)
        service_hook.assert_not_called()
        assert not any("Registered service" in message for message in caplog.messages)


class TestResolve:
    """Test resolve()."""

    @pytest.mark.asyncio
    async def test_unknown_name_raises_not_registered(self, container):
        with pytest.raises(NotRegisteredError) as exc_info:
            await container.resolve("Missing")

        assert isinstance(exc_info.value, ServiceNotFoundError)
        assert exc_info.value.service_name == "Missing"

    @pytest.mark.asyncio
    async def test_lazy_class_service_builds_new_instance_per_call(self, container, ticker_cls):
        await container.register([class_service("Ticker", ticker_cls, lazy=True)])

        first = await container.resolve("Ticker")
        second = await container.resolve("Ticker")

        assert isinstance(first, ticker_cls)
        assert isinstance(second, ticker_cls)
        assert first is not second

    @pytest.mark.asyncio
    async def test_lazy_function_service_called_per_resolve(self, container):
        factory = Mock(side_effect=[1, 2])
        await container.register([
            ServiceDescriptor(name="counter", kind=FactoryKind.FUNCTION, service=factory,
                              lazy=True)
        ])

        assert await container.resolve("counter") == 1
        assert await container.resolve("counter") == 2

    @pytest.mark.asyncio
    async def test_lazy_construction_failure_surfaces_on_resolve(self, container):
        class Broken:
            def __init__(self):
                raise ValueError("bad config")

        await container.register([class_service("Broken", Broken, lazy=True)])

        with pytest.raises(ServiceConstructionError) as exc_info:
            await container.resolve("Broken")

        assert exc_info.value.service_name == "Broken"
        assert "Broken" in container


class TestDispose:
    """Test dispose() and dispose_all()."""

    @pytest.mark.asyncio
    async def test_dispose_then_resolve_fails(self, container, clock_cls):
        await container.register([class_service("Clock", clock_cls)])

        await container.dispose("Clock")

        with pytest.raises(NotRegisteredError):
            await container.resolve("Clock")

    @pytest.mark.asyncio
    async def test_dispose_unknown_raises_not_found(self, container):
        with pytest.raises(NotFoundError):
            await container.dispose("Missing")

    @pytest.mark.asyncio
    async def test_disposer_receives_container_and_entry(self, container, clock_cls):
        disposer = Mock()
        await container.register([class_service("Clock", clock_cls, disposer=disposer)])
        clock = await container.resolve("Clock")

        await container.dispose("Clock")

        disposer.assert_called_once()
        registry, entry = disposer.call_args.args
        assert registry is container
        assert isinstance(entry, RegistryEntry)
        assert entry.value is clock

    @pytest.mark.asyncio
    async def test_async_disposer_is_awaited(self, container, clock_cls):
        disposer = AsyncMock()
        await container.register([class_service("Clock", clock_cls, disposer=disposer)])

        await container.dispose("Clock")

        disposer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_disposer_still_removes_service(self, container, clock_cls):
        disposer = Mock(side_effect=RuntimeError("close failed"))
        await container.register([class_service("Clock", clock_cls, disposer=disposer)])

        with pytest.raises(ServiceDisposalError) as exc_info:
            await container.dispose("Clock")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "Clock" not in container

    @pytest.mark.asyncio
    async def test_dispose_all_removes_everything(self, container, clock_cls, ticker_cls):
        disposer = Mock()
        await container.register([
            class_service("Clock", clock_cls, disposer=disposer),
            class_service("Ticker", ticker_cls, lazy=True, disposer=disposer),
        ])

        await container.dispose_all()

        assert len(container) == 0
        assert disposer.call_count == 2

    @pytest.mark.asyncio
    async def test_dispose_all_tolerates_disposers_that_mutate_registry(self, container,
                                                                         clock_cls):
        async def dispose_sibling(registry, entry):
            await registry.dispose("B")

        await container.register([
            class_service("A", clock_cls, disposer=dispose_sibling),
            class_service("B", clock_cls),
            class_service("C", clock_cls),
        ])

        await container.dispose_all()

        assert len(container) == 0

    @pytest.mark.asyncio
    async def test_dispose_all_continues_after_failure(self, container, clock_cls):
        good = Mock()
        await container.register([
            class_service("A", clock_cls, disposer=Mock(side_effect=RuntimeError("fail"))),
            class_service("B", clock_cls, disposer=good),
        ])

        await container.dispose_all()

        good.assert_called_once()
        assert len(container) == 0


class TestUpsert:
    """Test upsert()."""

    @pytest.mark.asyncio
    async def test_upsert_registers_new_name(self, container, clock_cls):
        result = await container.upsert(class_service("Clock", clock_cls))

        assert result is container
        assert isinstance(await container.resolve("Clock"), clock_cls)

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_service(self, container, clock_cls):
        old_disposer = Mock()
        new_disposer = Mock()
        await container.register([class_service("Clock", clock_cls, disposer=old_disposer)])
        old_clock = await container.resolve("Clock")

        await container.upsert(
            class_service("Clock", clock_cls, inject=("CET",), disposer=new_disposer)
        )

        old_disposer.assert_called_once()
        new_clock = await container.resolve("Clock")
        assert new_clock is not old_clock
        assert new_clock.tz == "CET"

        await container.dispose("Clock")
        old_disposer.assert_called_once()
        new_disposer.assert_called_once()

    @pytest.mark.asyncio
    async def test_upsert_propagates_disposal_failure(self, container, clock_cls):
        await container.register([
            class_service("Clock", clock_cls, disposer=Mock(side_effect=RuntimeError("stuck")))
        ])

        with pytest.raises(ServiceDisposalError):
            await container.upsert(class_service("Clock", clock_cls, inject=("CET",)))

        assert "Clock" not in container


class TestCurrentContainer:
    """Test the process-wide current container handle."""

    def test_containers_are_not_current_by_default(self, container):
        assert ServiceContainer.get_instance() is None

    def test_register_as_current_and_clear(self):
        container = ServiceContainer(ContainerConfig(register_as_current=True))

        assert ServiceContainer.get_instance() is container

        ServiceContainer.clear_instance()
        assert ServiceContainer.get_instance() is None

    def test_get_container_creates_once(self):
        first = get_container()

        assert get_container() is first
        assert ServiceContainer.get_instance() is first

    def test_extras_are_exposed(self):
        container = ServiceContainer(ContainerConfig(extras={"region": "eu-west-1"}))

        assert container.extras["region"] == "eu-west-1"


class TestConcurrentMutation:
    """Probe the check-then-act window in register()."""

    @staticmethod
    def slow_factory(tag):
        async def factory():
            await asyncio.sleep(0)
            return tag
        return factory

    def shared(self, tag):
        return ServiceDescriptor(name="Shared", kind=FactoryKind.FUNCTION,
                                 service=self.slow_factory(tag))

    @pytest.mark.asyncio
    async def test_unserialized_registrations_race_last_write_wins(self, container):
        await asyncio.gather(
            container.register([self.shared("first")]),
            container.register([self.shared("second")]),
        )

        assert len(container) == 1
        assert await container.resolve("Shared") == "second"

    @pytest.mark.asyncio
    async def test_serialized_registrations_detect_duplicate(self):
        container = ServiceContainer(ContainerConfig(serialize_mutations=True))

        results = await asyncio.gather(
            container.register([self.shared("first")]),
            container.register([self.shared("second")]),
            return_exceptions=True,
        )

        assert results[0] is container
        assert isinstance(results[1], DuplicateServiceError)
        assert await container.resolve("Shared") == "first"
