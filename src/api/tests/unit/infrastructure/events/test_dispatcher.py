"""Unit tests for HybridDomainEventDispatcher.

Handlers and the outbox writer are test doubles, so these tests cover the
routing and fallback rules without a database.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from iam.domain.events import UserPasswordChanged, UserRegistered
from infrastructure.events.dispatcher import HybridDomainEventDispatcher
from shared_kernel.events.handlers import build_handler_registry
from shared_kernel.events.observability import DispatcherProbe


class RecordingHandler:
    def __init__(self, log: list | None = None, name: str = "handler"):
        self.handled = []
        self._log = log if log is not None else []
        self._name = name

    async def handle(self, event) -> None:
        self.handled.append(event)
        self._log.append((self._name, event.event_type))


class FailingHandler:
    async def handle(self, event) -> None:
        raise RuntimeError("smtp unavailable")


def _dispatcher(registrations, writer=None, probe=None):
    return HybridDomainEventDispatcher(
        handlers=build_handler_registry(registrations),
        outbox_writer=writer or AsyncMock(),
        probe=probe or MagicMock(spec=DispatcherProbe),
    )


class TestPartition:
    """Tests for classifying events by delivery mode."""

    def test_partition_keeps_raise_order_within_each_mode(
        self, registered_event, login_event, confirmed_event
    ):
        second_login = login_event.__class__(user_id="other")
        dispatcher = _dispatcher([])

        partition = dispatcher.partition(
            [login_event, registered_event, confirmed_event, second_login]
        )

        assert partition.critical == (registered_event,)
        assert partition.deferred == (login_event, second_login)
        assert partition.regular == (confirmed_event,)
        assert partition.outbox_bound == (login_event, second_login, confirmed_event)

    def test_partition_reports_counts(self, registered_event, login_event):
        probe = MagicMock(spec=DispatcherProbe)
        dispatcher = _dispatcher([], probe=probe)

        dispatcher.partition([registered_event, login_event])

        probe.events_partitioned.assert_called_once_with(
            critical=1, deferred=1, regular=0
        )


class TestDispatchCritical:
    """Tests for in-process handling of critical events."""

    @pytest.mark.asyncio
    async def test_successful_handlers_skip_outbox(self, registered_event):
        handler = RecordingHandler()
        writer = AsyncMock()
        dispatcher = _dispatcher([(UserRegistered, handler)], writer=writer)

        handled = await dispatcher.dispatch_critical([registered_event])

        assert handled is True
        assert handler.handled == [registered_event]
        writer.save_domain_events.assert_not_called()

    @pytest.mark.asyncio
    async def test_all_handlers_of_an_event_run(self, registered_event):
        first, second = RecordingHandler(), RecordingHandler()
        dispatcher = _dispatcher(
            [(UserRegistered, first), (UserRegistered, second)]
        )

        await dispatcher.dispatch_critical([registered_event])

        assert first.handled == [registered_event]
        assert second.handled == [registered_event]

    @pytest.mark.asyncio
    async def test_handlers_of_one_event_run_concurrently(self, registered_event):
        """Both handlers must be in flight before either finishes."""
        started = []
        release = asyncio.Event()

        class BlockingHandler:
            def __init__(self, name):
                self.name = name

            async def handle(self, event):
                started.append(self.name)
                await release.wait()

        dispatcher = _dispatcher(
            [
                (UserRegistered, BlockingHandler("a")),
                (UserRegistered, BlockingHandler("b")),
            ]
        )

        task = asyncio.create_task(dispatcher.dispatch_critical([registered_event]))
        for _ in range(10):
            await asyncio.sleep(0)
        assert sorted(started) == ["a", "b"]

        release.set()
        assert await task is True

    @pytest.mark.asyncio
    async def test_events_are_handled_in_priority_order(self):
        log = []
        password = UserPasswordChanged(user_id="u1")
        registered = UserRegistered(
            user_id="u1", email="a@example.com", first_name="A", last_name="B"
        )
        dispatcher = _dispatcher(
            [
                (UserRegistered, RecordingHandler(log, "registered")),
                (UserPasswordChanged, RecordingHandler(log, "password")),
            ]
        )

        await dispatcher.dispatch_critical([password, registered])

        assert [name for name, _ in log] == ["registered", "password"]

    @pytest.mark.asyncio
    async def test_handler_failure_sends_whole_batch_to_outbox(self):
        registered = UserRegistered(
            user_id="u1", email="a@example.com", first_name="A", last_name="B"
        )
        password = UserPasswordChanged(user_id="u1")
        writer = AsyncMock()
        probe = MagicMock(spec=DispatcherProbe)
        dispatcher = _dispatcher(
            [
                (UserRegistered, FailingHandler()),
                (UserPasswordChanged, RecordingHandler()),
            ],
            writer=writer,
            probe=probe,
        )

        handled = await dispatcher.dispatch_critical([registered, password])

        assert handled is False
        writer.save_domain_events.assert_awaited_once_with([registered, password])
        probe.critical_handler_failed.assert_called_once_with(
            "UserRegistered", "FailingHandler", "smtp unavailable"
        )
        probe.critical_batch_deferred_to_outbox.assert_called_once_with(
            (str(registered.event_id), str(password.event_id))
        )

    @pytest.mark.asyncio
    async def test_failure_stops_later_events(self):
        registered = UserRegistered(
            user_id="u1", email="a@example.com", first_name="A", last_name="B"
        )
        password = UserPasswordChanged(user_id="u1")
        later = RecordingHandler()
        dispatcher = _dispatcher(
            [
                (UserRegistered, FailingHandler()),
                (UserPasswordChanged, later),
            ]
        )

        await dispatcher.dispatch_critical([registered, password])

        assert later.handled == []

    @pytest.mark.asyncio
    async def test_sibling_handlers_still_run_when_one_fails(self, registered_event):
        sibling = RecordingHandler()
        dispatcher = _dispatcher(
            [(UserRegistered, FailingHandler()), (UserRegistered, sibling)]
        )

        await dispatcher.dispatch_critical([registered_event])

        assert sibling.handled == [registered_event]

    @pytest.mark.asyncio
    async def test_event_without_handlers_goes_to_outbox(self, registered_event):
        writer = AsyncMock()
        probe = MagicMock(spec=DispatcherProbe)
        dispatcher = _dispatcher([], writer=writer, probe=probe)

        handled = await dispatcher.dispatch_critical([registered_event])

        assert handled is False
        probe.critical_event_unhandled.assert_called_once_with("UserRegistered")
        writer.save_domain_events.assert_awaited_once_with([registered_event])

    @pytest.mark.asyncio
    async def test_fallback_failure_is_reported_not_raised(self, registered_event):
        writer = AsyncMock()
        writer.save_domain_events.side_effect = ConnectionError("db down")
        probe = MagicMock(spec=DispatcherProbe)
        dispatcher = _dispatcher(
            [(UserRegistered, FailingHandler())], writer=writer, probe=probe
        )

        handled = await dispatcher.dispatch_critical([registered_event])

        assert handled is False
        probe.critical_batch_deferred_to_outbox.assert_not_called()
        probe.critical_fallback_failed.assert_called_once_with(
            (str(registered_event.event_id),), "db down"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exit_error", [KeyboardInterrupt, SystemExit])
    async def test_interpreter_exit_from_handler_is_reraised(
        self, registered_event, exit_error
    ):
        class ExitingHandler:
            async def handle(self, event) -> None:
                raise exit_error()

        writer = AsyncMock()
        probe = MagicMock(spec=DispatcherProbe)
        dispatcher = _dispatcher(
            [(UserRegistered, ExitingHandler())], writer=writer, probe=probe
        )

        with pytest.raises(exit_error):
            await dispatcher.dispatch_critical([registered_event])

        writer.save_domain_events.assert_not_called()
        probe.critical_handler_failed.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_batch_is_handled(self):
        writer = AsyncMock()
        dispatcher = _dispatcher([], writer=writer)

        assert await dispatcher.dispatch_critical([]) is True
        writer.save_domain_events.assert_not_called()


class TestDispatch:
    """Tests for dispatching a whole committed unit of work."""

    @pytest.mark.asyncio
    async def test_outbox_bound_events_are_written(
        self, registered_event, login_event, confirmed_event
    ):
        writer = AsyncMock()
        dispatcher = _dispatcher(
            [(UserRegistered, RecordingHandler())], writer=writer
        )

        result = await dispatcher.dispatch(
            [login_event, registered_event, confirmed_event]
        )

        assert result.critical_handled is True
        assert result.critical_count == 1
        assert result.deferred_count == 2
        assert result.fallback_event_ids == ()
        writer.save_domain_events.assert_awaited_once_with(
            (login_event, confirmed_event)
        )

    @pytest.mark.asyncio
    async def test_critical_fallback_and_deferred_are_written_separately(
        self, registered_event, login_event
    ):
        writer = AsyncMock()
        dispatcher = _dispatcher([], writer=writer)

        result = await dispatcher.dispatch([registered_event, login_event])

        assert result.critical_handled is False
        assert result.fallback_event_ids == (str(registered_event.event_id),)
        assert writer.save_domain_events.await_count == 2

    @pytest.mark.asyncio
    async def test_no_events_writes_nothing(self):
        writer = AsyncMock()
        dispatcher = _dispatcher([], writer=writer)

        result = await dispatcher.dispatch([])

        assert result.critical_handled is True
        writer.save_domain_events.assert_not_called()
