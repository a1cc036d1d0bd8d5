"""Unit tests for OutboxService and TransactionalOutboxWriter."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from iam.domain.events import UserEmailConfirmed, UserLoggedIn
from infrastructure.outbox.service import OutboxService, TransactionalOutboxWriter
from shared_kernel.outbox.exceptions import UnknownEventTypeError
from shared_kernel.outbox.observability import OutboxServiceProbe
from shared_kernel.outbox.serialization import DataclassEventSerializer
from shared_kernel.outbox.value_objects import RetryBackoff


@pytest.fixture
def repository():
    repo = AsyncMock()
    with patch("infrastructure.outbox.service.OutboxRepository", return_value=repo):
        yield repo


@pytest.fixture
def serializer():
    return DataclassEventSerializer([UserLoggedIn, UserEmailConfirmed])


@pytest.fixture
def probe():
    return MagicMock(spec=OutboxServiceProbe)


@pytest.fixture
def service(repository, serializer, probe):
    return OutboxService(session=MagicMock(), serializer=serializer, probe=probe)


class TestSaveDomainEvents:
    """Tests for recording events in the caller's transaction."""

    @pytest.mark.asyncio
    async def test_appends_one_record_per_event(
        self, service, repository, serializer, probe, login_event, confirmed_event
    ):
        await service.save_domain_events([login_event, confirmed_event])

        assert repository.append.await_count == 2
        first = repository.append.await_args_list[0].kwargs
        assert first["event_id"] == login_event.event_id
        assert first["event_type"] == "UserLoggedIn"
        assert first["occurred_at"] == login_event.occurred_at
        assert serializer.deserialize("UserLoggedIn", first["event_data"]) == login_event
        probe.events_saved.assert_called_once_with(
            count=2, event_types=["UserLoggedIn", "UserEmailConfirmed"]
        )

    @pytest.mark.asyncio
    async def test_empty_batch_appends_nothing(self, service, repository):
        await service.save_domain_events([])

        repository.append.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_bad_event_fails_the_whole_batch(
        self, service, repository, probe, login_event, registered_event
    ):
        with pytest.raises(UnknownEventTypeError):
            await service.save_domain_events([login_event, registered_event])

        repository.append.assert_not_called()
        probe.serialization_failed.assert_called_once()
        assert probe.serialization_failed.call_args.args[0] == "UserRegistered"

    @pytest.mark.asyncio
    async def test_never_commits(self, repository, serializer, login_event):
        session = MagicMock()
        session.commit = AsyncMock()
        service = OutboxService(session=session, serializer=serializer)

        await service.save_domain_events([login_event])

        session.commit.assert_not_called()


class TestMaintenance:
    """Tests for statistics, cleanup, listing and requeue."""

    @pytest.mark.asyncio
    async def test_cleanup_uses_retention_cutoff(self, service, repository, probe):
        repository.delete_processed_before.return_value = 4
        before = datetime.now(UTC)

        deleted = await service.cleanup_processed(older_than=timedelta(days=7))

        cutoff = repository.delete_processed_before.await_args.args[0]
        assert before - timedelta(days=7, seconds=5) < cutoff
        assert cutoff <= datetime.now(UTC) - timedelta(days=7)
        assert deleted == 4
        probe.processed_records_cleaned.assert_called_once_with(
            deleted=4, retention_days=7.0
        )

    @pytest.mark.asyncio
    async def test_list_by_event_type_rejects_bad_paging(self, service):
        with pytest.raises(ValueError):
            await service.list_by_event_type("UserLoggedIn", page_index=-1)
        with pytest.raises(ValueError):
            await service.list_by_event_type("UserLoggedIn", page_size=0)

    @pytest.mark.asyncio
    async def test_list_by_event_type_delegates(self, service, repository):
        await service.list_by_event_type("UserLoggedIn", page_index=2, page_size=10)

        repository.list_by_event_type.assert_awaited_once_with(
            "UserLoggedIn", page_index=2, page_size=10
        )

    @pytest.mark.asyncio
    async def test_requeue_reports_new_record(self, service, repository, probe):
        dead_letter_id, entry_id = uuid4(), uuid4()
        repository.requeue_dead_letter.return_value = entry_id

        result = await service.requeue_dead_letter(dead_letter_id)

        assert result == entry_id
        probe.dead_letter_requeued.assert_called_once_with(dead_letter_id, entry_id)

    @pytest.mark.asyncio
    async def test_requeue_of_unknown_dead_letter(self, service, repository, probe):
        repository.requeue_dead_letter.return_value = None

        assert await service.requeue_dead_letter(uuid4()) is None
        probe.dead_letter_requeued.assert_not_called()

    @pytest.mark.asyncio
    async def test_statistics_and_failed_listing_use_backoff(
        self, repository, serializer, probe
    ):
        backoff = RetryBackoff()
        service = OutboxService(
            session=MagicMock(),
            serializer=serializer,
            probe=probe,
            retry_backoff=backoff,
        )

        await service.get_statistics()
        await service.list_failed_for_retry(20)

        repository.get_statistics.assert_awaited_once_with(backoff=backoff)
        repository.list_failed_for_retry.assert_awaited_once_with(20, backoff=backoff)

    @pytest.mark.asyncio
    async def test_retry_record_resets_pending_record(self, service, repository, probe):
        entry_id = uuid4()
        repository.reset_for_retry.return_value = True

        assert await service.retry_record(entry_id) is True
        repository.reset_for_retry.assert_awaited_once_with(entry_id)
        probe.record_reset_for_retry.assert_called_once_with(entry_id)

    @pytest.mark.asyncio
    async def test_retry_of_missing_record_is_rejected(
        self, service, repository, probe
    ):
        entry_id = uuid4()
        repository.reset_for_retry.return_value = False

        assert await service.retry_record(entry_id) is False
        probe.retry_rejected.assert_called_once_with(entry_id)
        probe.record_reset_for_retry.assert_not_called()


class TestTransactionalOutboxWriter:
    """Tests for the writer that owns its transaction."""

    @pytest.mark.asyncio
    async def test_writes_inside_its_own_transaction(
        self, mock_session_factory, repository, serializer, login_event
    ):
        writer = TransactionalOutboxWriter(mock_session_factory, serializer)

        await writer.save_domain_events([login_event])

        mock_session_factory.assert_called_once()
        mock_session_factory.session.begin.assert_called_once()
        repository.append.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_batch_opens_no_session(self, mock_session_factory, serializer):
        writer = TransactionalOutboxWriter(mock_session_factory, serializer)

        await writer.save_domain_events([])

        mock_session_factory.assert_not_called()
