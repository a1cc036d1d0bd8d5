"""Integration tests for OutboxRepository and OutboxService SQL."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio

from iam.domain.events import UserEmailConfirmed, UserLoggedIn
from infrastructure.outbox.models import ERROR_MAX_LENGTH
from infrastructure.outbox.repository import OutboxRepository
from shared_kernel.outbox.ports import IOutboxRepository
from shared_kernel.outbox.value_objects import DeadLetterReason, RetryBackoff

pytestmark = pytest.mark.integration

USER_ID = "01ARZCX0P0HZGQP3MZXQQ0NNZZ"


async def in_transaction(session_factory, operation):
    async with session_factory() as session:
        async with session.begin():
            return await operation(OutboxRepository(session))


@pytest_asyncio.fixture
async def saved_events(runtime):
    """Commit two logins and one confirmation to the outbox."""
    base = datetime(2024, 1, 1, tzinfo=UTC)
    events = [
        UserLoggedIn(user_id=USER_ID, occurred_at=base),
        UserLoggedIn(user_id=USER_ID, occurred_at=base + timedelta(minutes=1)),
        UserEmailConfirmed(
            user_id=USER_ID,
            email="alice@example.com",
            occurred_at=base + timedelta(minutes=2),
        ),
    ]
    async with runtime.outbox() as outbox:
        await outbox.save_domain_events(events)
    return events


class TestBookkeeping:
    def test_repository_satisfies_port(self):
        assert isinstance(OutboxRepository(MagicMock()), IOutboxRepository)

    @pytest.mark.asyncio
    async def test_fetch_returns_pending_oldest_first(
        self, session_factory, saved_events
    ):
        entries = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(2)
        )

        assert [e.event_id for e in entries] == [
            saved_events[0].event_id,
            saved_events[1].event_id,
        ]
        assert entries[0].occurred_at == saved_events[0].occurred_at

    @pytest.mark.asyncio
    async def test_mark_processed_only_once(self, session_factory, saved_events):
        (entry,) = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(1)
        )

        first = await in_transaction(
            session_factory, lambda repo: repo.mark_processed(entry.id)
        )
        second = await in_transaction(
            session_factory, lambda repo: repo.mark_processed(entry.id)
        )

        assert (first, second) == (True, False)
        stored = await in_transaction(session_factory, lambda r: r.get_by_id(entry.id))
        assert stored.is_processed

    @pytest.mark.asyncio
    async def test_record_failure_counts_up(self, session_factory, saved_events):
        (entry,) = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(1)
        )

        counts = [
            await in_transaction(
                session_factory, lambda repo: repo.record_failure(entry.id, "x" * 2000)
            )
            for _ in range(3)
        ]

        assert counts == [1, 2, 3]
        stored = await in_transaction(session_factory, lambda r: r.get_by_id(entry.id))
        assert len(stored.error) == ERROR_MAX_LENGTH
        assert stored.is_failed

    @pytest.mark.asyncio
    async def test_record_failure_of_missing_record(self, session_factory):
        result = await in_transaction(
            session_factory, lambda repo: repo.record_failure(uuid4(), "boom")
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_failed_record_waits_for_backoff(self, session_factory, saved_events):
        backoff = RetryBackoff()
        (entry,) = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(1)
        )
        await in_transaction(
            session_factory, lambda repo: repo.record_failure(entry.id, "boom")
        )
        now = datetime.now(UTC)

        too_soon = await in_transaction(
            session_factory,
            lambda repo: repo.fetch_unprocessed(3, backoff=backoff, now=now),
        )
        later = await in_transaction(
            session_factory,
            lambda repo: repo.fetch_unprocessed(
                3, backoff=backoff, now=now + timedelta(minutes=2, seconds=5)
            ),
        )

        assert entry.id not in [e.id for e in too_soon]
        assert len(too_soon) == 2
        assert [e.id for e in later][0] == entry.id

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self, session_factory, saved_events):
        backoff = RetryBackoff()
        (entry,) = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(1)
        )
        for _ in range(8):
            await in_transaction(
                session_factory, lambda repo: repo.record_failure(entry.id, "boom")
            )
        now = datetime.now(UTC)

        before_cap = await in_transaction(
            session_factory,
            lambda repo: repo.fetch_unprocessed(
                3, backoff=backoff, now=now + timedelta(minutes=29)
            ),
        )
        after_cap = await in_transaction(
            session_factory,
            lambda repo: repo.fetch_unprocessed(
                3, backoff=backoff, now=now + timedelta(minutes=30, seconds=5)
            ),
        )

        assert entry.id not in [e.id for e in before_cap]
        assert entry.id in [e.id for e in after_cap]

    @pytest.mark.asyncio
    async def test_reset_for_retry_makes_record_due(
        self, session_factory, saved_events
    ):
        (entry,) = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(1)
        )
        await in_transaction(
            session_factory, lambda repo: repo.record_failure(entry.id, "boom")
        )

        reset = await in_transaction(
            session_factory, lambda repo: repo.reset_for_retry(entry.id)
        )

        assert reset is True
        due = await in_transaction(
            session_factory,
            lambda repo: repo.fetch_unprocessed(3, backoff=RetryBackoff()),
        )
        assert due[0].id == entry.id
        assert (due[0].retry_count, due[0].error) == (0, None)

    @pytest.mark.asyncio
    async def test_reset_for_retry_skips_processed_and_missing(
        self, session_factory, saved_events
    ):
        (entry,) = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(1)
        )
        await in_transaction(
            session_factory, lambda repo: repo.mark_processed(entry.id)
        )

        processed = await in_transaction(
            session_factory, lambda repo: repo.reset_for_retry(entry.id)
        )
        missing = await in_transaction(
            session_factory, lambda repo: repo.reset_for_retry(uuid4())
        )

        assert (processed, missing) == (False, False)


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_statistics(self, runtime, session_factory, saved_events):
        entries = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(3)
        )
        await in_transaction(
            session_factory, lambda repo: repo.mark_processed(entries[0].id)
        )
        await in_transaction(
            session_factory, lambda repo: repo.record_failure(entries[1].id, "boom")
        )

        stats = await runtime.statistics()

        assert (stats.pending, stats.processed, stats.failed) == (2, 1, 1)
        assert stats.dead_lettered == 0
        assert stats.oldest_pending_at == saved_events[1].occurred_at
        assert stats.total == 3
        assert stats.retryable == 0
        assert stats.by_event_type == {"UserLoggedIn": 2, "UserEmailConfirmed": 1}

    @pytest.mark.asyncio
    async def test_failed_records_become_retryable_after_backoff(
        self, session_factory, saved_events
    ):
        entries = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(3)
        )
        await in_transaction(
            session_factory, lambda repo: repo.record_failure(entries[1].id, "boom")
        )
        later = datetime.now(UTC) + timedelta(minutes=3)

        stats = await in_transaction(
            session_factory,
            lambda repo: repo.get_statistics(backoff=RetryBackoff(), now=later),
        )
        failed = await in_transaction(
            session_factory,
            lambda repo: repo.list_failed_for_retry(
                10, backoff=RetryBackoff(), now=later
            ),
        )
        not_yet = await in_transaction(
            session_factory,
            lambda repo: repo.list_failed_for_retry(10, backoff=RetryBackoff()),
        )

        assert (stats.failed, stats.retryable) == (1, 1)
        assert [e.id for e in failed] == [entries[1].id]
        assert not_yet == []

    @pytest.mark.asyncio
    async def test_service_retry_record(self, runtime, session_factory, saved_events):
        (entry,) = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(1)
        )
        await in_transaction(
            session_factory, lambda repo: repo.record_failure(entry.id, "boom")
        )

        async with runtime.outbox() as outbox:
            reset = await outbox.retry_record(entry.id)

        assert reset is True
        stored = await in_transaction(session_factory, lambda r: r.get_by_id(entry.id))
        assert not stored.is_failed

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_old_processed(
        self, runtime, session_factory, saved_events
    ):
        entries = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(3)
        )
        await in_transaction(
            session_factory, lambda repo: repo.mark_processed(entries[0].id)
        )

        async with runtime.outbox() as outbox:
            kept = await outbox.cleanup_processed(older_than=timedelta(days=1))
        async with runtime.outbox() as outbox:
            removed = await outbox.cleanup_processed(older_than=timedelta(seconds=-60))

        assert (kept, removed) == (0, 1)
        stats = await runtime.statistics()
        assert (stats.pending, stats.processed) == (2, 0)

    @pytest.mark.asyncio
    async def test_list_by_event_type_pages(self, runtime, saved_events):
        async with runtime.outbox() as outbox:
            first = await outbox.list_by_event_type("UserLoggedIn", page_size=1)
            second = await outbox.list_by_event_type(
                "UserLoggedIn", page_index=1, page_size=1
            )

        assert first.total == 2
        assert first.has_next
        assert not second.has_next
        assert first.items[0].event_id == saved_events[1].event_id
        assert second.items[0].event_id == saved_events[0].event_id


class TestDeadLetters:
    @pytest.mark.asyncio
    async def test_move_and_requeue(self, runtime, session_factory, saved_events):
        (entry,) = await in_transaction(
            session_factory, lambda repo: repo.fetch_unprocessed(1)
        )
        await in_transaction(
            session_factory,
            lambda repo: repo.move_to_dead_letter(
                entry, DeadLetterReason.UNDESERIALIZABLE
            ),
        )

        async with runtime.outbox() as outbox:
            (dead_letter,) = await outbox.list_dead_letters()
        assert dead_letter.outbox_id == entry.id
        assert dead_letter.event_data == entry.event_data
        assert dead_letter.reason is DeadLetterReason.UNDESERIALIZABLE
        assert (await runtime.statistics()).dead_lettered == 1

        async with runtime.outbox() as outbox:
            new_id = await outbox.requeue_dead_letter(dead_letter.id)

        assert new_id is not None and new_id != entry.id
        requeued = await in_transaction(session_factory, lambda r: r.get_by_id(new_id))
        assert requeued.event_id == entry.event_id
        assert requeued.retry_count == 0
        stats = await runtime.statistics()
        assert (stats.pending, stats.dead_lettered) == (3, 0)

    @pytest.mark.asyncio
    async def test_requeue_unknown_dead_letter(self, runtime):
        async with runtime.outbox() as outbox:
            assert await outbox.requeue_dead_letter(uuid4()) is None
