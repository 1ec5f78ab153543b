"""
Tests for QueueDrainer.

Tests cover:
- Drain lock (one drain at a time)
- Balance re-check before anything moves
- Per-statement re-validation
"""

from decimal import Decimal

import pytest

from payouts.exceptions import RailInvalidAccountError
from payouts.state_machines import PayoutStatus, StatementStatus
from statements.models import Statement
from statements.tests.factories import StatementFactory


def get_fresh_statement(statement_id) -> Statement:
    return Statement.objects.get(pk=statement_id)


class TestDrainLock:
    def test_drain_in_progress_when_lock_held(self, engine, queued_statement, mock_redis_lock):
        """Should return DRAIN_IN_PROGRESS and leave the queue alone when the lock is held."""
        mock_redis_lock.set.return_value = False

        result = engine.drainer.drain()

        assert result.success is False
        assert result.error_code == "DRAIN_IN_PROGRESS"
        assert get_fresh_statement(queued_statement.pk).payout_status == PayoutStatus.QUEUED

    def test_lock_released_after_drain(self, engine, queued_statement, mock_redis_lock):
        """Should extend the lock per statement and release it at the end."""
        engine.drainer.drain()

        mock_redis_lock.set.assert_called_once()
        assert mock_redis_lock.set.call_args.args[0] == "lock:payouts:drain"
        # extend() per statement, release() at the end
        assert mock_redis_lock.eval.call_count == 2


class TestDrain:
    def test_empty_queue(self, engine, mock_redis_lock, mock_rail):
        """Should return without reading the balance when nothing is queued."""
        result = engine.drainer.drain()

        assert result.success is True
        assert result.data.processed == 0
        mock_rail.retrieve_balance.assert_not_called()

    def test_settles_queued_statements(self, engine, listing, mock_redis_lock, mock_rail):
        """Should settle only QUEUED statements."""
        first = StatementFactory(listing=listing, payout_status=PayoutStatus.QUEUED)
        second = StatementFactory(
            listing=listing,
            payout_status=PayoutStatus.QUEUED,
            owner_payout=Decimal("-50.00"),
        )
        untouched = StatementFactory(listing=listing)

        result = engine.drainer.drain()

        assert result.success is True
        assert result.data.processed == 2
        assert result.data.failed == 0
        assert get_fresh_statement(first.pk).payout_status == PayoutStatus.PAID
        assert get_fresh_statement(second.pk).payout_status == PayoutStatus.COLLECTED
        assert get_fresh_statement(untouched.pk).payout_status == PayoutStatus.MISSING

    def test_aborts_when_balance_still_short(
        self, engine, queued_statement, mock_redis_lock, mock_rail
    ):
        """Should abort before moving anything when the balance is still short."""
        mock_rail.retrieve_balance.return_value = 100

        result = engine.drainer.drain()

        assert result.success is True
        assert result.data.aborted is True
        assert result.data.shortfall_by_currency == {"usd": 50125 - 100}
        assert get_fresh_statement(queued_statement.pk).payout_status == PayoutStatus.QUEUED
        mock_rail.create_transfer.assert_not_called()

    def test_statement_no_longer_final_is_failed(
        self, engine, listing, mock_redis_lock, mock_rail
    ):
        """Should fail a queued statement that is no longer final."""
        statement = StatementFactory(
            listing=listing,
            payout_status=PayoutStatus.QUEUED,
            status=StatementStatus.DRAFT,
        )

        result = engine.drainer.drain()

        assert result.data.failed == 1
        fresh = get_fresh_statement(statement.pk)
        assert fresh.payout_status == PayoutStatus.FAILED
        assert fresh.payout_error == "Statement is no longer final"
        mock_rail.create_transfer.assert_not_called()

    def test_reverted_statement_fails_while_rest_of_queue_settles(
        self, engine, listing, mock_redis_lock, mock_rail
    ):
        """Should fail a reverted statement and still settle the rest of the queue."""
        reverted = StatementFactory(
            listing=listing,
            payout_status=PayoutStatus.QUEUED,
            status=StatementStatus.DRAFT,
        )
        settled = [
            StatementFactory(listing=listing, payout_status=PayoutStatus.QUEUED)
            for _ in range(2)
        ]

        result = engine.drainer.drain()

        assert result.success is True
        assert result.data.processed == 2
        assert result.data.failed == 1
        assert result.data.skipped_reasons == {reverted.pk: "Statement is no longer final"}
        assert get_fresh_statement(reverted.pk).payout_status == PayoutStatus.FAILED
        assert [get_fresh_statement(s.pk).payout_status for s in settled] == [
            PayoutStatus.PAID,
            PayoutStatus.PAID,
        ]
        assert mock_rail.create_transfer.call_count == 2

    def test_statement_moved_since_queue_read_is_left_alone(
        self, engine, listing, mock_redis_lock, mock_rail, mocker
    ):
        """Should skip a statement that left QUEUED after the queue was read."""
        first = StatementFactory(listing=listing, payout_status=PayoutStatus.QUEUED)
        second = StatementFactory(listing=listing, payout_status=PayoutStatus.QUEUED)
        original_settle = engine.settlement.settle

        def settle_and_move_second(statement_id, operation=None):
            result = original_settle(statement_id, operation)
            if statement_id == first.pk:
                Statement.objects.filter(pk=second.pk).update(payout_status=PayoutStatus.PAID)
            return result

        mocker.patch.object(engine.settlement, "settle", side_effect=settle_and_move_second)

        result = engine.drainer.drain()

        assert result.data.processed == 1
        assert result.data.failed == 1
        assert result.data.skipped_reasons == {second.pk: "no longer queued"}
        assert mock_rail.create_transfer.call_count == 1

    def test_rail_failure_counts_and_continues(
        self, engine, listing, mock_redis_lock, mock_rail
    ):
        """Should count a rail failure and keep draining."""
        first = StatementFactory(listing=listing, payout_status=PayoutStatus.QUEUED)
        second = StatementFactory(listing=listing, payout_status=PayoutStatus.QUEUED)
        original = mock_rail.create_transfer.side_effect

        def fail_first(**kwargs):
            if kwargs["metadata"]["statement_id"] == str(first.pk):
                raise RailInvalidAccountError("No such destination")
            return original(**kwargs)

        mock_rail.create_transfer.side_effect = fail_first

        result = engine.drainer.drain()

        assert result.data.processed == 1
        assert result.data.failed == 1
        assert result.data.skipped_reasons[first.pk] == "No such destination"
        assert get_fresh_statement(first.pk).payout_status == PayoutStatus.FAILED
        assert get_fresh_statement(second.pk).payout_status == PayoutStatus.PAID
