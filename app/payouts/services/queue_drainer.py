"""
Drain statements queued behind a platform top-up.

Runs after a topup.succeeded webhook (or manually from the admin API).
One drain at a time: a Redis lock guards the whole run, and each
statement is still claimed individually by SettlementService.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from django.conf import settings
from django.db import transaction
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from core.services import BaseService, ServiceResult
from payouts.exceptions import LockAcquisitionError, PayoutNotFoundError, RailError
from payouts.locks import DistributedLock, lock_statement
from payouts.services.balance_guard import BalanceGuard
from payouts.services.batch_coordinator import needed_by_currency
from payouts.services.settlement_service import SettlementService
from payouts.state_machines import PayoutStatus
from statements.models import Statement

DRAIN_LOCK_KEY = "payouts:drain"
NO_LONGER_FINAL = "Statement is no longer final"


@dataclass
class DrainResult:
    """
    Outcome of a drain run.

    Attributes:
        processed: Statements settled
        failed: Statements that failed or were no longer eligible
        skipped_reasons: Per-statement failure messages, keyed by id
        aborted: True when the balance was still short; nothing was touched
        shortfall_by_currency: Remaining shortfall when aborted
    """

    processed: int = 0
    failed: int = 0
    skipped_reasons: dict[int, str] = field(default_factory=dict)
    aborted: bool = False
    shortfall_by_currency: dict[str, int] = field(default_factory=dict)


class QueueDrainer(BaseService):
    """
    Settle every QUEUED statement once funds are available.

    Args:
        settlement_service: Settles individual statements
        balance_guard: Re-checks the balance before anything moves
        lock_ttl: Drain lock TTL in seconds (PAYOUT_DRAIN_LOCK_TTL_SECONDS)
    """

    def __init__(
        self,
        settlement_service: SettlementService,
        balance_guard: BalanceGuard,
        lock_ttl: int | None = None,
    ):
        self.settlement_service = settlement_service
        self.balance_guard = balance_guard
        self.lock_ttl = lock_ttl or getattr(settings, "PAYOUT_DRAIN_LOCK_TTL_SECONDS", 300)

    def drain(self) -> ServiceResult[DrainResult]:
        """
        Process the queue.

        Returns:
            ServiceResult containing DrainResult, or a DRAIN_IN_PROGRESS
            failure when another drain holds the lock.
        """
        logger = self.get_logger()
        lock = DistributedLock(DRAIN_LOCK_KEY, ttl=self.lock_ttl, blocking=False)

        try:
            lock.acquire()
        except LockAcquisitionError:
            logger.info("Drain already running; skipping")
            return ServiceResult.failure(
                "Another drain is already running",
                error_code="DRAIN_IN_PROGRESS",
            )

        try:
            return self._drain(lock)
        finally:
            lock.release()

    def _drain(self, lock: DistributedLock) -> ServiceResult[DrainResult]:
        logger = self.get_logger()
        result = DrainResult()

        queued = list(
            Statement.objects.filter(payout_status=PayoutStatus.QUEUED).order_by("pk")
        )
        if not queued:
            logger.info("No queued statements to drain")
            return ServiceResult.success(result)

        # Re-check the balance; the top-up may cover less than the queue now needs
        eligible = [s for s in queued if s.is_final and s.operation is not None]
        try:
            check = self.balance_guard.check_sufficiency(
                needed_by_currency(eligible, self.settlement_service.fee_calculator)
            )
        except RailError as e:
            logger.error("Drain balance check failed", extra={"error": e.message})
            return ServiceResult.failure(
                f"Could not read platform balance: {e.message}",
                error_code="BALANCE_CHECK_FAILED",
            )

        if not check.sufficient:
            result.aborted = True
            result.shortfall_by_currency = check.shortfall_by_currency
            logger.warning(
                "Drain aborted; balance still short",
                extra={
                    "queued": len(queued),
                    "shortfall_by_currency": check.shortfall_by_currency,
                },
            )
            return ServiceResult.success(result)

        logger.info("Draining queued statements", extra={"queued": len(queued)})

        for statement in queued:
            self._drain_one(statement.pk, result)
            lock.extend()

        logger.info(
            "Drain complete",
            extra={"processed": result.processed, "failed": result.failed},
        )
        return ServiceResult.success(result)

    def _drain_one(self, statement_id: int, result: DrainResult) -> None:
        current = Statement.objects.filter(pk=statement_id).first()

        if current is None or current.payout_status != PayoutStatus.QUEUED:
            # Moved by another writer since the queue was read; leave it be
            result.failed += 1
            result.skipped_reasons[statement_id] = "no longer queued"
            return

        if not current.is_final:
            self._fail_queued(statement_id, NO_LONGER_FINAL)
            result.failed += 1
            result.skipped_reasons[statement_id] = NO_LONGER_FINAL
            return

        settled = self.settlement_service.settle(statement_id)
        if settled.success:
            result.processed += 1
        else:
            result.failed += 1
            result.skipped_reasons[statement_id] = settled.error or "settlement failed"

    def _fail_queued(self, statement_id: int, reason: str) -> None:
        try:
            with transaction.atomic():
                statement = lock_statement(statement_id)
                statement.mark_failed(reason)
                statement.save()
        except (TransitionNotAllowed, ConcurrentTransition, PayoutNotFoundError):
            self.get_logger().warning(
                "Queued statement changed before it could be failed",
                extra={"statement_id": statement_id},
            )
