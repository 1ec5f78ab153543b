"""
Fund-and-queue: settle a batch now, or queue it behind a top-up.

One call makes one decision for the whole batch:
- Balance covers every valid statement: settle each one synchronously.
- Balance is short: mark every valid statement QUEUED and request one
  top-up per short currency, all in a single transaction. Nothing is
  charged; the queue is drained once the top-up lands.

The result is discriminated by `outcome` so callers can report
"3 paid, 1 failed, 2 skipped" instead of a single flag.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from django.db import transaction
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from core.services import BaseService, ServiceResult
from payouts.exceptions import (
    AccountResolutionError,
    BalanceInsufficientError,
    PayoutNotFoundError,
    PayoutValidationError,
    RailError,
    TopUpCreationError,
)
from payouts.locks import lock_statement
from payouts.services.account_resolver import AccountResolver
from payouts.services.balance_guard import BalanceGuard, TopUpReceipt
from payouts.services.fee_calculator import FeeCalculator
from payouts.services.settlement_service import SettlementService
from payouts.state_machines import PayoutStatus
from statements.models import Statement

if TYPE_CHECKING:
    from collections.abc import Iterable


# =============================================================================
# Result Types
# =============================================================================


class BatchOutcome:
    NOTHING_TO_SETTLE = "nothing_to_settle"
    SETTLED = "settled"
    QUEUED = "queued"


class SkipReason:
    NOT_FOUND = "statement not found"
    NON_POSITIVE_PAYOUT = "non-positive payout"
    ALREADY_SETTLED = "already settled"
    ALREADY_QUEUED = "already queued"
    IN_PROGRESS = "settlement in progress"
    NOT_FINAL = "not final"
    NO_ACCOUNT = "no Stripe account"


@dataclass
class SkippedStatement:
    statement_id: int
    reason: str


@dataclass
class BatchItemResult:
    """Per-statement outcome of a synchronous settlement."""

    statement_id: int
    success: bool
    payout_status: str | None = None
    transfer_id: str | None = None
    error: str | None = None
    error_code: str | None = None


@dataclass
class FundAndQueueResult:
    """
    Outcome of fund_and_queue.

    Attributes:
        outcome: nothing_to_settle, settled or queued
        queued: True when the batch was deferred behind a top-up
        processed / failed: Synchronous settlement counts
        skipped: Statements left out, with reasons
        items: Per-statement settlement results (settled outcome)
        queued_statement_ids: Statements moved to QUEUED (queued outcome)
        top_ups: Top-ups requested (queued outcome)
        estimated_arrival: Latest expected availability among the top-ups
    """

    outcome: str
    queued: bool = False
    processed: int = 0
    failed: int = 0
    skipped: list[SkippedStatement] = field(default_factory=list)
    items: list[BatchItemResult] = field(default_factory=list)
    queued_statement_ids: list[int] = field(default_factory=list)
    top_ups: list[TopUpReceipt] = field(default_factory=list)
    needed_by_currency: dict[str, int] = field(default_factory=dict)
    available_by_currency: dict[str, int] = field(default_factory=dict)
    shortfall_by_currency: dict[str, int] = field(default_factory=dict)
    estimated_arrival: datetime | None = None


def needed_by_currency(
    statements: Iterable[Statement],
    fee_calculator: FeeCalculator,
) -> dict[str, int]:
    """Platform balance each currency must cover, in minor units."""
    totals: dict[str, int] = defaultdict(int)
    for statement in statements:
        fees = fee_calculator.breakdown(statement.owner_payout)
        totals[statement.currency] += fees.total_cents
    return dict(totals)


# =============================================================================
# Batch Coordinator
# =============================================================================


class BatchCoordinator(BaseService):
    """
    Decide-and-execute entry point for settling a batch of statements.

    Args:
        settlement_service: Settles individual statements
        balance_guard: Balance checks and top-ups
        account_resolver: Defaults to the settlement service's resolver
        fee_calculator: Defaults to the settlement service's calculator
    """

    def __init__(
        self,
        settlement_service: SettlementService,
        balance_guard: BalanceGuard,
        account_resolver: AccountResolver | None = None,
        fee_calculator: FeeCalculator | None = None,
    ):
        self.settlement_service = settlement_service
        self.balance_guard = balance_guard
        self.account_resolver = account_resolver or settlement_service.account_resolver
        self.fee_calculator = fee_calculator or settlement_service.fee_calculator

    def fund_and_queue(self, statement_ids: Iterable[int]) -> ServiceResult[FundAndQueueResult]:
        """
        Settle or queue a batch.

        Returns:
            ServiceResult containing FundAndQueueResult. Fails with
            TOPUP_CREATION_FAILED (no statuses changed) when a top-up could
            not be created, or BALANCE_CHECK_FAILED when the balance could
            not be read.
        """
        logger = self.get_logger()
        statement_ids = list(dict.fromkeys(int(pk) for pk in statement_ids))

        # Step 1: Partition
        valid, skipped = self.partition(statement_ids)
        logger.info(
            "Fund-and-queue batch partitioned",
            extra={
                "requested": len(statement_ids),
                "valid": len(valid),
                "skipped": len(skipped),
            },
        )

        # Step 2: Nothing to do
        if not valid:
            return ServiceResult.success(
                FundAndQueueResult(outcome=BatchOutcome.NOTHING_TO_SETTLE, skipped=skipped)
            )

        # Steps 3-4: Sum needs and check the balance
        needed = needed_by_currency(valid, self.fee_calculator)
        try:
            check = self.balance_guard.check_sufficiency(needed)
        except RailError as e:
            logger.error(
                "Balance check failed",
                extra={"kind": e.kind.value, "error": e.message},
            )
            return ServiceResult.failure(
                f"Could not read platform balance: {e.message}",
                error_code="BALANCE_CHECK_FAILED",
            )

        # Step 5: Enough funds, settle now
        try:
            check.raise_if_short()
        except BalanceInsufficientError as e:
            logger.info(
                "Balance short; queuing batch behind a top-up",
                extra={"shortfall_by_currency": e.shortfall_by_currency},
            )
        else:
            result = self._settle_all(valid)
            result.skipped = skipped
            result.needed_by_currency = check.needed_by_currency
            result.available_by_currency = check.available_by_currency
            return ServiceResult.success(result)

        # Step 6: Short, queue everything behind a top-up
        try:
            result = self._queue_with_top_up(valid, check.available_by_currency, skipped)
        except TopUpCreationError as e:
            logger.error(
                "Batch queuing aborted; top-up could not be created",
                extra={"error": e.message, "statement_ids": [s.pk for s in valid]},
            )
            return ServiceResult.failure(e.message, error_code=e.error_code)

        result.available_by_currency = check.available_by_currency
        return ServiceResult.success(result)

    def partition(
        self,
        statement_ids: list[int],
    ) -> tuple[list[Statement], list[SkippedStatement]]:
        """Split requested ids into settleable statements and skips with reasons."""
        statements = Statement.objects.in_bulk(statement_ids)
        valid: list[Statement] = []
        skipped: list[SkippedStatement] = []

        for statement_id in statement_ids:
            statement = statements.get(statement_id)
            reason = self.skip_reason(statement)
            if reason is None:
                valid.append(statement)
            else:
                skipped.append(SkippedStatement(statement_id=statement_id, reason=reason))

        return valid, skipped

    def skip_reason(self, statement: Statement | None) -> str | None:
        """Reason a statement cannot join the batch, or None if it can."""
        if statement is None:
            return SkipReason.NOT_FOUND
        if statement.is_settled:
            return SkipReason.ALREADY_SETTLED
        if statement.payout_status == PayoutStatus.QUEUED:
            return SkipReason.ALREADY_QUEUED
        if statement.payout_status == PayoutStatus.PENDING:
            return SkipReason.IN_PROGRESS
        if not statement.is_final:
            return SkipReason.NOT_FINAL
        try:
            self.fee_calculator.breakdown(statement.owner_payout)
        except PayoutValidationError:
            return SkipReason.NON_POSITIVE_PAYOUT
        try:
            self.account_resolver.resolve(statement)
        except AccountResolutionError:
            return SkipReason.NO_ACCOUNT
        return None

    def _settle_all(self, statements: list[Statement]) -> FundAndQueueResult:
        result = FundAndQueueResult(outcome=BatchOutcome.SETTLED)

        for statement in statements:
            settled = self.settlement_service.settle(statement.pk)
            if settled.success:
                result.processed += 1
                result.items.append(
                    BatchItemResult(
                        statement_id=statement.pk,
                        success=True,
                        payout_status=settled.data.payout_status,
                        transfer_id=settled.data.transfer_id,
                    )
                )
            else:
                result.failed += 1
                result.items.append(
                    BatchItemResult(
                        statement_id=statement.pk,
                        success=False,
                        error=settled.error,
                        error_code=settled.error_code,
                    )
                )

        self.get_logger().info(
            "Batch settled synchronously",
            extra={"processed": result.processed, "failed": result.failed},
        )
        return result

    def _queue_with_top_up(
        self,
        statements: list[Statement],
        available_by_currency: dict[str, int],
        skipped: list[SkippedStatement],
    ) -> FundAndQueueResult:
        """
        Mark statements QUEUED and request top-ups atomically.

        Shortfalls are computed from the statements actually queued, so
        rows lost to a concurrent writer are neither funded nor listed
        on a top-up.

        Raises:
            TopUpCreationError: Rolls back every QUEUED transition
        """
        result = FundAndQueueResult(
            outcome=BatchOutcome.QUEUED,
            queued=True,
            skipped=list(skipped),
        )

        with transaction.atomic():
            for statement in statements:
                try:
                    with transaction.atomic():
                        locked = lock_statement(statement.pk)
                        locked.queue()
                        locked.save()
                except (TransitionNotAllowed, ConcurrentTransition, PayoutNotFoundError):
                    # Lost the row to a concurrent writer
                    result.skipped.append(
                        SkippedStatement(
                            statement_id=statement.pk,
                            reason=self._reason_after_race(statement.pk),
                        )
                    )
                    continue
                result.queued_statement_ids.append(statement.pk)

            queued = [s for s in statements if s.pk in result.queued_statement_ids]
            result.needed_by_currency = needed_by_currency(queued, self.fee_calculator)
            for currency, needed in sorted(result.needed_by_currency.items()):
                shortfall = needed - available_by_currency.get(currency, 0)
                if shortfall <= 0:
                    continue
                result.shortfall_by_currency[currency] = shortfall

                ids = [s.pk for s in queued if s.currency == currency]
                receipt = self.balance_guard.request_top_up(
                    shortfall,
                    currency,
                    metadata={"statement_ids": ",".join(str(pk) for pk in ids)[:500]},
                    statement_ids=ids,
                )
                result.top_ups.append(receipt)

        if not result.queued_statement_ids:
            result.outcome = BatchOutcome.NOTHING_TO_SETTLE
            result.queued = False

        arrivals = [
            r.expected_availability_date for r in result.top_ups if r.expected_availability_date
        ]
        result.estimated_arrival = max(arrivals) if arrivals else None

        self.get_logger().info(
            "Batch queued behind top-up",
            extra={
                "queued": len(result.queued_statement_ids),
                "top_ups": [r.id for r in result.top_ups],
                "shortfall_by_currency": result.shortfall_by_currency,
            },
        )
        return result

    def _reason_after_race(self, statement_id: int) -> str:
        return self.skip_reason(Statement.objects.filter(pk=statement_id).first()) or (
            SkipReason.IN_PROGRESS
        )
