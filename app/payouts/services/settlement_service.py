"""
Settlement of a single statement.

The SettlementService moves one statement's owner payout over the rail:
a transfer to the owner's Connect account for a positive payout, a debit
of that account for a negative one.

Like the rest of the engine it follows a claim / call / record pattern:
1. Claim: transition payout_status to PENDING in a short transaction.
   The conditional update means only one caller can claim a statement.
2. Call: invoke the rail OUTSIDE any transaction, with an idempotency key.
3. Record: transition to PAID / COLLECTED / FAILED in a second transaction.

Usage:
    from payouts.services import build_settlement_engine

    result = build_settlement_engine().settlement.settle(statement_id)
    if result.success:
        print(result.data.transfer_id)
    elif result.error_code == "SETTLEMENT_IN_PROGRESS":
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import DatabaseError, transaction
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from core.services import BaseService, ServiceResult
from payouts.adapters import IdempotencyKeyGenerator
from payouts.exceptions import (
    AccountResolutionError,
    PayoutNotFoundError,
    PayoutValidationError,
    RailError,
    SettlementConflictError,
)
from payouts.locks import lock_statement
from payouts.services.account_resolver import AccountResolver
from payouts.services.fee_calculator import FeeBreakdown, FeeCalculator
from payouts.state_machines import PayoutOperation, PayoutStatus
from statements.models import Statement

if TYPE_CHECKING:
    from payouts.adapters import PaymentRail


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class SettlementReceipt:
    """
    Outcome of a successful (or previously completed) settlement.

    Attributes:
        statement_id: Settled statement
        operation: transfer or collection
        payout_status: paid or collected
        transfer_id: Stripe transfer or charge id
        amount: Moved to or from the owner
        fee: Fee added on top (0 for collections)
        total: Platform balance consumed
        destination_account_id: Connect account used, when known
        already_settled: True when no rail call was made
    """

    statement_id: int
    operation: str
    payout_status: str
    transfer_id: str | None
    amount: Decimal
    fee: Decimal | None
    total: Decimal | None
    currency: str
    paid_at: datetime | None = None
    destination_account_id: str | None = None
    already_settled: bool = False

    @classmethod
    def from_statement(cls, statement: Statement, **overrides) -> SettlementReceipt:
        operation = (
            PayoutOperation.COLLECTION
            if statement.payout_status == PayoutStatus.COLLECTED
            else PayoutOperation.TRANSFER
        )
        values = {
            "statement_id": statement.pk,
            "operation": operation,
            "payout_status": statement.payout_status,
            "transfer_id": statement.payout_transfer_id,
            "amount": abs(statement.owner_payout),
            "fee": statement.stripe_fee,
            "total": statement.total_transfer_amount,
            "currency": statement.currency,
            "paid_at": statement.paid_at,
        }
        values.update(overrides)
        return cls(**values)


# =============================================================================
# Settlement Service
# =============================================================================


class SettlementService(BaseService):
    """
    Execute one statement's transfer or collection.

    Error Handling:
        - Validation failures: returned, nothing persisted
        - Account resolution failure: statement marked FAILED, returned
        - Lost claim race: returned as SETTLEMENT_CONFLICT, rail not called
        - Rail errors: statement marked FAILED, returned; no automatic retry

    Idempotency:
        The rail key is built from the statement id, the operation and
        payout_attempt. payout_attempt only advances after a failure whose
        outcome at Stripe is known, so a retry after a timeout replays the
        original request instead of moving money twice.

    Args:
        rail: Payment rail
        account_resolver: Defaults to AccountResolver()
        fee_calculator: Defaults to FeeCalculator()
    """

    def __init__(
        self,
        rail: PaymentRail,
        account_resolver: AccountResolver | None = None,
        fee_calculator: FeeCalculator | None = None,
    ):
        self.rail = rail
        self.account_resolver = account_resolver or AccountResolver()
        self.fee_calculator = fee_calculator or FeeCalculator()

    def settle(
        self,
        statement_id: int,
        operation: str | None = None,
    ) -> ServiceResult[SettlementReceipt]:
        """
        Settle a statement.

        Args:
            statement_id: Statement to settle
            operation: Optional expected direction (transfer/collection);
                rejected when it contradicts the payout sign

        Returns:
            ServiceResult containing SettlementReceipt on success. Calling
            again on a settled statement returns the stored receipt with
            already_settled=True and makes no rail call.
        """
        logger = self.get_logger()
        log_context = {"statement_id": statement_id, "requested_operation": operation}

        # Step 1: Read the persisted statement
        statement = Statement.objects.filter(pk=statement_id).first()
        if statement is None:
            error = PayoutNotFoundError(
                f"Statement {statement_id} not found",
                error_code="STATEMENT_NOT_FOUND",
            )
            return ServiceResult.failure(error.message, error_code=error.error_code)

        if statement.is_settled:
            logger.info("Statement already settled", extra=log_context)
            return ServiceResult.success(
                SettlementReceipt.from_statement(statement, already_settled=True)
            )

        if statement.payout_status == PayoutStatus.PENDING:
            logger.info("Settlement already in progress", extra=log_context)
            return ServiceResult.failure(
                "Settlement is already in progress for this statement",
                error_code="SETTLEMENT_IN_PROGRESS",
            )

        # Step 2: Validate
        try:
            fees = self.validate(statement, operation)
        except PayoutValidationError as e:
            logger.info(
                "Statement failed settlement validation",
                extra={**log_context, "error": e.message},
            )
            return ServiceResult.failure(e.message, error_code=e.error_code)

        # Step 3: Resolve the destination account
        try:
            account_id = self.account_resolver.resolve(statement)
        except AccountResolutionError as e:
            self._record_failure(statement_id, e.message, advance_attempt=False)
            return ServiceResult.failure(e.message, error_code=e.error_code)

        # Step 4: Claim the statement (conditional status update)
        try:
            with transaction.atomic():
                statement = lock_statement(statement_id)
                try:
                    statement.start_settlement()
                    statement.save()
                except (TransitionNotAllowed, ConcurrentTransition) as e:
                    raise SettlementConflictError(
                        "Statement was claimed or changed by another process",
                        details={"statement_id": statement_id},
                    ) from e
        except SettlementConflictError as e:
            logger.warning(
                "Lost settlement claim to a concurrent writer",
                extra=log_context,
            )
            return ServiceResult.from_exception(e)
        except PayoutNotFoundError as e:
            return ServiceResult.failure(e.message, error_code=e.error_code)

        # Steps 5-6: Call the rail outside the transaction
        idempotency_key = IdempotencyKeyGenerator.generate(
            operation=f"settle_{fees.operation}",
            entity_id=statement.pk,
            attempt=statement.payout_attempt,
        )
        log_context.update(
            {
                "operation": fees.operation,
                "amount_cents": fees.amount_cents,
                "destination_account": account_id,
                "idempotency_key": idempotency_key,
            }
        )
        logger.info("Calling rail for settlement", extra=log_context)

        try:
            reference = self._call_rail(statement, fees, account_id, idempotency_key)
        except RailError as e:
            logger.error(
                "Rail rejected settlement",
                extra={
                    **log_context,
                    "kind": e.kind.value,
                    "outcome_unknown": e.outcome_unknown,
                    "error": e.message,
                },
            )
            # Keep the key after an unobserved outcome so a retry replays it
            self._record_failure(
                statement_id, e.message, advance_attempt=not e.outcome_unknown
            )
            return ServiceResult.failure(e.message, error_code=e.error_code)

        # Step 7: Record the outcome
        try:
            with transaction.atomic():
                statement = lock_statement(statement_id)
                if fees.operation == PayoutOperation.TRANSFER:
                    statement.mark_paid(reference, fees.fee, fees.total)
                else:
                    statement.mark_collected(reference, fees.amount)
                statement.save()
        except (TransitionNotAllowed, ConcurrentTransition, DatabaseError, PayoutNotFoundError):
            # Money moved but the row was not updated; needs manual reconciliation
            logger.critical(
                "Rail settlement succeeded but statement was not updated",
                extra={**log_context, "transfer_id": reference},
                exc_info=True,
            )
            return ServiceResult.success(
                SettlementReceipt(
                    statement_id=statement_id,
                    operation=fees.operation,
                    payout_status=PayoutStatus.PENDING,
                    transfer_id=reference,
                    amount=fees.amount,
                    fee=fees.fee,
                    total=fees.total,
                    currency=statement.currency,
                    destination_account_id=account_id,
                )
            )

        logger.info(
            "Statement settled",
            extra={**log_context, "transfer_id": reference},
        )
        return ServiceResult.success(
            SettlementReceipt.from_statement(
                statement,
                operation=fees.operation,
                amount=fees.amount,
                destination_account_id=account_id,
            )
        )

    def validate(self, statement: Statement, operation: str | None = None) -> FeeBreakdown:
        """
        Check eligibility and return the fee breakdown.

        Raises:
            PayoutValidationError: Not final, zero payout, or wrong direction
        """
        if not statement.is_final:
            raise PayoutValidationError(
                "Statement must be final before it can be settled",
                details={"statement_id": statement.pk, "status": statement.status},
            )

        fees = self.fee_calculator.breakdown(statement.owner_payout)

        if operation is not None and operation != fees.operation:
            raise PayoutValidationError(
                f"Cannot {operation} a payout of {statement.owner_payout}",
                details={
                    "statement_id": statement.pk,
                    "requested_operation": operation,
                    "owner_payout": str(statement.owner_payout),
                },
            )
        return fees

    def _call_rail(
        self,
        statement: Statement,
        fees: FeeBreakdown,
        account_id: str,
        idempotency_key: str,
    ) -> str:
        metadata = self.build_metadata(statement)
        if fees.operation == PayoutOperation.TRANSFER:
            result = self.rail.create_transfer(
                amount_cents=fees.amount_cents,
                currency=statement.currency,
                destination_account_id=account_id,
                idempotency_key=idempotency_key,
                metadata=metadata,
            )
        else:
            result = self.rail.create_charge(
                amount_cents=fees.amount_cents,
                currency=statement.currency,
                source_account_id=account_id,
                idempotency_key=idempotency_key,
                metadata=metadata,
            )
        return result.id

    @staticmethod
    def build_metadata(statement: Statement) -> dict[str, str]:
        """Correlation metadata attached to the rail object (strings only)."""
        metadata = {
            "statement_id": str(statement.pk),
            "owner_name": statement.owner_name or "",
            "property_name": statement.property_name or "",
            "period_start": statement.week_start_date.isoformat()
            if statement.week_start_date
            else "",
            "period_end": statement.week_end_date.isoformat()
            if statement.week_end_date
            else "",
        }
        listing_id = statement.primary_listing_id
        if listing_id is not None:
            metadata["listing_id"] = str(listing_id)
        if statement.group_id:
            metadata["group_id"] = str(statement.group_id)
        return metadata

    def _record_failure(self, statement_id: int, reason: str, advance_attempt: bool) -> None:
        """
        Persist FAILED with the reason.

        A concurrent writer moving the row first wins; the failure is then
        only logged.
        """
        try:
            with transaction.atomic():
                statement = lock_statement(statement_id)
                statement.mark_failed(reason, advance_attempt=advance_attempt)
                statement.save()
        except (TransitionNotAllowed, ConcurrentTransition, PayoutNotFoundError):
            self.get_logger().warning(
                "Could not record settlement failure; statement changed concurrently",
                extra={"statement_id": statement_id, "reason": reason},
            )
