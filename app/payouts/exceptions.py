"""
Payout-specific exceptions for settlement operations.

Exception Hierarchy:
    PayoutError (base for payout domain)
    ├── PayoutNotFoundError - Statement or listing lookup failures
    ├── PayoutValidationError - Zero amount, wrong sign, statement not final
    ├── AccountResolutionError - No destination account for a statement
    ├── BalanceInsufficientError - Platform balance short for a batch
    ├── TopUpCreationError - Stripe refused or failed the top-up
    └── RailError - Base for all payment rail failures
        ├── RailAuthenticationError - Bad API key (kind=auth)
        ├── RailRateLimitError - Rate limited (kind=rate_limit)
        ├── RailInsufficientFundsError - Rail-side over-spend (kind=insufficient_funds)
        ├── RailInvalidAccountError - Destination account unusable
        ├── RailInvalidRequestError - Invalid parameters
        ├── RailUnavailableError - Stripe 5xx (outcome unknown)
        └── RailTimeoutError - Network failure or timeout (outcome unknown)

    SettlementConflictError - Lost the conditional status update (ConflictError)
    LockAcquisitionError - Distributed lock held elsewhere (ConflictError)

Rail failures are classified by type and `kind`, never by message text:

    try:
        rail.create_transfer(...)
    except RailError as e:
        if e.kind is RailErrorKind.INSUFFICIENT_FUNDS:
            ...
        if e.outcome_unknown:
            # Stripe may have executed the call; keep the idempotency key
            ...
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


class RailErrorKind(str, enum.Enum):
    """Typed category of a rail failure."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    OTHER = "other"


# =============================================================================
# Payout Domain Exceptions
# =============================================================================


class PayoutError(BaseApplicationError):
    """
    Base exception for all payout operations.

    Example:
        try:
            BalanceGuard(rail).request_top_up(6300, "usd")
        except PayoutError as e:
            logger.error(f"Payout operation failed: {e}")
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "PAYOUT_ERROR"


class PayoutNotFoundError(PayoutError, NotFoundError):
    """Raised when a statement or listing cannot be found."""

    default_error_code: str = "PAYOUT_NOT_FOUND"


class PayoutValidationError(PayoutError, ValidationError):
    """
    Raised when a statement is not eligible for settlement.

    Use for:
    - Zero owner payout
    - Requested operation does not match the payout sign
    - Statement is not final

    No persisted state changes accompany this error.
    """

    default_error_code: str = "PAYOUT_VALIDATION_ERROR"


class AccountResolutionError(PayoutError, NotFoundError):
    """
    Raised when no destination account can be resolved for a statement.

    The message is one of the resolver's fixed reasons and is persisted
    on the statement as its payout error.
    """

    default_error_code: str = "ACCOUNT_RESOLUTION_ERROR"


class BalanceInsufficientError(PayoutError):
    """
    Raised when the platform balance cannot cover a set of statements.

    Attributes:
        shortfall_by_currency: Missing minor units per currency
    """

    default_error_code: str = "BALANCE_INSUFFICIENT"

    def __init__(
        self,
        message: str,
        shortfall_by_currency: dict[str, int] | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.shortfall_by_currency = dict(shortfall_by_currency or {})
        details = {**(details or {}), "shortfall_by_currency": self.shortfall_by_currency}
        super().__init__(message, error_code=error_code, details=details)


class TopUpCreationError(PayoutError, ExternalServiceError):
    """
    Raised when a platform top-up could not be created.

    Aborts the whole queuing operation; statements keep their prior
    payout status.
    """

    default_error_code: str = "TOPUP_CREATION_FAILED"


# =============================================================================
# Rail Exceptions
# =============================================================================


class RailError(PayoutError, ExternalServiceError):
    """
    Base exception for payment rail failures.

    Attributes:
        kind: Typed category used for branching
        outcome_unknown: True when Stripe may have executed the call even
            though no response was observed (timeouts, connection errors,
            5xx). Retries must reuse the same idempotency key.
        stripe_code: Stripe's error code, when one was returned
    """

    default_error_code: str = "RAIL_ERROR"
    kind: RailErrorKind = RailErrorKind.OTHER
    outcome_unknown: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        details["kind"] = self.kind.value
        if stripe_code:
            details["stripe_code"] = stripe_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code


class RailAuthenticationError(RailError):
    """Stripe rejected the API key. Operational issue, not retryable."""

    default_error_code: str = "RAIL_AUTHENTICATION_ERROR"
    kind = RailErrorKind.AUTH


class RailRateLimitError(RailError):
    """Stripe rate limited the request. Safe to retry later."""

    default_error_code: str = "RAIL_RATE_LIMITED"
    kind = RailErrorKind.RATE_LIMIT


class RailInsufficientFundsError(RailError):
    """
    Platform balance was too low at the moment of the transfer.

    Expected occasionally: the balance check is best-effort and another
    transfer may have spent the funds in between.
    """

    default_error_code: str = "RAIL_INSUFFICIENT_FUNDS"
    kind = RailErrorKind.INSUFFICIENT_FUNDS


class RailInvalidAccountError(RailError):
    """Destination or source Connect account is missing or restricted."""

    default_error_code: str = "RAIL_INVALID_ACCOUNT"


class RailInvalidRequestError(RailError):
    """Stripe rejected the request parameters."""

    default_error_code: str = "RAIL_INVALID_REQUEST"


class RailUnavailableError(RailError):
    """Stripe returned a server error; the call may have executed."""

    default_error_code: str = "RAIL_UNAVAILABLE"
    outcome_unknown = True


class RailTimeoutError(RailError):
    """No response observed before the timeout; the call may have executed."""

    default_error_code: str = "RAIL_TIMEOUT"
    outcome_unknown = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class SettlementConflictError(ConflictError):
    """
    Raised when the conditional status update matched no row.

    Another writer moved the statement first; the loser must not call
    the rail.
    """

    default_error_code: str = "SETTLEMENT_CONFLICT"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        lock = DistributedLock("payouts:drain", ttl=300, blocking=False)
        if not lock.acquire():
            raise LockAcquisitionError(
                "Failed to acquire lock 'payouts:drain'",
                details={"key": "payouts:drain"},
            )
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


__all__ = [
    "RailErrorKind",
    # Payout domain
    "PayoutError",
    "PayoutNotFoundError",
    "PayoutValidationError",
    "AccountResolutionError",
    "BalanceInsufficientError",
    "TopUpCreationError",
    # Rail
    "RailError",
    "RailAuthenticationError",
    "RailRateLimitError",
    "RailInsufficientFundsError",
    "RailInvalidAccountError",
    "RailInvalidRequestError",
    "RailUnavailableError",
    "RailTimeoutError",
    # Concurrency control
    "SettlementConflictError",
    "LockAcquisitionError",
]
