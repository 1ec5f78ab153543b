"""
Stripe implementation of the payment rail.

All Stripe calls made by the payout engine go through StripeAdapter so
that timeouts, idempotency keys, logging and error translation are
uniform.

Features:
- Explicit timeout on every API call (STRIPE_API_TIMEOUT_SECONDS)
- Stripe SDK errors translated to typed RailError subclasses
- Structured logging with timing metrics

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payouts.adapters import StripeAdapter

    rail = StripeAdapter()
    available = rail.retrieve_balance("usd")
    transfer = rail.create_transfer(
        amount_cents=50125,
        currency="usd",
        destination_account_id="acct_123",
        idempotency_key="settle_transfer:42:1:a1b2c3d4",
    )
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import stripe
from django.conf import settings

from payouts.adapters.rail import (
    AccountLinkResult,
    AccountSnapshot,
    ChargeResult,
    TopUpResult,
    TransferResult,
)
from payouts.exceptions import (
    RailAuthenticationError,
    RailError,
    RailInsufficientFundsError,
    RailInvalidAccountError,
    RailInvalidRequestError,
    RailRateLimitError,
    RailTimeoutError,
    RailUnavailableError,
)

if TYPE_CHECKING:
    from typing import Any


# Stripe error codes meaning the platform balance can't cover the call
INSUFFICIENT_FUNDS_CODES = frozenset({"balance_insufficient", "insufficient_funds"})

# Stripe error codes and params that point at the Connect account
ACCOUNT_ERROR_CODES = frozenset(
    {"account_invalid", "account_closed", "no_account", "account_country_invalid_address"}
)
ACCOUNT_PARAMS = frozenset({"destination", "source", "account"})


def _from_timestamp(value: int | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class StripeAdapter:
    """
    Payment rail backed by Stripe Connect.

    Stateless apart from its configuration; one instance can be shared
    between services and Celery workers.

    Args:
        api_key: Overrides STRIPE_SECRET_KEY
        timeout: Overrides STRIPE_API_TIMEOUT_SECONDS
    """

    def __init__(self, api_key: str | None = None, timeout: int | None = None):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.timeout = timeout or getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)

    # =========================================================================
    # Configuration
    # =========================================================================

    def _configure_stripe(self) -> None:
        """Configure the Stripe client with API key and timeout."""
        stripe.api_key = self.api_key
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def _call(self, operation: str, log_context: dict[str, Any], func, **params):
        """
        Run one Stripe call with timing logs and error translation.

        Raises:
            RailError: Typed translation of any failure
        """
        self._configure_stripe()
        logger = self.get_logger()
        log_context = {"operation": operation, **log_context}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            response = func(**params)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "stripe_object_id": getattr(response, "id", None),
                "duration_ms": duration_ms,
            },
        )
        return response

    # =========================================================================
    # Balance & Top-ups
    # =========================================================================

    def retrieve_balance(self, currency: str) -> int:
        """
        Available platform balance for one currency, in minor units.

        Sums every `available` entry for the currency (card and bank
        source types are reported separately). Never cached.
        """
        balance = self._call(
            "retrieve_balance",
            {"currency": currency},
            stripe.Balance.retrieve,
        )
        return sum(
            entry["amount"]
            for entry in balance["available"]
            if entry["currency"] == currency.lower()
        )

    def create_top_up(
        self,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> TopUpResult:
        """
        Top up the platform balance from the platform's bank account.

        Raises:
            RailError: Stripe refused or failed the top-up
        """
        topup = self._call(
            "create_top_up",
            {
                "amount_cents": amount_cents,
                "currency": currency,
                "idempotency_key": idempotency_key,
            },
            stripe.Topup.create,
            amount=amount_cents,
            currency=currency,
            description="Owner payout funding",
            metadata=metadata or {},
            idempotency_key=idempotency_key,
        )
        return TopUpResult(
            id=topup.id,
            amount_cents=topup.amount,
            currency=topup.currency,
            status=topup.status,
            expected_availability_date=_from_timestamp(
                getattr(topup, "expected_availability_date", None)
            ),
            raw_response=topup.to_dict(),
        )

    # =========================================================================
    # Money Movement
    # =========================================================================

    def create_transfer(
        self,
        amount_cents: int,
        currency: str,
        destination_account_id: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
        description: str | None = None,
    ) -> TransferResult:
        """
        Transfer funds from the platform balance to a connected account.

        Raises:
            RailInvalidAccountError: Destination account unusable
            RailInsufficientFundsError: Platform balance too low
        """
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency,
            "destination": destination_account_id,
            "metadata": metadata or {},
            "idempotency_key": idempotency_key,
        }
        if description:
            params["description"] = description

        transfer = self._call(
            "create_transfer",
            {
                "amount_cents": amount_cents,
                "destination_account": destination_account_id,
                "idempotency_key": idempotency_key,
            },
            stripe.Transfer.create,
            **params,
        )
        return TransferResult(
            id=transfer.id,
            amount_cents=transfer.amount,
            currency=transfer.currency,
            destination_account=transfer.destination,
            raw_response=transfer.to_dict(),
        )

    def create_charge(
        self,
        amount_cents: int,
        currency: str,
        source_account_id: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
        description: str | None = None,
    ) -> ChargeResult:
        """
        Debit a connected account into the platform balance.

        Uses a Charge with the account id as source (Connect account debit).

        Raises:
            RailInvalidAccountError: Source account unusable
            RailInsufficientFundsError: Connected account balance too low
        """
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency,
            "source": source_account_id,
            "metadata": metadata or {},
            "idempotency_key": idempotency_key,
        }
        if description:
            params["description"] = description

        charge = self._call(
            "create_charge",
            {
                "amount_cents": amount_cents,
                "source_account": source_account_id,
                "idempotency_key": idempotency_key,
            },
            stripe.Charge.create,
            **params,
        )
        return ChargeResult(
            id=charge.id,
            amount_cents=charge.amount,
            currency=charge.currency,
            source_account=source_account_id,
            raw_response=charge.to_dict(),
        )

    # =========================================================================
    # Connect Accounts
    # =========================================================================

    def retrieve_account(self, account_id: str) -> AccountSnapshot:
        account = self._call(
            "retrieve_account",
            {"account_id": account_id},
            stripe.Account.retrieve,
            id=account_id,
        )
        return self.snapshot_from_payload(account.to_dict())

    @staticmethod
    def snapshot_from_payload(payload: dict[str, Any]) -> AccountSnapshot:
        """Build an AccountSnapshot from an Account object dict (API or webhook)."""
        return AccountSnapshot(
            id=payload["id"],
            charges_enabled=bool(payload.get("charges_enabled")),
            payouts_enabled=bool(payload.get("payouts_enabled")),
            details_submitted=bool(payload.get("details_submitted")),
            requirements=dict(payload.get("requirements") or {}),
        )

    def create_account_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> AccountLinkResult:
        link = self._call(
            "create_account_link",
            {"account_id": account_id},
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return AccountLinkResult(
            url=link.url,
            expires_at=_from_timestamp(getattr(link, "expires_at", None)),
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Raises:
            RailInvalidRequestError: Invalid signature or payload
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe.SignatureVerificationError as e:
            raise RailInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            )
        except ValueError as e:
            raise RailInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            )
        return event.to_dict()

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to typed rail errors.

        Classification uses the SDK exception type and Stripe's error
        `code`/`param` fields only.

        Raises:
            RailInsufficientFundsError: Balance too low at Stripe
            RailInvalidAccountError: Connect account missing or restricted
            RailInvalidRequestError: Invalid request parameters
            RailRateLimitError: Rate limited
            RailAuthenticationError: API key rejected
            RailTimeoutError: No response observed (outcome unknown)
            RailUnavailableError: Stripe server error (outcome unknown)
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, RailError):
            raise error

        code = getattr(error, "code", None)

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "stripe_code": code, "decline_code": decline_code},
            )
            if code in INSUFFICIENT_FUNDS_CODES or decline_code in INSUFFICIENT_FUNDS_CODES:
                raise RailInsufficientFundsError(
                    str(error.user_message or error), stripe_code=code
                )
            raise RailInvalidRequestError(str(error.user_message or error), stripe_code=code)

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": code},
            )
            if code in INSUFFICIENT_FUNDS_CODES:
                raise RailInsufficientFundsError(str(error), stripe_code=code)
            if code in ACCOUNT_ERROR_CODES or getattr(error, "param", None) in ACCOUNT_PARAMS:
                raise RailInvalidAccountError(str(error), stripe_code=code)
            raise RailInvalidRequestError(str(error), stripe_code=code)

        elif isinstance(error, stripe.IdempotencyError):
            logger.error(
                "Idempotency key reused with different parameters",
                extra=log_context,
            )
            raise RailInvalidRequestError(str(error), stripe_code="idempotency_error")

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise RailRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            )

        elif isinstance(error, (stripe.AuthenticationError, stripe.PermissionError)):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise RailAuthenticationError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            )

        elif isinstance(error, stripe.APIConnectionError):
            # Covers timeouts: the request may have reached Stripe
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise RailTimeoutError(
                "No response from Stripe before the timeout. The operation may have completed.",
                stripe_code="api_connection_error",
            )

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise RailUnavailableError(
                "Stripe service error. The operation may have completed.",
                stripe_code="api_error",
            )

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise RailUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            )
