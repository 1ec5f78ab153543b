"""
Platform balance checks and top-ups.

BalanceGuard is a query/command pair against the rail: it reports whether
the available balance covers a set of needs and requests top-ups for a
shortfall. It never touches statements.

The check is best-effort. Another transfer can spend the balance between
check and use; Stripe then rejects the transfer and the statement fails.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_CEILING, Decimal
from typing import TYPE_CHECKING

from django.conf import settings

from core.services import BaseService
from payouts.adapters import IdempotencyKeyGenerator
from payouts.exceptions import BalanceInsufficientError, RailError, TopUpCreationError
from payouts.models import PlatformTopUp

if TYPE_CHECKING:
    from collections.abc import Iterable

    from payouts.adapters import PaymentRail


@dataclass
class BalanceCheck:
    """
    Outcome of a sufficiency check, all amounts in minor units.

    Attributes:
        sufficient: Every currency is covered
        needed_by_currency: What was asked for
        available_by_currency: Balance reported by the rail
        shortfall_by_currency: Only currencies that are short
    """

    sufficient: bool
    needed_by_currency: dict[str, int] = field(default_factory=dict)
    available_by_currency: dict[str, int] = field(default_factory=dict)
    shortfall_by_currency: dict[str, int] = field(default_factory=dict)

    def raise_if_short(self) -> None:
        """
        Raises:
            BalanceInsufficientError: If any currency is short
        """
        if self.shortfall_by_currency:
            raise BalanceInsufficientError(
                "Platform balance does not cover the batch",
                shortfall_by_currency=self.shortfall_by_currency,
                details={"available_by_currency": dict(self.available_by_currency)},
            )


@dataclass
class TopUpReceipt:
    """A top-up requested at the rail and recorded as a PlatformTopUp."""

    id: str
    amount_cents: int
    currency: str
    shortfall_cents: int
    expected_availability_date: datetime | None = None


class BalanceGuard(BaseService):
    """
    Compare needs against the platform balance and fund shortfalls.

    Args:
        rail: Payment rail
        buffer_rate: Overrides PAYOUT_TOPUP_BUFFER_RATE (default 0.05)
    """

    def __init__(self, rail: PaymentRail, buffer_rate: Decimal | str | None = None):
        self.rail = rail
        rate = buffer_rate
        if rate is None:
            rate = getattr(settings, "PAYOUT_TOPUP_BUFFER_RATE", "0.05")
        self.buffer_rate = Decimal(str(rate))

    def check_sufficiency(self, needed_by_currency: dict[str, int]) -> BalanceCheck:
        """
        Query the rail for every currency in the request.

        Raises:
            RailError: If the balance could not be read
        """
        available: dict[str, int] = {}
        shortfall: dict[str, int] = {}

        for currency, needed in needed_by_currency.items():
            available[currency] = self.rail.retrieve_balance(currency)
            if needed > available[currency]:
                shortfall[currency] = needed - available[currency]

        check = BalanceCheck(
            sufficient=not shortfall,
            needed_by_currency=dict(needed_by_currency),
            available_by_currency=available,
            shortfall_by_currency=shortfall,
        )
        self.get_logger().info(
            "Balance checked",
            extra={
                "sufficient": check.sufficient,
                "needed_by_currency": check.needed_by_currency,
                "available_by_currency": available,
                "shortfall_by_currency": shortfall,
            },
        )
        return check

    def top_up_amount(self, shortfall_cents: int) -> int:
        """Shortfall plus buffer, rounded up to the next minor unit."""
        amount = Decimal(shortfall_cents) * (Decimal("1") + self.buffer_rate)
        return int(amount.to_integral_value(rounding=ROUND_CEILING))

    def request_top_up(
        self,
        shortfall_cents: int,
        currency: str,
        metadata: dict[str, str] | None = None,
        statement_ids: Iterable[int] = (),
    ) -> TopUpReceipt:
        """
        Create a top-up covering the shortfall and record it.

        The idempotency key is derived from the queued statements, the
        currency and the amount, so resubmitting the same batch after a
        lost response replays the original top-up.

        Raises:
            TopUpCreationError: If the rail refused or failed the top-up
        """
        statement_ids = sorted(int(pk) for pk in statement_ids)
        amount_cents = self.top_up_amount(shortfall_cents)
        batch_digest = hashlib.sha256(
            ",".join(str(pk) for pk in statement_ids).encode()
        ).hexdigest()[:16]
        idempotency_key = IdempotencyKeyGenerator.generate(
            operation="top_up",
            entity_id=f"{currency}:{amount_cents}:{batch_digest}",
        )
        rail_metadata = {
            "purpose": "owner_payout_funding",
            "shortfall_cents": str(shortfall_cents),
            "statement_count": str(len(statement_ids)),
            **(metadata or {}),
        }

        try:
            result = self.rail.create_top_up(
                amount_cents=amount_cents,
                currency=currency,
                idempotency_key=idempotency_key,
                metadata=rail_metadata,
            )
        except RailError as e:
            self.get_logger().error(
                "Top-up creation failed",
                extra={
                    "currency": currency,
                    "amount_cents": amount_cents,
                    "kind": e.kind.value,
                    "error": e.message,
                },
            )
            raise TopUpCreationError(
                f"Could not create top-up: {e.message}",
                details={
                    "currency": currency,
                    "amount_cents": amount_cents,
                    "shortfall_cents": shortfall_cents,
                    "rail_error_code": e.error_code,
                },
            ) from e

        PlatformTopUp.objects.update_or_create(
            stripe_topup_id=result.id,
            defaults={
                "amount_cents": result.amount_cents,
                "shortfall_cents": shortfall_cents,
                "currency": currency,
                "statement_ids": statement_ids,
                "expected_availability_date": result.expected_availability_date,
            },
        )

        self.get_logger().info(
            "Top-up requested",
            extra={
                "topup_id": result.id,
                "currency": currency,
                "amount_cents": result.amount_cents,
                "shortfall_cents": shortfall_cents,
            },
        )
        return TopUpReceipt(
            id=result.id,
            amount_cents=result.amount_cents,
            currency=currency,
            shortfall_cents=shortfall_cents,
            expected_availability_date=result.expected_availability_date,
        )
