"""
Fee and amount computation for settlements.

Pure functions on Decimal; no I/O. Transfers carry a fee on top of the
owner payout, collections move the absolute payout with no fee.

Examples:
    owner_payout 500.00  -> transfer, fee 1.25, total 501.25
    owner_payout -120.00 -> collection, amount 120.00, fee 0.00
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

from payouts.exceptions import PayoutValidationError
from payouts.state_machines import PayoutOperation

CENT = Decimal("0.01")


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer cents, rounding half up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FeeBreakdown:
    """
    Amounts for one settlement.

    Attributes:
        operation: transfer or collection
        amount: Moved to or from the owner (always positive)
        fee: Platform-side fee (0 for collections)
        total: Platform balance consumed (amount + fee)
    """

    operation: str
    amount: Decimal
    fee: Decimal
    total: Decimal

    @property
    def amount_cents(self) -> int:
        return to_minor_units(self.amount)

    @property
    def total_cents(self) -> int:
        return to_minor_units(self.total)


class FeeCalculator:
    """
    Compute fee and totals from a signed owner payout.

    Args:
        transfer_fee_rate: Overrides PAYOUT_TRANSFER_FEE_RATE (default 0.0025)
    """

    def __init__(self, transfer_fee_rate: Decimal | str | None = None):
        rate = transfer_fee_rate
        if rate is None:
            rate = getattr(settings, "PAYOUT_TRANSFER_FEE_RATE", "0.0025")
        self.transfer_fee_rate = Decimal(str(rate))

    def transfer(self, owner_payout: Decimal) -> FeeBreakdown:
        amount = Decimal(owner_payout).quantize(CENT, rounding=ROUND_HALF_UP)
        fee = (amount * self.transfer_fee_rate).quantize(CENT, rounding=ROUND_HALF_UP)
        return FeeBreakdown(
            operation=PayoutOperation.TRANSFER,
            amount=amount,
            fee=fee,
            total=amount + fee,
        )

    def collection(self, owner_payout: Decimal) -> FeeBreakdown:
        amount = abs(Decimal(owner_payout)).quantize(CENT, rounding=ROUND_HALF_UP)
        return FeeBreakdown(
            operation=PayoutOperation.COLLECTION,
            amount=amount,
            fee=Decimal("0.00"),
            total=amount,
        )

    def breakdown(self, owner_payout: Decimal) -> FeeBreakdown:
        """
        Pick the operation from the payout sign.

        Raises:
            PayoutValidationError: For a zero payout
        """
        owner_payout = Decimal(owner_payout)
        if owner_payout > 0:
            return self.transfer(owner_payout)
        if owner_payout < 0:
            return self.collection(owner_payout)
        raise PayoutValidationError(
            "Owner payout is zero; nothing to settle",
            details={"owner_payout": str(owner_payout)},
        )
