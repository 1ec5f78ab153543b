"""
Tests for FeeCalculator and to_minor_units.
"""

from decimal import Decimal

import pytest

from payouts.exceptions import PayoutValidationError
from payouts.services import FeeCalculator, to_minor_units
from payouts.state_machines import PayoutOperation


class TestTransferFees:
    def test_fee_is_quarter_percent_on_top(self):
        """Should add a 0.25% fee on top of the owner amount."""
        fees = FeeCalculator(transfer_fee_rate="0.0025").transfer(Decimal("500.00"))

        assert fees.operation == PayoutOperation.TRANSFER
        assert fees.amount == Decimal("500.00")
        assert fees.fee == Decimal("1.25")
        assert fees.total == Decimal("501.25")
        assert fees.total_cents == 50125

    def test_fee_rounds_half_up(self):
        """Should round the fee half up to the cent."""
        # 0.0025 * 2.00 = 0.005 -> 0.01
        fees = FeeCalculator(transfer_fee_rate="0.0025").transfer(Decimal("2.00"))

        assert fees.fee == Decimal("0.01")
        assert fees.total == Decimal("2.01")

    def test_rate_defaults_to_settings(self, settings):
        """Should read the fee rate from settings by default."""
        settings.PAYOUT_TRANSFER_FEE_RATE = "0.01"

        fees = FeeCalculator().transfer(Decimal("100.00"))

        assert fees.fee == Decimal("1.00")


class TestCollectionFees:
    def test_collection_moves_absolute_amount_without_fee(self):
        """Should collect the absolute amount with no fee."""
        fees = FeeCalculator().collection(Decimal("-120.00"))

        assert fees.operation == PayoutOperation.COLLECTION
        assert fees.amount == Decimal("120.00")
        assert fees.fee == Decimal("0.00")
        assert fees.total == Decimal("120.00")
        assert fees.amount_cents == 12000


class TestBreakdown:
    def test_positive_payout_is_transfer(self):
        """Should classify a positive payout as a transfer."""
        assert FeeCalculator().breakdown(Decimal("10")).operation == PayoutOperation.TRANSFER

    def test_negative_payout_is_collection(self):
        """Should classify a negative payout as a collection."""
        assert FeeCalculator().breakdown(Decimal("-10")).operation == PayoutOperation.COLLECTION

    def test_zero_payout_rejected(self):
        """Should reject a zero payout."""
        with pytest.raises(PayoutValidationError) as exc_info:
            FeeCalculator().breakdown(Decimal("0.00"))

        assert exc_info.value.error_code == "PAYOUT_VALIDATION_ERROR"


class TestToMinorUnits:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (Decimal("501.25"), 50125),
            (Decimal("0.005"), 1),
            (Decimal("0.004"), 0),
            (Decimal("-120.00"), -12000),
        ],
    )
    def test_converts_half_up(self, amount, expected):
        """Should convert to minor units rounding half up."""
        assert to_minor_units(amount) == expected
