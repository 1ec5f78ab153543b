"""
Pytest fixtures for payout tests.

The rail is a MagicMock injected into the services; by default it reports
a large balance and returns successful transfers, charges and top-ups.
Override `mock_rail.<method>.side_effect` / `return_value` per test.

Usage:
    def test_settle(engine, final_statement, mock_rail):
        result = engine.settlement.settle(final_statement.pk)
        mock_rail.create_transfer.assert_called_once()
"""

import datetime
import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from payouts.adapters import (
    AccountLinkResult,
    AccountSnapshot,
    ChargeResult,
    TopUpResult,
    TransferResult,
)
from payouts.services import build_settlement_engine
from payouts.state_machines import PayoutStatus
from properties.tests.factories import ListingFactory, ListingGroupFactory
from statements.tests.factories import StatementFactory


# =============================================================================
# Rail Fixtures
# =============================================================================


@pytest.fixture
def mock_rail():
    """PaymentRail double with successful defaults."""
    rail = MagicMock()
    rail.retrieve_balance.return_value = 10_000_000

    def create_transfer(
        amount_cents,
        currency,
        destination_account_id,
        idempotency_key,
        metadata=None,
    ):
        return TransferResult(
            id=f"tr_mock_{uuid.uuid4().hex[:8]}",
            amount_cents=amount_cents,
            currency=currency,
            destination_account=destination_account_id,
        )

    def create_charge(
        amount_cents,
        currency,
        source_account_id,
        idempotency_key,
        metadata=None,
    ):
        return ChargeResult(
            id=f"py_mock_{uuid.uuid4().hex[:8]}",
            amount_cents=amount_cents,
            currency=currency,
            source_account=source_account_id,
        )

    def create_top_up(amount_cents, currency, idempotency_key, metadata=None):
        return TopUpResult(
            id=f"tu_mock_{uuid.uuid4().hex[:8]}",
            amount_cents=amount_cents,
            currency=currency,
            status="pending",
            expected_availability_date=datetime.datetime(
                2026, 10, 20, tzinfo=datetime.timezone.utc
            ),
        )

    rail.create_transfer.side_effect = create_transfer
    rail.create_charge.side_effect = create_charge
    rail.create_top_up.side_effect = create_top_up
    rail.retrieve_account.side_effect = lambda account_id: AccountSnapshot(
        id=account_id,
        charges_enabled=True,
        payouts_enabled=True,
        details_submitted=True,
    )
    rail.create_account_link.return_value = AccountLinkResult(
        url="https://connect.stripe.com/setup/e/acct_mock/abc",
    )
    return rail


@pytest.fixture
def engine(db, mock_rail):
    """Settlement engine wired around the mock rail."""
    return build_settlement_engine(rail=mock_rail)


# =============================================================================
# Listing Fixtures
# =============================================================================


@pytest.fixture
def listing(db):
    """Listing with a verified Connect account."""
    return ListingFactory(stripe_account_id="acct_listing")


@pytest.fixture
def listing_without_account(db):
    return ListingFactory(stripe_account_id=None)


@pytest.fixture
def group_with_account(db):
    return ListingGroupFactory(stripe_account_id="acct_group")


# =============================================================================
# Statement Fixtures
# =============================================================================


@pytest.fixture
def final_statement(db, listing):
    """FINAL statement paying 500.00 to the listing's owner."""
    return StatementFactory(listing=listing, owner_payout=Decimal("500.00"))


@pytest.fixture
def collection_statement(db, listing):
    """FINAL statement collecting 120.00 from the listing's owner."""
    return StatementFactory(listing=listing, owner_payout=Decimal("-120.00"))


@pytest.fixture
def queued_statement(db, listing):
    return StatementFactory(listing=listing, payout_status=PayoutStatus.QUEUED)


@pytest.fixture
def paid_statement(db, listing):
    return StatementFactory(
        listing=listing,
        payout_status=PayoutStatus.PAID,
        payout_transfer_id="tr_existing",
        stripe_fee=Decimal("1.25"),
        total_transfer_amount=Decimal("501.25"),
    )
