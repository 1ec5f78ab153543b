"""
Settlement engine services.

This module provides:
- AccountResolver: Finds the Connect account a statement settles against
- FeeCalculator: Transfer fee and totals
- BalanceGuard: Platform balance checks and top-ups
- SettlementService: Settles one statement
- BatchCoordinator: Settles a batch now or queues it behind a top-up
- QueueDrainer: Settles queued statements once funds land
- AccountStatusService: Onboarding status and links

Every service that talks to the rail receives it through its constructor.
build_settlement_engine() wires the production graph.

Usage:
    from payouts.services import build_settlement_engine

    engine = build_settlement_engine()
    engine.settlement.settle(statement_id)
    engine.batch.fund_and_queue([1, 2, 3])
    engine.drainer.drain()
    engine.accounts.refresh_account_status("acct_123")

    # Tests inject a double
    engine = build_settlement_engine(rail=mock_rail)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from payouts.services.account_resolver import AccountResolver
from payouts.services.account_status_service import (
    AccountStatusService,
    AccountStatusUpdate,
    ListingPayoutStatus,
    OnboardingLink,
    derive_onboarding_status,
)
from payouts.services.balance_guard import BalanceCheck, BalanceGuard, TopUpReceipt
from payouts.services.batch_coordinator import (
    BatchCoordinator,
    BatchItemResult,
    BatchOutcome,
    FundAndQueueResult,
    SkippedStatement,
    SkipReason,
)
from payouts.services.fee_calculator import FeeBreakdown, FeeCalculator, to_minor_units
from payouts.services.queue_drainer import DrainResult, QueueDrainer
from payouts.services.settlement_service import SettlementReceipt, SettlementService

if TYPE_CHECKING:
    from payouts.adapters import PaymentRail


@dataclass
class SettlementEngine:
    """The wired service graph, all sharing one rail."""

    rail: PaymentRail
    settlement: SettlementService
    balance_guard: BalanceGuard
    batch: BatchCoordinator
    drainer: QueueDrainer
    accounts: AccountStatusService


def build_settlement_engine(rail: PaymentRail | None = None) -> SettlementEngine:
    """Build the services around `rail`, defaulting to a StripeAdapter."""
    if rail is None:
        from payouts.adapters import StripeAdapter

        rail = StripeAdapter()

    settlement = SettlementService(
        rail,
        account_resolver=AccountResolver(),
        fee_calculator=FeeCalculator(),
    )
    balance_guard = BalanceGuard(rail)
    return SettlementEngine(
        rail=rail,
        settlement=settlement,
        balance_guard=balance_guard,
        batch=BatchCoordinator(settlement, balance_guard),
        drainer=QueueDrainer(settlement, balance_guard),
        accounts=AccountStatusService(rail),
    )


__all__ = [
    "AccountResolver",
    "AccountStatusService",
    "AccountStatusUpdate",
    "BalanceCheck",
    "BalanceGuard",
    "BatchCoordinator",
    "BatchItemResult",
    "BatchOutcome",
    "DrainResult",
    "FeeBreakdown",
    "FeeCalculator",
    "FundAndQueueResult",
    "ListingPayoutStatus",
    "OnboardingLink",
    "QueueDrainer",
    "SettlementEngine",
    "SettlementReceipt",
    "SettlementService",
    "SkipReason",
    "SkippedStatement",
    "TopUpReceipt",
    "build_settlement_engine",
    "derive_onboarding_status",
]
