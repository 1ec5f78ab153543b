"""
Payouts app: the owner payout settlement engine.

Moves a statement's owner payout to or from the owner's Stripe Connect
account, queues batches behind a platform top-up when the balance is
short, and drains the queue once the top-up lands.

Related apps:
    - statements: Statement rows being settled
    - properties: Listing and group payment account configuration

Usage:
    from payouts.services import build_settlement_engine

    engine = build_settlement_engine()
    result = engine.settlement.settle(statement_id)
    batch = engine.batch.fund_and_queue([1, 2, 3])
"""
