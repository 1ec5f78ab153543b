"""
Statements app: owner payout statements.

Statement computation is owned by the reporting pipeline; this app holds
the persisted rows and the payout state machine the settlement engine
drives.
"""
