"""
Properties app: listings and listing groups.

Only the payment account configuration the payout engine reads is
modelled here. Listing CRUD and channel sync live elsewhere.
"""
