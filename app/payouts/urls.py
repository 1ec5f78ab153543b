"""
URL configuration for the payouts app.

All routes are prefixed with /api/v1/payouts/ when included in the main URLconf.
"""

from django.urls import path

from payouts import views
from payouts.webhooks.views import stripe_webhook

app_name = "payouts"

urlpatterns = [
    # Settlement
    path(
        "statements/<int:statement_id>/settle/",
        views.SettleStatementView.as_view(),
        name="settle_statement",
    ),
    path(
        "statements/fund-and-queue/",
        views.FundAndQueueView.as_view(),
        name="fund_and_queue",
    ),
    path("process-queued/", views.ProcessQueuedView.as_view(), name="process_queued"),
    # Accounts
    path(
        "accounts/<str:account_id>/refresh/",
        views.RefreshAccountStatusView.as_view(),
        name="refresh_account_status",
    ),
    path(
        "listings/<int:listing_id>/onboarding-link/",
        views.ListingOnboardingLinkView.as_view(),
        name="listing_onboarding_link",
    ),
    path(
        "listings/<int:listing_id>/status/",
        views.ListingPayoutStatusView.as_view(),
        name="listing_payout_status",
    ),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
