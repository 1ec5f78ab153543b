"""
URL configuration for the payout platform.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/payouts/               - Payout endpoints (staff only)
        statements/{id}/settle/    - Settle one statement
        statements/fund-and-queue/ - Settle a batch or queue it behind a top-up
        process-queued/            - Drain queued statements
        accounts/{id}/refresh/     - Refresh connected account status
        listings/{id}/onboarding-link/ - Create Connect onboarding link
        listings/{id}/status/      - Stored payout account status
        webhooks/stripe/           - Stripe webhook endpoint (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

api_v1_patterns = [
    path("payouts/", include("payouts.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Owner Payouts Admin"
admin.site.site_title = "Owner Payouts"
admin.site.index_title = "Settlement administration"
