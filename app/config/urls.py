"""
Root URL configuration for the rental payments service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/payments/              - Payment endpoints
        intents/                   - Create payment intent
        intents/{id}/refund/       - Refund payment (staff)
        intents/{id}/refund-deposit/ - Refund security deposit (staff or owner)
        rentals/{id}/payout/       - Owner payout (staff)
        connect/account/           - Create connected account
        connect/account-link/      - Connected account onboarding link
        webhooks/stripe/           - Stripe webhook endpoint (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Rental Payments Admin"
admin.site.site_title = "Rental Payments"
admin.site.index_title = "Payments operations"
