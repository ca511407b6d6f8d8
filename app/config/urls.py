"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair
    /api/v1/auth/token/refresh/    - Refresh access token
    /api/v1/finance/               - Finance engine endpoints
        documents/                 - Document list/create
        documents/{id}/            - Document detail/update/soft delete
        documents/{id}/issue/      - Issue an invoice
        documents/{id}/approve/    - Approve a payment voucher
        documents/{id}/complete/   - Complete a voucher with a statement of payment
        documents/{id}/cancel/     - Cancel a document
        documents/{id}/reopen/     - Reopen a cancelled, unposted document
        documents/{id}/payment-status/ - Invoice payment status
        accounts/                  - Account list
        accounts/{id}/balance/     - Materialized account balance
        accounts/{id}/entries/     - Ledger entries for an account
        accounts/{id}/audit/       - Recompute and verify the balance chain (staff)
        ledger-entries/{id}/reverse/ - Post a compensating entry

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Finance
    path("finance/", include("finance.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "WIF Finance Admin"
admin.site.site_title = "WIF Finance"
admin.site.index_title = "Documents, accounts and ledger"
