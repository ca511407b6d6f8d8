"""
URL configuration for finance API.

URL Structure:
    Documents:
        /documents/                          GET, POST
        /documents/{id}/                     GET, PATCH, DELETE
        /documents/{id}/issue/               POST
        /documents/{id}/approve/             POST
        /documents/{id}/complete/            POST
        /documents/{id}/cancel/              POST
        /documents/{id}/reopen/              POST
        /documents/{id}/payment-status/      GET
        /documents/{id}/entries/             GET

    Accounts:
        /accounts/                           GET
        /accounts/{id}/                      GET
        /accounts/{id}/balance/              GET
        /accounts/{id}/entries/              GET
        /accounts/{id}/audit/                GET

    Ledger:
        /ledger-entries/{id}/                GET
        /ledger-entries/{id}/reverse/        POST

All URLs are prefixed with /api/v1/finance/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from finance.views import AccountViewSet, DocumentViewSet, LedgerEntryViewSet

router = DefaultRouter()
router.register(r"documents", DocumentViewSet, basename="document")
router.register(r"accounts", AccountViewSet, basename="account")
router.register(r"ledger-entries", LedgerEntryViewSet, basename="ledger-entry")

app_name = "finance"

urlpatterns = [
    path("", include(router.urls)),
]
