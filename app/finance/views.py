"""
ViewSets for the finance API.

This module provides REST API endpoints for the finance engine:
- DocumentViewSet: Document CRUD and lifecycle actions
- AccountViewSet: Account listing, balance, entries and audit
- LedgerEntryViewSet: Entry lookup and compensating entries

URL Structure:
    /api/v1/finance/documents/                        GET, POST
    /api/v1/finance/documents/{id}/                   GET, PATCH, DELETE
    /api/v1/finance/documents/{id}/issue/             POST
    /api/v1/finance/documents/{id}/approve/           POST
    /api/v1/finance/documents/{id}/complete/          POST
    /api/v1/finance/documents/{id}/cancel/            POST
    /api/v1/finance/documents/{id}/reopen/            POST
    /api/v1/finance/documents/{id}/payment-status/    GET
    /api/v1/finance/documents/{id}/entries/           GET
    /api/v1/finance/accounts/                         GET
    /api/v1/finance/accounts/{id}/                    GET
    /api/v1/finance/accounts/{id}/balance/            GET
    /api/v1/finance/accounts/{id}/entries/            GET
    /api/v1/finance/accounts/{id}/audit/              GET
    /api/v1/finance/ledger-entries/{id}/              GET
    /api/v1/finance/ledger-entries/{id}/reverse/      POST

Design Decisions:
    - Every write goes through the service layer
    - Failures use the ServiceResult payload and its suggested status
    - Domain exceptions raised by read paths map through to_dict()
    - BrokenInvariant is never caught here and surfaces as a 500
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from core.exceptions import BaseApplicationError
from core.viewset_mixins import SoftDeleteViewSetMixin
from finance.ledger.services import ledger
from finance.models import Account, Document, LedgerEntry
from finance.serializers import (
    AccountSerializer,
    BalanceSerializer,
    CancelSerializer,
    CompleteVoucherSerializer,
    DocumentCreateSerializer,
    DocumentSerializer,
    DocumentUpdateSerializer,
    LedgerAuditSerializer,
    LedgerEntrySerializer,
    PaymentStatusSerializer,
    ReverseEntrySerializer,
    StatementOfPaymentSerializer,
    TransitionSerializer,
)
from finance.services import (
    CompleteVoucherParams,
    SaveDocumentParams,
    account_service,
    document_service,
    reconciliation,
)
from finance.state_machines import DocumentType


def error_response(result) -> Response:
    """Render a failed ServiceResult with its suggested status."""
    return Response(result.to_response(), status=result.http_status)


def exception_response(exc: BaseApplicationError) -> Response:
    return Response(exc.to_dict(), status=exc.http_status)


# =============================================================================
# Documents
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_documents",
        summary="List documents",
        tags=["Finance - Documents"],
        parameters=[
            OpenApiParameter("company", OpenApiTypes.UUID, description="Filter by company"),
            OpenApiParameter("document_type", OpenApiTypes.STR, description="Filter by type"),
            OpenApiParameter("status", OpenApiTypes.STR, description="Filter by status"),
            OpenApiParameter(
                "include_deleted", OpenApiTypes.BOOL, description="Include soft-deleted documents"
            ),
        ],
    ),
    create=extend_schema(
        operation_id="create_document",
        summary="Create document",
        tags=["Finance - Documents"],
        request=DocumentCreateSerializer,
        responses={201: DocumentSerializer},
    ),
    retrieve=extend_schema(
        operation_id="get_document",
        summary="Get document",
        tags=["Finance - Documents"],
    ),
    partial_update=extend_schema(
        operation_id="update_document",
        summary="Update document",
        tags=["Finance - Documents"],
        request=DocumentUpdateSerializer,
        responses={
            200: DocumentSerializer,
            409: OpenApiResponse(description="Stale version or locked field"),
        },
    ),
    destroy=extend_schema(
        operation_id="delete_document",
        summary="Soft delete document",
        tags=["Finance - Documents"],
    ),
)
class DocumentViewSet(
    SoftDeleteViewSetMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for financial documents.

    list:
        Documents, newest first. Filter with ?company=, ?document_type=
        and ?status=.

    create:
        Create an invoice, receipt or payment voucher. A completed
        receipt is posted to its account in the same request.

    partial_update:
        Update a document. "version" must match the stored version.
        Amount, account, currency and line items are locked once posted.

    destroy:
        Soft delete. Ledger entries stay and the balance is unchanged.

    issue / approve / complete / cancel / reopen:
        Lifecycle transitions. complete settles an issued voucher with a
        statement of payment, or completes a draft receipt.

    payment_status:
        Paid amount and balance due for an invoice.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = DocumentSerializer
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    # SoftDeleteViewSetMixin filters this down to live rows
    queryset = (
        Document.all_objects.select_related(
            "invoice",
            "receipt__linked_invoice__document",
            "payment_voucher",
            "statement_of_payment",
        )
        .prefetch_related("line_items")
        .order_by("-created_at")
    )

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("company"):
            queryset = queryset.filter(company_id=params["company"])
        if params.get("document_type"):
            queryset = queryset.filter(document_type=params["document_type"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset

    def get_serializer_class(self):
        if self.action == "create":
            return DocumentCreateSerializer
        if self.action == "partial_update":
            return DocumentUpdateSerializer
        return DocumentSerializer

    def _document_response(self, document, status_code=status.HTTP_200_OK) -> Response:
        # Re-read so variant rows and line items reflect the committed state
        fresh = Document.all_objects.get(pk=document.pk)
        return Response(
            DocumentSerializer(fresh, context=self.get_serializer_context()).data,
            status=status_code,
        )

    def create(self, request):
        """Create a document through the document service."""
        serializer = DocumentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = document_service.save_document(
            SaveDocumentParams(**serializer.params_kwargs(), actor=request.user)
        )
        if not result.success:
            return error_response(result)
        return self._document_response(result.data, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        """Update a document with optimistic locking."""
        document = self.get_object()
        serializer = DocumentUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        kwargs = serializer.params_kwargs()
        expected_version = kwargs.pop("version")
        result = document_service.save_document(
            SaveDocumentParams(
                company_id=document.company_id,
                document_type=document.document_type,
                document_id=document.id,
                expected_version=expected_version,
                actor=request.user,
                **kwargs,
            )
        )
        if not result.success:
            return error_response(result)
        return self._document_response(result.data)

    def destroy(self, request, pk=None):
        """Soft delete a document."""
        document = self.get_object()
        result = document_service.delete(document.id, actor=request.user)
        if not result.success:
            return error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="issue_invoice",
        summary="Issue invoice",
        tags=["Finance - Documents"],
        request=TransitionSerializer,
        responses={200: DocumentSerializer},
    )
    @action(detail=True, methods=["post"])
    def issue(self, request, pk=None):
        """Issue a draft invoice."""
        document = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = document_service.issue(
            document.id,
            actor=request.user,
            expected_version=serializer.validated_data.get("version"),
        )
        if not result.success:
            return error_response(result)
        return self._document_response(result.data)

    @extend_schema(
        operation_id="approve_voucher",
        summary="Approve payment voucher",
        tags=["Finance - Documents"],
        request=TransitionSerializer,
        responses={
            200: DocumentSerializer,
            403: OpenApiResponse(description="Approver lacks the approval permission"),
        },
    )
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        """Approve a draft payment voucher."""
        document = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = document_service.approve_voucher(
            document.id,
            approver=request.user,
            expected_version=serializer.validated_data.get("version"),
        )
        if not result.success:
            return error_response(result)
        return self._document_response(result.data)

    @extend_schema(
        operation_id="complete_document",
        summary="Complete voucher or receipt",
        description=(
            "For an issued payment voucher, creates the statement of payment and "
            "deducts voucher total plus fee from the account (201). For a draft "
            "receipt, completes it and posts the amount (200)."
        ),
        tags=["Finance - Documents"],
        request=CompleteVoucherSerializer,
        responses={
            200: DocumentSerializer,
            201: StatementOfPaymentSerializer,
            409: OpenApiResponse(description="Voucher not issued or already settled"),
            422: OpenApiResponse(description="Insufficient balance"),
        },
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        """Complete a voucher (statement of payment) or a draft receipt."""
        document = self.get_object()

        if document.document_type == DocumentType.RECEIPT:
            serializer = TransitionSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            result = document_service.complete_receipt(
                document.id,
                actor=request.user,
                expected_version=serializer.validated_data.get("version"),
            )
            if not result.success:
                return error_response(result)
            return self._document_response(result.data)

        serializer = CompleteVoucherSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = document_service.complete_voucher(
            CompleteVoucherParams(
                voucher_id=document.id,
                actor=request.user,
                **serializer.validated_data,
            )
        )
        if not result.success:
            return error_response(result)

        output = StatementOfPaymentSerializer(
            result.data, context=self.get_serializer_context()
        )
        return Response(output.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="cancel_document",
        summary="Cancel document",
        tags=["Finance - Documents"],
        request=CancelSerializer,
        responses={200: DocumentSerializer},
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        """Cancel a document. Posted entries are not reversed."""
        document = self.get_object()
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = document_service.cancel(
            document.id,
            reason=serializer.validated_data["reason"],
            actor=request.user,
            expected_version=serializer.validated_data.get("version"),
        )
        if not result.success:
            return error_response(result)
        return self._document_response(result.data)

    @extend_schema(
        operation_id="reopen_document",
        summary="Reopen cancelled document",
        tags=["Finance - Documents"],
        request=TransitionSerializer,
        responses={200: DocumentSerializer},
    )
    @action(detail=True, methods=["post"])
    def reopen(self, request, pk=None):
        """Return a cancelled, never-posted document to draft."""
        document = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = document_service.reopen(
            document.id,
            actor=request.user,
            expected_version=serializer.validated_data.get("version"),
        )
        if not result.success:
            return error_response(result)
        return self._document_response(result.data)

    @extend_schema(
        operation_id="get_invoice_payment_status",
        summary="Invoice payment status",
        tags=["Finance - Documents"],
        responses={200: PaymentStatusSerializer},
    )
    @action(detail=True, methods=["get"], url_path="payment-status")
    def payment_status(self, request, pk=None):
        """Paid amount, balance due and status derived from linked receipts."""
        document = self.get_object()
        try:
            view = reconciliation.payment_status(document.id)
        except BaseApplicationError as exc:
            return exception_response(exc)
        return Response(PaymentStatusSerializer(view.to_dict()).data)

    @extend_schema(
        operation_id="list_document_entries",
        summary="Ledger entries for document",
        tags=["Finance - Documents"],
        responses={200: LedgerEntrySerializer(many=True)},
    )
    @action(detail=True, methods=["get"])
    def entries(self, request, pk=None):
        """Postings and compensating entries that reference this document."""
        document = self.get_object()
        entries = ledger.get_document_entries(document.id)
        return Response(LedgerEntrySerializer(entries, many=True).data)


# =============================================================================
# Accounts
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_accounts",
        summary="List accounts",
        tags=["Finance - Accounts"],
        parameters=[
            OpenApiParameter("company", OpenApiTypes.UUID, description="Filter by company"),
        ],
    ),
    retrieve=extend_schema(
        operation_id="get_account",
        summary="Get account",
        tags=["Finance - Accounts"],
    ),
)
class AccountViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only account endpoints.

    Balances change only through the ledger, so there is no write
    endpoint for accounts here.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = AccountSerializer

    def get_queryset(self):
        queryset = Account.objects.select_related("company").order_by("name")
        company = self.request.query_params.get("company")
        if company:
            queryset = queryset.filter(company_id=company)
        return queryset

    @extend_schema(
        operation_id="get_account_balance",
        summary="Account balance",
        tags=["Finance - Accounts"],
        responses={200: BalanceSerializer},
    )
    @action(detail=True, methods=["get"])
    def balance(self, request, pk=None):
        """Materialized balance of the account."""
        account = self.get_object()
        try:
            money = account_service.get_account_balance(account.id)
        except BaseApplicationError as exc:
            return exception_response(exc)
        return Response(
            BalanceSerializer(
                {
                    "account_id": account.id,
                    "amount": money.amount,
                    "currency": money.currency,
                    "formatted": str(money),
                }
            ).data
        )

    @extend_schema(
        operation_id="list_account_entries",
        summary="Account ledger entries",
        tags=["Finance - Accounts"],
        responses={200: LedgerEntrySerializer(many=True)},
    )
    @action(detail=True, methods=["get"])
    def entries(self, request, pk=None):
        """Ledger entries oldest first, paginated."""
        account = self.get_object()
        queryset = ledger.get_entries(account.id)
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(LedgerEntrySerializer(page, many=True).data)
        return Response(LedgerEntrySerializer(queryset, many=True).data)

    @extend_schema(
        operation_id="audit_account",
        summary="Audit account ledger",
        tags=["Finance - Accounts"],
        responses={200: LedgerAuditSerializer},
    )
    @action(detail=True, methods=["get"], permission_classes=[IsAdminUser])
    def audit(self, request, pk=None):
        """Replay the account's entries and compare with the stored balance."""
        account = self.get_object()
        report = ledger.audit_account(account.id)
        return Response(LedgerAuditSerializer(report.to_dict()).data)


# =============================================================================
# Ledger entries
# =============================================================================


@extend_schema_view(
    retrieve=extend_schema(
        operation_id="get_ledger_entry",
        summary="Get ledger entry",
        tags=["Finance - Ledger"],
    ),
)
class LedgerEntryViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Ledger entries are immutable; the only write is a compensating entry.

    reverse:
        Post the opposite of an entry with a recorded reason. Staff only.
        Reversing the same entry twice returns the first reversal.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = LedgerEntrySerializer
    queryset = LedgerEntry.objects.select_related("document")

    @extend_schema(
        operation_id="reverse_ledger_entry",
        summary="Reverse ledger entry",
        tags=["Finance - Ledger"],
        request=ReverseEntrySerializer,
        responses={
            201: LedgerEntrySerializer,
            409: OpenApiResponse(description="Entry is itself a reversal or account frozen"),
            422: OpenApiResponse(description="Insufficient balance"),
        },
    )
    @action(detail=True, methods=["post"], permission_classes=[IsAdminUser])
    def reverse(self, request, pk=None):
        """Post a compensating entry for this entry."""
        entry = self.get_object()
        serializer = ReverseEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            reversal = ledger.reverse(
                entry.id,
                reason=serializer.validated_data["reason"],
                created_by=request.user.get_username(),
            )
        except BaseApplicationError as exc:
            if exc.http_status >= 500:
                raise
            return exception_response(exc)
        return Response(LedgerEntrySerializer(reversal).data, status=status.HTTP_201_CREATED)
