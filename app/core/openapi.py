"""
OpenAPI schema customizations for drf-spectacular.

Tag naming follows the pattern: [App Name] - [Group Name]
Examples:
- Auth (JWT token endpoints)
- Finance - Documents
- Finance - Accounts
- Finance - Ledger
"""

# Natural language summaries for simplejwt endpoints
# Maps operation_id to (summary, description)
TOKEN_SUMMARIES = {
    "auth_token_create": (
        "Obtain tokens",
        "Authenticate with username and password to receive JWT tokens.",
    ),
    "auth_token_refresh_create": (
        "Refresh access token",
        "Get a new access token using a valid refresh token.",
    ),
}


def group_endpoints(result, generator, request, public):
    """
    Postprocessing hook to group API endpoints by function.

    Finance views set their tags via extend_schema; this hook tags the
    token endpoints and publishes tag descriptions for ReDoc.
    """
    paths = result.get("paths", {})

    for path, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId", "")

            if operation_id in TOKEN_SUMMARIES:
                summary, description = TOKEN_SUMMARIES[operation_id]
                operation["summary"] = summary
                operation["description"] = description

            if operation_id.startswith("auth_"):
                operation["tags"] = ["Auth"]

    result["tags"] = [
        {
            "name": "Auth",
            "description": "JWT token issue and refresh.",
        },
        {
            "name": "Finance - Documents",
            "description": "Invoices, receipts, payment vouchers and statements of payment, including lifecycle transitions.",
        },
        {
            "name": "Finance - Accounts",
            "description": "Bank and petty cash accounts with their materialized balances.",
        },
        {
            "name": "Finance - Ledger",
            "description": "Immutable ledger entries and explicit compensating entries.",
        },
    ]

    return result
