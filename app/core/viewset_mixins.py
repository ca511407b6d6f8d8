"""
ViewSet mixins for common DRF functionality.

- SoftDeleteViewSetMixin: Hide soft-deleted rows unless asked for

These mixins complement the model-level patterns in core.model_mixins
and core.managers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class SoftDeleteViewSetMixin:
    """
    Add soft delete support to viewsets.

    Works with models that use core.model_mixins.SoftDeleteMixin. The viewset
    queryset should come from the unfiltered ``all_objects`` manager so that
    deleted rows can be included on request.

    Query parameters:
        ?include_deleted=true - Include soft-deleted records in results
    """

    request: Any

    def get_queryset(self) -> Any:
        """Filter out soft-deleted records unless explicitly requested."""
        queryset = super().get_queryset()  # type: ignore[misc]

        if hasattr(queryset.model, "is_deleted"):
            if self.request.query_params.get("include_deleted") == "true":
                return queryset
            return queryset.filter(is_deleted=False)

        return queryset

