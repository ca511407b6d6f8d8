"""
Serializer mixins providing reusable functionality for DRF serializers.

Available Mixins:
    TimestampMixin: Auto-include timestamp fields in serializer output

Usage:
    from core.serializer_mixins import TimestampMixin

    class AccountSerializer(TimestampMixin, serializers.ModelSerializer):
        class Meta:
            model = Account
            fields = ["id", "name"]  # created_at and updated_at auto-included
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class TimestampMixin:
    """
    Add timestamp fields to serializer output.

    Only adds fields the model actually has. They are read-only because
    BaseModel sets them with auto_now/auto_now_add.
    """

    def get_field_names(self, declared_fields: Any, info: Any) -> list[str]:
        fields = super().get_field_names(declared_fields, info)  # type: ignore[misc]
        if hasattr(info.model, "created_at") and "created_at" not in fields:
            fields = list(fields) + ["created_at"]
        if hasattr(info.model, "updated_at") and "updated_at" not in fields:
            fields = list(fields) + ["updated_at"]
        return fields
