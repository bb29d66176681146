"""Serializers for stock ledger entities."""
from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from accounts.models import WORKING_GROUP_CHOICES

from .models import InventoryItem


class InventoryItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryItem
        fields = [
            "id",
            "item_name",
            "part_number",
            "category",
            "working_group",
            "quantity",
            "barcode",
            "created_at",
            "last_updated",
        ]
        read_only_fields = fields


class InventoryItemCreateSerializer(serializers.Serializer):
    item_name = serializers.CharField(max_length=255)
    part_number = serializers.CharField(max_length=64)
    category = serializers.ChoiceField(choices=InventoryItem.CATEGORY_CHOICES)
    working_group = serializers.ChoiceField(choices=WORKING_GROUP_CHOICES)
    quantity = serializers.IntegerField(min_value=0)
    barcode = serializers.CharField(max_length=32, required=False, allow_blank=True)


class InventoryItemUpdateSerializer(serializers.Serializer):
    item_name = serializers.CharField(max_length=255, required=False)
    category = serializers.ChoiceField(choices=InventoryItem.CATEGORY_CHOICES, required=False)
    working_group = serializers.ChoiceField(choices=WORKING_GROUP_CHOICES, required=False)
    quantity = serializers.IntegerField(min_value=0, required=False)

    def to_internal_value(self, data: Dict[str, Any]) -> Dict[str, Any]:  # type: ignore[override]
        """Reject identifiers and unknown keys instead of silently dropping them."""

        if isinstance(data, dict):
            rejected = sorted(set(data) - set(InventoryItem.MUTABLE_FIELDS))
            if rejected:
                raise serializers.ValidationError(
                    {field: ["This field cannot be updated."] for field in rejected}
                )
        return super().to_internal_value(data)


class CheckoutLineSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class CheckoutRequestSerializer(serializers.Serializer):
    items = CheckoutLineSerializer(many=True, allow_empty=False)
