# inventory/api/serializers.py

from rest_framework import serializers

from inventory.models import InventoryItem, InventoryMovement, SiteInventory


class InventoryItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryItem
        fields = (
            "id",
            "name",
            "sku",
            "unit",
            "category",
            "default_unit_cost",
            "reorder_point",
            "reorder_quantity",
            "is_active",
            "created_at",
        )
        read_only_fields = ("id", "created_at")


class SiteInventorySerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source="item.name", read_only=True)
    unit = serializers.CharField(source="item.unit", read_only=True)
    total_value = serializers.DecimalField(max_digits=16, decimal_places=2, read_only=True)
    effective_reorder_point = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True)
    is_below_reorder_point = serializers.BooleanField(read_only=True)

    class Meta:
        model = SiteInventory
        fields = (
            "id",
            "item",
            "item_name",
            "unit",
            "site_id",
            "quantity",
            "average_cost",
            "total_value",
            "effective_reorder_point",
            "is_below_reorder_point",
            "last_movement_at",
        )
        read_only_fields = fields


class InventoryMovementSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source="item.name", read_only=True)

    class Meta:
        model = InventoryMovement
        fields = (
            "id",
            "item",
            "item_name",
            "site_id",
            "movement_type",
            "quantity",
            "unit_cost",
            "total_cost",
            "quantity_after",
            "average_cost_after",
            "source_type",
            "source_id",
            "reverses",
            "note",
            "created_at",
        )
        read_only_fields = fields
