# inventory/admin.py

from django.contrib import admin

from inventory.models import InventoryItem, InventoryMovement, SiteInventory


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "tenant_id", "category", "unit", "default_unit_cost", "reorder_point", "is_active")
    list_filter = ("category", "is_active")
    search_fields = ("name", "sku", "tenant_id")
    ordering = ("tenant_id", "name")


@admin.register(SiteInventory)
class SiteInventoryAdmin(admin.ModelAdmin):
    list_display = ("item", "site_id", "quantity", "average_cost", "reorder_point", "last_movement_at")
    search_fields = ("item__name", "site_id")
    # quantity and cost move only through inventory movements
    readonly_fields = ("item", "site_id", "quantity", "average_cost", "last_movement_at")


@admin.register(InventoryMovement)
class InventoryMovementAdmin(admin.ModelAdmin):
    list_display = ("created_at", "item", "site_id", "movement_type", "quantity", "unit_cost", "total_cost", "source_type", "source_id")
    list_filter = ("movement_type", "source_type")
    search_fields = ("item__name", "source_id", "note")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
