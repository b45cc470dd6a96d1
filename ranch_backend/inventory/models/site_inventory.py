# inventory/models/site_inventory.py

from __future__ import annotations

from decimal import Decimal

from django.db import models

from inventory.models.item import InventoryItem


class SiteInventory(models.Model):
    """
    Quantity on hand and running average cost for one (item, site).

    Service-managed only: inventory.services.valuation is the single writer,
    always under select_for_update().
    """

    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.PROTECT,
        related_name="site_inventories",
    )
    site_id = models.CharField(max_length=64)

    quantity = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0.000"))
    average_cost = models.DecimalField(max_digits=16, decimal_places=6, default=Decimal("0.000000"))

    # Site-specific override; falls back to the item's reorder point
    reorder_point = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)

    last_movement_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["item__name", "site_id"]
        constraints = [
            models.UniqueConstraint(fields=["item", "site_id"], name="uniq_site_inventory_item_site"),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name="chk_site_inventory_quantity_nonnegative",
            ),
        ]

    def __str__(self):
        return f"{self.item.name} @ {self.site_id}: {self.quantity}"

    @property
    def effective_reorder_point(self) -> Decimal:
        if self.reorder_point is not None:
            return self.reorder_point
        return self.item.reorder_point

    @property
    def is_below_reorder_point(self) -> bool:
        point = self.effective_reorder_point
        return point > 0 and self.quantity <= point

    @property
    def total_value(self) -> Decimal:
        return (self.quantity * self.average_cost).quantize(Decimal("0.01"))
