# inventory/models/item.py

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class InventoryItem(models.Model):
    """
    Stocked consumable (feed, medicine, supplies, parts).

    Quantities are tracked per site in SiteInventory; this row only holds
    the tenant-wide definition and reorder policy.
    """

    class Category(models.TextChoices):
        FEED = "FEED", "Feed"
        MEDICINE = "MEDICINE", "Medicine"
        SUPPLIES = "SUPPLIES", "Supplies"
        EQUIPMENT_PARTS = "EQUIPMENT_PARTS", "Equipment parts"
        OTHER = "OTHER", "Other"

    tenant_id = models.CharField(max_length=64, db_index=True)

    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, blank=True, default="")
    unit = models.CharField(max_length=20, default="each", help_text="Unit of measure (lb, bag, dose, ...)")
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.OTHER)

    default_unit_cost = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0.0000")
    )
    reorder_point = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0.000"))
    reorder_quantity = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0.000"))

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["tenant_id", "name"]),
            models.Index(fields=["tenant_id", "category"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "sku"],
                condition=~models.Q(sku=""),
                name="uniq_inventory_item_tenant_sku",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.unit})"

    def clean(self):
        self.name = (self.name or "").strip()
        self.sku = (self.sku or "").strip()
        if not self.name:
            raise ValidationError({"name": "name is required"})
        for field in ("default_unit_cost", "reorder_point", "reorder_quantity"):
            value = getattr(self, field)
            if value is not None and value < 0:
                raise ValidationError({field: f"{field} cannot be negative"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
