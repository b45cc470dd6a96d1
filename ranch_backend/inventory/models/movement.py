# inventory/models/movement.py

"""
INVENTORY MOVEMENT LEDGER

Immutable inventory ledger entry.

GUARANTEES:
- Append-only (no updates, no deletes)
- quantity is signed: inbound > 0, outbound < 0
- unit_cost is the cost the movement was valued at (receipt cost inbound,
  moving average outbound), so ledger amounts can be rebuilt from movements
- corrections are compensating movements pointing at what they reverse
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from inventory.models.item import InventoryItem


class InventoryMovement(models.Model):
    class MovementType(models.TextChoices):
        IN = "in", "In"
        OUT = "out", "Out"
        TRANSFER_IN = "transfer_in", "Transfer in"
        TRANSFER_OUT = "transfer_out", "Transfer out"
        ADJUSTMENT = "adjustment", "Adjustment"

    INBOUND_TYPES = (MovementType.IN, MovementType.TRANSFER_IN)
    OUTBOUND_TYPES = (MovementType.OUT, MovementType.TRANSFER_OUT)

    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.PROTECT,
        related_name="movements",
    )
    site_id = models.CharField(max_length=64)

    movement_type = models.CharField(max_length=20, choices=MovementType.choices)
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    unit_cost = models.DecimalField(max_digits=16, decimal_places=6)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2)

    # Originating document ("EVENT", "RECEIPT", "ADJUSTMENT", ...)
    source_type = models.CharField(max_length=20, blank=True, default="")
    source_id = models.CharField(max_length=64, blank=True, default="")

    reverses = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversal",
    )

    # Quantity / average after this movement (audit reconstruction)
    quantity_after = models.DecimalField(max_digits=14, decimal_places=3)
    average_cost_after = models.DecimalField(max_digits=16, decimal_places=6)

    note = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["item", "site_id", "created_at"]),
            models.Index(fields=["source_type", "source_id"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(quantity=0),
                name="chk_inventory_movement_quantity_nonzero",
            ),
        ]

    def __str__(self):
        return f"{self.movement_type} {self.quantity} {self.item.unit} {self.item.name} @ {self.site_id}"

    def clean(self):
        if self.quantity is None or self.quantity == 0:
            raise ValidationError("quantity must be non-zero")
        if self.movement_type in self.INBOUND_TYPES and self.quantity < 0:
            raise ValidationError(f"{self.movement_type} movement must have positive quantity")
        if self.movement_type in self.OUTBOUND_TYPES and self.quantity > 0:
            raise ValidationError(f"{self.movement_type} movement must have negative quantity")
        if self.unit_cost is not None and self.unit_cost < Decimal("0"):
            raise ValidationError("unit_cost cannot be negative")

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("InventoryMovement records are immutable once created")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("InventoryMovement records are immutable and cannot be deleted")
