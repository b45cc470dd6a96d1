# events/models.py

"""
FARM EVENT MODEL

A business event recorded on a site (feeding, treatment, receiving, ...).

Two independent state fields:
- status: the operational lifecycle (draft -> pending/completed, cancelled)
- posting_status: what the event did to the books
  (UNPOSTED -> POSTED | PARTIAL_FAILURE -> POSTED, POSTED -> VOIDED)

payload holds the typed variant for event_type (see events.payloads);
total_quantity / total_cost are always recomputed from payload inputs.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from accounting.models.journal import JournalEntry


class Event(models.Model):
    class EventType(models.TextChoices):
        FEEDING = "feeding", "Feeding"
        TREATMENT = "treatment", "Treatment"
        RECEIVING = "receiving", "Receiving"
        SALE = "sale", "Sale"
        LABOR = "labor", "Labor"
        MAINTENANCE = "maintenance", "Maintenance"
        ADJUSTMENT = "adjustment", "Inventory adjustment"
        TRANSFER = "transfer", "Inventory transfer"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    class PostingStatus(models.TextChoices):
        UNPOSTED = "UNPOSTED", "Unposted"
        POSTED = "POSTED", "Posted"
        PARTIAL_FAILURE = "PARTIAL_FAILURE", "Partial failure"
        VOIDED = "VOIDED", "Voided"

    POSTABLE_STATUSES = (Status.PENDING, Status.COMPLETED)

    tenant_id = models.CharField(max_length=64, db_index=True)
    site_id = models.CharField(max_length=64)

    event_type = models.CharField(max_length=20, choices=EventType.choices)
    event_date = models.DateField(default=timezone.localdate)
    description = models.CharField(max_length=255, blank=True, default="")

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    posting_status = models.CharField(
        max_length=20, choices=PostingStatus.choices, default=PostingStatus.UNPOSTED
    )

    payload = models.JSONField(default=dict)

    # Animal group the event applies to (per-animal scaling)
    group_id = models.CharField(max_length=64, blank=True, default="")
    animal_count = models.PositiveIntegerField(null=True, blank=True)

    total_quantity = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0.000"))
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    # Cost actually booked (moving average at posting time)
    posted_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="events",
    )

    last_error = models.TextField(blank=True, default="")
    posted_at = models.DateTimeField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-event_date", "-created_at"]
        indexes = [
            models.Index(fields=["tenant_id", "site_id", "event_date"]),
            models.Index(fields=["tenant_id", "posting_status"]),
            models.Index(fields=["tenant_id", "event_type"]),
        ]

    def __str__(self):
        return f"{self.get_event_type_display()} #{self.pk} ({self.event_date})"

    @property
    def is_postable(self) -> bool:
        return self.status in self.POSTABLE_STATUSES and self.posting_status in (
            self.PostingStatus.UNPOSTED,
            self.PostingStatus.PARTIAL_FAILURE,
        )

    def clean(self):
        self.tenant_id = (self.tenant_id or "").strip()
        self.site_id = (self.site_id or "").strip()
        if not self.tenant_id:
            raise ValidationError({"tenant_id": "tenant_id is required"})
        if not self.site_id:
            raise ValidationError({"site_id": "site_id is required"})
        if self.posting_status == self.PostingStatus.VOIDED and self.status != self.Status.CANCELLED:
            raise ValidationError("Voided events must be cancelled")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.posting_status != self.PostingStatus.UNPOSTED:
            raise ValidationError("Posted events are never deleted; void instead")
        return super().delete(*args, **kwargs)
