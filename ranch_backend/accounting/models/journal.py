# accounting/models/journal.py

"""
======================================================
PATH: accounting/models/journal.py
======================================================
JOURNAL ENTRY MODEL

Represents a single accounting transaction (journal header).

Lifecycle:
- DRAFT: lines may still be edited
- POSTED: affects balances, lines frozen
- REVERSED: an equal-and-opposite entry exists (reversal.reverses == self)

Guarantees:
- Never deleted (reversal is the only correction)
- Status only moves DRAFT -> POSTED -> REVERSED
- Idempotency via reference uniqueness per chart (when reference is provided)
- A posted entry can be reversed at most once (one-to-one reversal link)
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from accounting.models.chart import ChartOfAccounts


class JournalEntry(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        POSTED = "POSTED", "Posted"
        REVERSED = "REVERSED", "Reversed"

    ALLOWED_TRANSITIONS = {
        Status.DRAFT: {Status.DRAFT, Status.POSTED},
        Status.POSTED: {Status.POSTED, Status.REVERSED},
        Status.REVERSED: {Status.REVERSED},
    }

    chart = models.ForeignKey(
        ChartOfAccounts,
        on_delete=models.PROTECT,
        related_name="journal_entries",
    )

    entry_date = models.DateField(default=timezone.localdate)
    memo = models.TextField(help_text="Narrative description of the journal entry")

    reference = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        help_text="Idempotency key (EVENT:<id>, RECEIPT:<id>, PAYMENT:<id>, ...)",
    )

    status = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT)

    reverses = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversal",
    )

    # Originating document (event, receipt, bill, payment)
    source_type = models.CharField(max_length=20, blank=True, default="")
    source_id = models.CharField(max_length=64, blank=True, default="")

    posted_at = models.DateTimeField(null=True, blank=True)
    reversed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-entry_date", "-created_at"]
        indexes = [
            models.Index(fields=["chart", "entry_date"]),
            models.Index(fields=["chart", "status"]),
            models.Index(fields=["source_type", "source_id"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["chart", "reference"],
                condition=Q(reference__isnull=False) & ~Q(reference=""),
                name="uniq_journal_chart_reference_not_blank",
            )
        ]
        verbose_name = "Journal Entry"
        verbose_name_plural = "Journal Entries"

    def __str__(self):
        return f"JournalEntry #{self.id} – {self.entry_date} ({self.status})"

    @property
    def is_reversal(self) -> bool:
        return self.reverses_id is not None

    def clean(self):
        if self.reference is not None:
            ref = str(self.reference).strip()
            self.reference = ref or None

        self.memo = (self.memo or "").strip()
        if not self.memo:
            raise ValidationError("Journal entry memo is required")

        if self.status == self.Status.POSTED and not self.posted_at:
            raise ValidationError({"posted_at": "posted_at is required once POSTED"})

        if self.pk:
            previous = (
                JournalEntry.objects.filter(pk=self.pk).values_list("status", flat=True).first()
            )
            if previous and self.status not in self.ALLOWED_TRANSITIONS[previous]:
                raise ValidationError(
                    f"Journal entry status cannot move from {previous} to {self.status}"
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("JournalEntry records are never deleted; reverse instead")
