# accounting/models/ledger.py

"""
======================================================
PATH: accounting/models/ledger.py
======================================================
JOURNAL LINE MODEL

One debit or credit line of a journal entry.

Guarantees:
- Exactly one of debit/credit is > 0 (DB constraint + clean)
- Lines are editable only while the parent entry is DRAFT
- Reporting uses journal_entry.entry_date as the accounting timeline
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.account import Account
from accounting.models.journal import JournalEntry


class JournalLine(models.Model):
    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        related_name="lines",
    )

    line_number = models.PositiveIntegerField()

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )

    debit = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        verbose_name = "Journal Line"
        verbose_name_plural = "Journal Lines"
        ordering = ["journal_entry_id", "line_number"]
        indexes = [
            models.Index(fields=["account"]),
            models.Index(fields=["journal_entry"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["journal_entry", "line_number"],
                name="uniq_journal_line_number",
            ),
            models.CheckConstraint(
                condition=(Q(debit__gt=0) & Q(credit=0)) | (Q(credit__gt=0) & Q(debit=0)),
                name="chk_journal_line_one_side",
            ),
        ]

    def __str__(self):
        side = f"Dr {self.debit}" if self.debit else f"Cr {self.credit}"
        return f"{side} → {self.account}"

    def clean(self):
        debit = self.debit or Decimal("0.00")
        credit = self.credit or Decimal("0.00")

        if debit < 0 or credit < 0:
            raise ValidationError("Debit or credit cannot be negative")
        if (debit > 0) == (credit > 0):
            raise ValidationError("A line must have exactly one of debit or credit")

        if self.account_id and self.journal_entry_id:
            if self.account.chart_id != self.journal_entry.chart_id:
                raise ValidationError("Line account must belong to the entry's chart")

    def _require_draft(self):
        status = (
            JournalEntry.objects.filter(pk=self.journal_entry_id)
            .values_list("status", flat=True)
            .first()
        )
        if status != JournalEntry.Status.DRAFT:
            raise ValidationError("Journal lines are frozen once the entry leaves DRAFT")

    def save(self, *args, **kwargs):
        self._require_draft()
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        self._require_draft()
        return super().delete(*args, **kwargs)
