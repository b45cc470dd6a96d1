# accounting/models/posting_intent.py

"""
======================================================
PATH: accounting/models/posting_intent.py
======================================================
POSTING INTENT (OUTBOX)

Durable record of one source document's posting attempt(s).

Keyed by (source_type, source_id): an event, a receipt, a bill or a payment.
Each step that can commit independently has its own completion marker, so a
retry resumes where the previous attempt stopped and never repeats a step.

Doubles as the "transaction" projection of a posted document: it carries the
JournalEntry produced, the posted/voided state and their timestamps.
"""

from __future__ import annotations

from django.db import models

from accounting.models.chart import ChartOfAccounts
from accounting.models.journal import JournalEntry


class PostingIntent(models.Model):
    class SourceType(models.TextChoices):
        EVENT = "EVENT", "Event"
        RECEIPT = "RECEIPT", "Receipt"
        BILL = "BILL", "Bill"
        PAYMENT = "PAYMENT", "Payment"
        INVOICE = "INVOICE", "Customer invoice"
        INVOICE_PAYMENT = "INVOICE_PAYMENT", "Invoice payment"

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        COMPLETED = "COMPLETED", "Completed"
        PARTIAL_FAILURE = "PARTIAL_FAILURE", "Partial failure"
        VOIDED = "VOIDED", "Voided"

    chart = models.ForeignKey(
        ChartOfAccounts,
        on_delete=models.PROTECT,
        related_name="posting_intents",
    )

    source_type = models.CharField(max_length=20, choices=SourceType.choices)
    source_id = models.CharField(max_length=64)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    quantities_done = models.BooleanField(default=False)
    inventory_done = models.BooleanField(default=False)
    ledger_done = models.BooleanField(default=False)

    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="posting_intents",
    )

    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")

    posted_at = models.DateTimeField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["source_type", "source_id"],
                name="uniq_posting_intent_source",
            )
        ]
        indexes = [
            models.Index(fields=["chart", "status"]),
        ]

    def __str__(self):
        return f"{self.source_type}:{self.source_id} ({self.status})"

    @property
    def reference(self) -> str:
        return f"{self.source_type}:{self.source_id}"
