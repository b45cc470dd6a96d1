# accounting/models/customer_invoice.py

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from accounting.models.chart import ChartOfAccounts
from accounting.models.journal import JournalEntry


class CustomerInvoice(models.Model):
    """
    Receivable document (livestock/crop sale on terms).

    GUARANTEES:
    - 0 <= amount_paid <= total
    - journal_entry is the Dr Accounts Receivable / Cr revenue entry; for an
      invoice raised by a sale event it is that event's entry
    - source_type/source_id point at the originating document, if any
    """

    class Status(models.TextChoices):
        OPEN = "OPEN", "Open"
        PARTIALLY_PAID = "PARTIALLY_PAID", "Partially paid"
        PAID = "PAID", "Paid"
        VOIDED = "VOIDED", "Voided"

    COLLECTIBLE_STATUSES = (Status.OPEN, Status.PARTIALLY_PAID)

    chart = models.ForeignKey(
        ChartOfAccounts,
        on_delete=models.PROTECT,
        related_name="customer_invoices",
    )

    customer_id = models.CharField(max_length=64)
    customer_name = models.CharField(max_length=200)
    invoice_number = models.CharField(max_length=64)
    memo = models.CharField(max_length=255, blank=True, default="")

    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField()

    total = models.DecimalField(max_digits=14, decimal_places=2)
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN)

    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="customer_invoices",
    )
    source_type = models.CharField(max_length=20, blank=True, default="")
    source_id = models.CharField(max_length=64, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    voided_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["due_date", "invoice_number"]
        indexes = [
            models.Index(fields=["source_type", "source_id"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["chart", "invoice_number"],
                name="uniq_customer_invoice_number",
            ),
            models.CheckConstraint(
                condition=models.Q(amount_paid__gte=Decimal("0.00"))
                & models.Q(amount_paid__lte=models.F("total")),
                name="chk_customer_invoice_paid_within_total",
            ),
        ]

    def __str__(self):
        return f"{self.invoice_number} ({self.customer_name})"

    @property
    def amount_due(self) -> Decimal:
        return (self.total or Decimal("0.00")) - (self.amount_paid or Decimal("0.00"))

    def clean(self):
        if self.total is not None and self.total < Decimal("0.00"):
            raise ValidationError({"total": "total cannot be negative"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class InvoicePayment(models.Model):
    """Money collected against one customer invoice (Dr Cash/Bank / Cr AR)."""

    class Method(models.TextChoices):
        CHECK = "CHECK", "Check"
        ACH = "ACH", "ACH"
        CARD = "CARD", "Card"
        CASH = "CASH", "Cash"
        WIRE = "WIRE", "Wire"

    invoice = models.ForeignKey(CustomerInvoice, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    method = models.CharField(max_length=10, choices=Method.choices, default=Method.CHECK)
    payment_date = models.DateField(default=timezone.localdate)
    reference = models.CharField(max_length=100, blank=True, default="")

    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="invoice_payments",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-payment_date", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=Decimal("0.00")),
                name="chk_invoice_payment_positive",
            ),
        ]

    def __str__(self):
        return f"{self.amount} on {self.invoice.invoice_number}"
