# purchases/models.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from inventory.models import InventoryItem

TWOPLACES = Decimal("0.01")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES)


class Vendor(models.Model):
    """
    Vendor master (feed mills, vet supply, parts dealers).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField(max_length=64, db_index=True)

    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=50, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    address = models.TextField(blank=True, default="")

    payment_terms_days = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Net days for bills; falls back to DEFAULT_PAYMENT_TERMS_DAYS",
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["tenant_id", "name"]),
            models.Index(fields=["is_active"]),
        ]

    def __str__(self):
        return self.name


class DocumentSequence(models.Model):
    """
    Per-tenant counter behind human document numbers (PO-00001, ...).
    Rows are locked with select_for_update when a number is taken.
    """

    tenant_id = models.CharField(max_length=64)
    prefix = models.CharField(max_length=10)
    next_value = models.PositiveIntegerField(default=1)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "prefix"], name="uniq_document_sequence_tenant_prefix"
            ),
        ]

    def __str__(self):
        return f"{self.tenant_id}:{self.prefix}={self.next_value}"


class Requisition(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SUBMITTED = "SUBMITTED", "Submitted"
        APPROVED = "APPROVED", "Approved"
        REJECTED = "REJECTED", "Rejected"
        CONVERTED = "CONVERTED", "Converted to PO"

    class Source(models.TextChoices):
        MANUAL = "MANUAL", "Manual"
        AUTO_REORDER = "AUTO_REORDER", "Automatic reorder"

    ALLOWED_TRANSITIONS = {
        Status.DRAFT: {Status.SUBMITTED},
        Status.SUBMITTED: {Status.APPROVED, Status.REJECTED},
        Status.APPROVED: {Status.CONVERTED},
        Status.REJECTED: set(),
        Status.CONVERTED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField(max_length=64, db_index=True)
    site_id = models.CharField(max_length=64)

    number = models.CharField(max_length=20)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.MANUAL)

    requested_by = models.CharField(max_length=120, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    rejection_reason = models.CharField(max_length=255, blank=True, default="")

    submitted_at = models.DateTimeField(null=True, blank=True)
    decided_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "number"], name="uniq_requisition_tenant_number"
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "status"]),
            models.Index(fields=["tenant_id", "site_id"]),
        ]

    def clean(self):
        if self.status == self.Status.REJECTED and not (self.rejection_reason or "").strip():
            raise ValidationError({"rejection_reason": "A reason is required to reject"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.number} ({self.status})"


class RequisitionLine(models.Model):
    requisition = models.ForeignKey(Requisition, on_delete=models.CASCADE, related_name="lines")
    line_number = models.PositiveIntegerField()
    item = models.ForeignKey(
        InventoryItem, on_delete=models.PROTECT, related_name="requisition_lines"
    )
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    estimated_unit_price = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0.0000")
    )

    class Meta:
        ordering = ["line_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["requisition", "line_number"], name="uniq_requisition_line_number"
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0), name="requisition_line_quantity_gt_zero"
            ),
        ]

    def __str__(self):
        return f"{self.item} x {self.quantity}"


class PurchaseOrder(models.Model):
    """
    Purchase order header.

    Status moves forward only:
      DRAFT -> SENT -> ACKNOWLEDGED -> PARTIALLY_RECEIVED -> RECEIVED -> CLOSED
    CANCELLED is reachable only before anything has been received.
    The receiving status is derived from line quantities by the services.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SENT = "SENT", "Sent"
        ACKNOWLEDGED = "ACKNOWLEDGED", "Acknowledged"
        PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED", "Partially received"
        RECEIVED = "RECEIVED", "Received"
        CLOSED = "CLOSED", "Closed"
        CANCELLED = "CANCELLED", "Cancelled"

    ALLOWED_TRANSITIONS = {
        Status.DRAFT: {Status.SENT, Status.CANCELLED},
        Status.SENT: {
            Status.ACKNOWLEDGED,
            Status.PARTIALLY_RECEIVED,
            Status.RECEIVED,
            Status.CANCELLED,
        },
        Status.ACKNOWLEDGED: {Status.PARTIALLY_RECEIVED, Status.RECEIVED, Status.CANCELLED},
        Status.PARTIALLY_RECEIVED: {Status.PARTIALLY_RECEIVED, Status.RECEIVED, Status.CLOSED},
        Status.RECEIVED: {Status.CLOSED},
        Status.CLOSED: set(),
        Status.CANCELLED: set(),
    }

    RECEIVABLE_STATUSES = {Status.SENT, Status.ACKNOWLEDGED, Status.PARTIALLY_RECEIVED}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField(max_length=64, db_index=True)
    site_id = models.CharField(max_length=64, help_text="Delivery site")

    number = models.CharField(max_length=20)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="purchase_orders")
    requisition = models.OneToOneField(
        Requisition,
        on_delete=models.PROTECT,
        related_name="purchase_order",
        null=True,
        blank=True,
    )

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    order_date = models.DateField(default=timezone.localdate)
    expected_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    sent_at = models.DateTimeField(null=True, blank=True)
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "number"], name="uniq_purchase_order_tenant_number"
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "status"]),
            models.Index(fields=["vendor", "created_at"]),
        ]

    @property
    def total(self) -> Decimal:
        return _money(sum((line.line_total for line in self.lines.all()), Decimal("0.00")))

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.number} ({self.vendor.name})"


class PurchaseOrderLine(models.Model):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name="lines")
    line_number = models.PositiveIntegerField()
    item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name="purchase_order_lines")
    description = models.CharField(max_length=255, blank=True, default="")

    qty_ordered = models.DecimalField(max_digits=14, decimal_places=3)
    qty_received = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0.000"))
    unit_price = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal("0.0000"))

    class Meta:
        ordering = ["line_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["purchase_order", "line_number"], name="uniq_purchase_order_line_number"
            ),
            models.CheckConstraint(
                condition=models.Q(qty_ordered__gt=0), name="po_line_qty_ordered_gt_zero"
            ),
            models.CheckConstraint(
                condition=models.Q(qty_received__gte=0) & models.Q(qty_received__lte=models.F("qty_ordered")),
                name="po_line_qty_received_within_ordered",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0), name="po_line_unit_price_nonnegative"
            ),
        ]

    @property
    def qty_remaining(self) -> Decimal:
        return self.qty_ordered - self.qty_received

    @property
    def line_total(self) -> Decimal:
        return _money(self.qty_ordered * self.unit_price)

    def clean(self):
        if self.qty_received is not None and self.qty_ordered is not None:
            if self.qty_received < 0 or self.qty_received > self.qty_ordered:
                raise ValidationError(
                    {"qty_received": "qty_received must stay between 0 and qty_ordered"}
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.purchase_order.number}/{self.line_number} {self.item}"


class Receipt(models.Model):
    """
    Goods receipt against a PO. Posting runs through a PostingIntent
    (quantities -> inventory -> ledger), so a retried receipt never counts twice.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        POSTED = "POSTED", "Posted"
        PARTIAL_FAILURE = "PARTIAL_FAILURE", "Partial failure"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField(max_length=64, db_index=True)
    site_id = models.CharField(max_length=64)

    number = models.CharField(max_length=20)
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.PROTECT, related_name="receipts")
    receipt_date = models.DateField(default=timezone.localdate)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)

    journal_entry = models.ForeignKey(
        "accounting.JournalEntry",
        on_delete=models.PROTECT,
        related_name="receipts",
        null=True,
        blank=True,
    )
    last_error = models.TextField(blank=True, default="")
    posted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "number"], name="uniq_receipt_tenant_number"),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "status"]),
            models.Index(fields=["purchase_order", "created_at"]),
        ]

    @property
    def total(self) -> Decimal:
        return _money(sum((line.line_total for line in self.lines.all()), Decimal("0.00")))

    def clean(self):
        if self.status == self.Status.POSTED and not self.posted_at:
            raise ValidationError({"posted_at": "posted_at is required when status is POSTED"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.number} for {self.purchase_order.number}"


class ReceiptLine(models.Model):
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name="lines")
    po_line = models.ForeignKey(PurchaseOrderLine, on_delete=models.PROTECT, related_name="receipt_lines")
    qty_received = models.DecimalField(max_digits=14, decimal_places=3)
    unit_cost = models.DecimalField(max_digits=14, decimal_places=4)

    class Meta:
        ordering = ["po_line__line_number"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(qty_received__gt=0), name="receipt_line_qty_gt_zero"
            ),
            models.CheckConstraint(
                condition=models.Q(unit_cost__gte=0), name="receipt_line_unit_cost_nonnegative"
            ),
        ]

    @property
    def po_line_number(self) -> int:
        return self.po_line.line_number

    @property
    def line_total(self) -> Decimal:
        return _money(self.qty_received * self.unit_cost)

    def __str__(self):
        return f"{self.receipt.number}: line {self.po_line_number} x {self.qty_received}"


class Bill(models.Model):
    """
    Vendor bill (accounts payable document).

    - Manual bill: no PO link, lines carry expense accounts
    - Linked bill: matched three-way against its PO and posted receipts;
      approval books only the price variance, since the receipt already
      credited AP at receipt cost.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PENDING_APPROVAL = "PENDING_APPROVAL", "Pending approval"
        APPROVED = "APPROVED", "Approved"
        PARTIALLY_PAID = "PARTIALLY_PAID", "Partially paid"
        PAID = "PAID", "Paid"
        VOIDED = "VOIDED", "Voided"

    class MatchStatus(models.TextChoices):
        UNMATCHED = "UNMATCHED", "Unmatched"
        PARTIAL = "PARTIAL", "Partial"
        MATCHED = "MATCHED", "Matched"
        DISCREPANCY = "DISCREPANCY", "Discrepancy"

    ALLOWED_TRANSITIONS = {
        Status.DRAFT: {Status.PENDING_APPROVAL, Status.APPROVED, Status.VOIDED},
        Status.PENDING_APPROVAL: {Status.APPROVED, Status.DRAFT, Status.VOIDED},
        Status.APPROVED: {Status.PARTIALLY_PAID, Status.PAID, Status.VOIDED},
        Status.PARTIALLY_PAID: {Status.PARTIALLY_PAID, Status.PAID},
        Status.PAID: set(),
        Status.VOIDED: set(),
    }

    PAYABLE_STATUSES = {Status.APPROVED, Status.PARTIALLY_PAID}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField(max_length=64, db_index=True)

    number = models.CharField(max_length=20)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="bills")
    vendor_invoice_number = models.CharField(max_length=64, blank=True, default="")

    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.PROTECT, related_name="bills", null=True, blank=True
    )
    receipt = models.ForeignKey(
        Receipt, on_delete=models.PROTECT, related_name="bills", null=True, blank=True
    )

    bill_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField()

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    match_status = models.CharField(
        max_length=20, choices=MatchStatus.choices, default=MatchStatus.UNMATCHED
    )
    variance_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    journal_entry = models.ForeignKey(
        "accounting.JournalEntry",
        on_delete=models.PROTECT,
        related_name="bills",
        null=True,
        blank=True,
    )

    approved_at = models.DateTimeField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "number"], name="uniq_bill_tenant_number"),
            models.CheckConstraint(
                condition=models.Q(total__gte=Decimal("0.00")), name="bill_total_nonnegative"
            ),
            models.CheckConstraint(
                condition=models.Q(amount_paid__gte=Decimal("0.00"))
                & models.Q(amount_paid__lte=models.F("total")),
                name="bill_amount_paid_within_total",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "status"]),
            models.Index(fields=["tenant_id", "due_date"]),
            models.Index(fields=["vendor", "created_at"]),
        ]

    @property
    def amount_due(self) -> Decimal:
        return _money(self.total - self.amount_paid)

    @property
    def is_linked(self) -> bool:
        return self.purchase_order_id is not None

    def clean(self):
        if self.amount_paid is not None and self.total is not None and self.amount_paid > self.total:
            raise ValidationError({"amount_paid": "amount_paid cannot exceed total"})
        if self.receipt_id and self.purchase_order_id and self.receipt.purchase_order_id != self.purchase_order_id:
            raise ValidationError({"receipt": "Receipt belongs to a different purchase order"})

    def save(self, *args, **kwargs):
        if self.vendor_invoice_number is not None:
            self.vendor_invoice_number = self.vendor_invoice_number.strip()
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.number} ({self.vendor.name}) {self.total}"


class BillLine(models.Model):
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="lines")
    line_number = models.PositiveIntegerField()

    po_line = models.ForeignKey(
        PurchaseOrderLine, on_delete=models.PROTECT, related_name="bill_lines", null=True, blank=True
    )
    account = models.ForeignKey(
        "accounting.Account",
        on_delete=models.PROTECT,
        related_name="bill_lines",
        null=True,
        blank=True,
        help_text="Expense account for manual bills (defaults to other expense)",
    )
    description = models.CharField(max_length=255, blank=True, default="")

    quantity = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("1.000"))
    unit_price = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal("0.0000"))
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["line_number"]
        constraints = [
            models.UniqueConstraint(fields=["bill", "line_number"], name="uniq_bill_line_number"),
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="bill_line_quantity_gt_zero"),
        ]

    def save(self, *args, **kwargs):
        self.amount = _money(self.quantity * self.unit_price)
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.bill.number}/{self.line_number} {self.amount}"


class Payment(models.Model):
    """
    Payment against a single bill. Posting: Dr AP / Cr cash or bank.
    """

    class Method(models.TextChoices):
        CHECK = "CHECK", "Check"
        ACH = "ACH", "ACH"
        CARD = "CARD", "Card"
        CASH = "CASH", "Cash"
        WIRE = "WIRE", "Wire"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField(max_length=64, db_index=True)

    number = models.CharField(max_length=20)
    bill = models.ForeignKey(Bill, on_delete=models.PROTECT, related_name="payments")

    payment_date = models.DateField(default=timezone.localdate)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    method = models.CharField(max_length=10, choices=Method.choices, default=Method.CHECK)
    reference = models.CharField(max_length=64, blank=True, default="", help_text="Check or transfer number")

    journal_entry = models.ForeignKey(
        "accounting.JournalEntry",
        on_delete=models.PROTECT,
        related_name="payments",
        null=True,
        blank=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "number"], name="uniq_payment_tenant_number"),
            models.CheckConstraint(
                condition=models.Q(amount__gt=Decimal("0.00")), name="payment_amount_gt_zero"
            ),
        ]
        indexes = [
            models.Index(fields=["bill", "created_at"]),
        ]

    def clean(self):
        if self.amount is not None and self.amount <= Decimal("0.00"):
            raise ValidationError({"amount": "amount must be > 0"})

    def save(self, *args, **kwargs):
        if self.reference is not None:
            self.reference = self.reference.strip()
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.number} {self.bill.number} - {self.amount}"
