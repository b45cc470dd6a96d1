# accounting/services/invoice_service.py

"""
======================================================
PATH: accounting/services/invoice_service.py
======================================================
CUSTOMER INVOICES (ACCOUNTS RECEIVABLE)

create_invoice:
- standalone: posts Dr Accounts Receivable / Cr revenue (Livestock Sales
  unless a revenue account code is given)
- from a sale event settled on account: the event's own entry already
  booked the receivable, so the invoice only links to it

record_invoice_payment:
- invoice row locked; amount must not exceed amount_due (OverCollectionError)
- Dr Cash (CASH) or Bank (everything else) / Cr Accounts Receivable
- invoice -> PARTIALLY_PAID or PAID

void_invoice / void_invoices_for_source:
- never once money was collected
- a standalone invoice reverses its own entry; a sale invoice is voided
  together with its event (the event void reverses the entry)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.chart import ChartOfAccounts
from accounting.models.customer_invoice import CustomerInvoice, InvoicePayment
from accounting.models.journal import JournalEntry
from accounting.models.posting_intent import PostingIntent
from accounting.services import account_resolver as ar
from accounting.services.exceptions import (
    AlreadyVoidedError,
    DocumentNotFoundError,
    InvalidTransitionError,
    LedgerValidationError,
    OverCollectionError,
)
from accounting.services.journal_entry_service import record_journal_entry, reverse_journal_entry

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
INVOICE_PREFIX = "INV"
SOURCE_INVOICE = PostingIntent.SourceType.INVOICE
SOURCE_INVOICE_PAYMENT = PostingIntent.SourceType.INVOICE_PAYMENT


def _money(value, field_name: str) -> Decimal:
    try:
        amount = Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise LedgerValidationError(f"{field_name} must be a number") from exc
    if amount <= Decimal("0.00"):
        raise LedgerValidationError(f"{field_name} must be greater than zero")
    return amount


def _next_invoice_number(chart: ChartOfAccounts) -> str:
    # chart row lock serializes numbering per tenant
    ChartOfAccounts.objects.select_for_update().get(pk=chart.pk)
    count = CustomerInvoice.objects.filter(chart=chart).count()
    return f"{INVOICE_PREFIX}-{count + 1:05d}"


def _due_date(invoice_date, due_date, terms_days):
    if due_date:
        return due_date
    if terms_days is None:
        terms_days = settings.DEFAULT_PAYMENT_TERMS_DAYS
    return invoice_date + timedelta(days=int(terms_days))


def _revenue_account(chart: ChartOfAccounts, revenue_code: str | None) -> Account:
    if not revenue_code:
        return ar.resolve_account(chart, ar.SALES)
    account = ar.resolve_account_by_code(chart, revenue_code)
    if account.account_type != Account.INCOME or not account.is_active:
        raise LedgerValidationError(f"Account {revenue_code} is not an active income account")
    return account


def lock_invoice(invoice_id) -> CustomerInvoice:
    try:
        return CustomerInvoice.objects.select_for_update().get(pk=invoice_id)
    except (CustomerInvoice.DoesNotExist, ValueError) as exc:
        raise DocumentNotFoundError(f"Invoice {invoice_id} not found") from exc


@transaction.atomic
def create_invoice(
    *,
    tenant_id: str,
    customer_name: str,
    total,
    customer_id: str = "",
    invoice_date=None,
    due_date=None,
    terms_days: int | None = None,
    revenue_code: str | None = None,
    memo: str = "",
    journal_entry: JournalEntry | None = None,
    source_type: str = "",
    source_id: str = "",
) -> CustomerInvoice:
    customer_name = (customer_name or "").strip()
    if not customer_name:
        raise LedgerValidationError("customer_name is required")

    chart = ar.get_chart_for_tenant(tenant_id)
    amount = _money(total, "total")
    invoice_date = invoice_date or timezone.localdate()

    invoice = CustomerInvoice(
        chart=chart,
        customer_id=(customer_id or "").strip() or customer_name.lower(),
        customer_name=customer_name,
        invoice_number=_next_invoice_number(chart),
        memo=memo or "",
        invoice_date=invoice_date,
        due_date=_due_date(invoice_date, due_date, terms_days),
        total=amount,
        journal_entry=journal_entry,
        source_type=source_type or "",
        source_id=str(source_id or ""),
    )
    invoice.save()

    if journal_entry is None:
        description = f"Invoice {invoice.invoice_number} ({customer_name})"
        invoice.journal_entry = record_journal_entry(
            tenant_id=chart.tenant_id,
            memo=memo or description,
            lines=[
                {"account": ar.resolve_account(chart, ar.ACCOUNTS_RECEIVABLE), "debit": amount, "description": description},
                {"account": _revenue_account(chart, revenue_code), "credit": amount, "description": description},
            ],
            entry_date=invoice_date,
            reference=f"{SOURCE_INVOICE.value}:{invoice.pk}",
            source_type=SOURCE_INVOICE,
            source_id=str(invoice.pk),
        )
        invoice.save(update_fields=["journal_entry"])

    logger.info(
        "Customer invoice created",
        extra={
            "tenant_id": chart.tenant_id,
            "invoice": invoice.invoice_number,
            "total": str(amount),
            "source": f"{invoice.source_type}:{invoice.source_id}" if invoice.source_type else "",
        },
    )
    return invoice


@transaction.atomic
def record_invoice_payment(
    *,
    invoice_id,
    amount,
    method: str = InvoicePayment.Method.CHECK,
    payment_date=None,
    reference: str = "",
) -> InvoicePayment:
    invoice = lock_invoice(invoice_id)

    if invoice.status not in CustomerInvoice.COLLECTIBLE_STATUSES:
        raise InvalidTransitionError(f"{invoice.invoice_number} is {invoice.status} and cannot take payments")
    if method not in InvoicePayment.Method.values:
        raise LedgerValidationError(f"Invalid payment method: {method!r}")

    amt = _money(amount, "amount")
    amount_due = invoice.amount_due
    if amt > amount_due:
        logger.warning(
            "Over-collection rejected",
            extra={"invoice": invoice.invoice_number, "amount": str(amt), "amount_due": str(amount_due)},
        )
        raise OverCollectionError(
            f"Payment {amt} exceeds amount due {amount_due} on {invoice.invoice_number}"
        )

    payment = InvoicePayment.objects.create(
        invoice=invoice,
        amount=amt,
        method=method,
        payment_date=payment_date or timezone.localdate(),
        reference=reference or "",
    )

    chart = invoice.chart
    deposit = ar.get_cash_account(chart) if method == InvoicePayment.Method.CASH else ar.get_bank_account(chart)
    description = f"Payment on invoice {invoice.invoice_number}"
    payment.journal_entry = record_journal_entry(
        tenant_id=chart.tenant_id,
        memo=f"{description} ({invoice.customer_name})",
        lines=[
            {"account": deposit, "debit": amt, "description": description},
            {"account": ar.resolve_account(chart, ar.ACCOUNTS_RECEIVABLE), "credit": amt, "description": description},
        ],
        entry_date=payment.payment_date,
        reference=f"{SOURCE_INVOICE_PAYMENT.value}:{payment.pk}",
        source_type=SOURCE_INVOICE_PAYMENT,
        source_id=str(payment.pk),
    )
    payment.save(update_fields=["journal_entry"])

    invoice.amount_paid = invoice.amount_paid + amt
    invoice.status = (
        CustomerInvoice.Status.PAID if invoice.amount_due == 0 else CustomerInvoice.Status.PARTIALLY_PAID
    )
    invoice.save()

    logger.info(
        "Invoice payment recorded",
        extra={
            "invoice": invoice.invoice_number,
            "amount": str(amt),
            "method": method,
            "status": invoice.status,
        },
    )
    return payment


def _void(invoice: CustomerInvoice) -> None:
    if invoice.status == CustomerInvoice.Status.VOIDED:
        raise AlreadyVoidedError(f"{invoice.invoice_number} is already voided")
    if invoice.amount_paid > 0 or invoice.payments.exists():
        raise InvalidTransitionError(f"{invoice.invoice_number} has payments and cannot be voided")
    invoice.status = CustomerInvoice.Status.VOIDED
    invoice.voided_at = timezone.now()
    invoice.save()


@transaction.atomic
def void_invoice(*, invoice_id) -> CustomerInvoice:
    invoice = lock_invoice(invoice_id)
    if invoice.source_type:
        raise InvalidTransitionError(
            f"{invoice.invoice_number} was raised by {invoice.source_type} {invoice.source_id}; void that instead"
        )

    _void(invoice)
    if invoice.journal_entry_id:
        reverse_journal_entry(entry_id=invoice.journal_entry_id, memo=f"Void of invoice {invoice.invoice_number}")

    logger.info("Customer invoice voided", extra={"invoice": invoice.invoice_number})
    return invoice


def void_invoices_for_source(*, source_type: str, source_id) -> int:
    """
    Void the invoices a source document raised. The caller reverses the
    shared journal entry; must run inside the caller's transaction.
    """
    invoices = list(
        CustomerInvoice.objects.select_for_update()
        .filter(source_type=source_type, source_id=str(source_id))
        .exclude(status=CustomerInvoice.Status.VOIDED)
        .order_by("pk")
    )
    for invoice in invoices:
        _void(invoice)
    return len(invoices)
