# purchases/services/bill_service.py

"""
======================================================
PATH: purchases/services/bill_service.py
======================================================
VENDOR BILLS (ACCOUNTS PAYABLE)

Two kinds of bill:

- Manual (no PO): approval posts Dr <line account or Other Expense> / Cr AP.
- Linked (PO, optionally one receipt): the receipt already booked
  Dr Inventory / Cr AP at receipt cost, so approval only posts the
  price variance between bill and receipt value:
      bill > receipt  -> Dr Purchase Price Variance / Cr AP
      bill < receipt  -> Dr AP / Cr Purchase Price Variance

Three-way match (per bill line vs PO line vs posted receipt lines):
  MATCHED      quantities and prices agree within tolerance
  PARTIAL      PO linked but nothing received yet, or bill covers less than received
  DISCREPANCY  billed qty > received and not yet billed, price off beyond
               tolerance, or line not on the PO
  UNMATCHED    no PO link
Quantities on other APPROVED / PARTIALLY_PAID / PAID bills of the same PO are
already billed; approval rejects a linked bill that bills past them.
Tolerances: MATCH_QTY_TOLERANCE / MATCH_PRICE_TOLERANCE (absolute).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.posting_intent import PostingIntent
from accounting.services import account_resolver as ar
from accounting.services.exceptions import AlreadyVoidedError, InvalidTransitionError
from accounting.services.journal_entry_service import record_journal_entry, reverse_journal_entry
from purchases.models import Bill, BillLine, PurchaseOrder, Receipt, ReceiptLine
from purchases.services import sequence_service
from purchases.services.exceptions import OverBillingError, PurchasingError
from purchases.services.lifecycle import decimal_field, lock_document, transition
from purchases.services.order_service import load_vendor

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
SOURCE_BILL = PostingIntent.SourceType.BILL
MATCHABLE_STATUSES = {Bill.Status.DRAFT, Bill.Status.PENDING_APPROVAL}
BILLED_STATUSES = (Bill.Status.APPROVED, Bill.Status.PARTIALLY_PAID, Bill.Status.PAID)


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _qty_tolerance() -> Decimal:
    return Decimal(str(getattr(settings, "MATCH_QTY_TOLERANCE", "0.001")))


def _price_tolerance() -> Decimal:
    return Decimal(str(getattr(settings, "MATCH_PRICE_TOLERANCE", "0.01")))


def _due_date(vendor, bill_date, due_date):
    if due_date:
        return due_date
    days = vendor.payment_terms_days
    if days is None:
        days = getattr(settings, "DEFAULT_PAYMENT_TERMS_DAYS", 30)
    return bill_date + timedelta(days=int(days))


def _lines_from_documents(po: PurchaseOrder, receipt: Receipt | None) -> list[dict]:
    if receipt is not None:
        return [
            {
                "po_line_number": line.po_line.line_number,
                "quantity": line.qty_received,
                "unit_price": line.unit_cost,
            }
            for line in receipt.lines.select_related("po_line")
        ]
    return [
        {
            "po_line_number": line.line_number,
            "quantity": line.qty_received if line.qty_received > 0 else line.qty_ordered,
            "unit_price": line.unit_price,
        }
        for line in po.lines.all()
    ]


def _line_account(chart, account_id) -> Account | None:
    if account_id in (None, ""):
        return None
    try:
        return Account.objects.get(chart=chart, pk=account_id)
    except (Account.DoesNotExist, ValueError) as exc:
        raise PurchasingError(f"Account not found: {account_id}") from exc


@transaction.atomic
def create_bill(
    *,
    tenant_id: str,
    vendor_id,
    lines: list[dict] | None = None,
    purchase_order_id=None,
    receipt_id=None,
    bill_date=None,
    due_date=None,
    vendor_invoice_number: str = "",
) -> Bill:
    """
    Manual bill: lines [{"description", "quantity", "unit_price", "account_id"?}]
    Linked bill: lines [{"po_line_number", "quantity", "unit_price"}]; when no
    lines are given they are copied from the receipt (or the PO).
    """
    vendor = load_vendor(tenant_id, vendor_id)
    bill_date = bill_date or timezone.localdate()

    receipt = None
    if receipt_id:
        try:
            receipt = Receipt.objects.select_related("purchase_order").get(pk=receipt_id, tenant_id=tenant_id)
        except (Receipt.DoesNotExist, ValueError) as exc:
            raise PurchasingError(f"Receipt not found: {receipt_id}") from exc

    po = None
    if purchase_order_id:
        try:
            po = PurchaseOrder.objects.get(pk=purchase_order_id, tenant_id=tenant_id)
        except (PurchaseOrder.DoesNotExist, ValueError) as exc:
            raise PurchasingError(f"Purchase order not found: {purchase_order_id}") from exc
    elif receipt is not None:
        po = receipt.purchase_order

    if po is not None:
        if po.vendor_id != vendor.pk:
            raise PurchasingError(f"{po.number} was issued to a different vendor")
        if po.status in (PurchaseOrder.Status.DRAFT, PurchaseOrder.Status.CANCELLED):
            raise PurchasingError(f"Cannot bill {po.number} in status {po.status}")
    if receipt is not None and receipt.purchase_order_id != po.pk:
        raise PurchasingError(f"{receipt.number} does not belong to {po.number}")

    if not lines and po is not None:
        lines = _lines_from_documents(po, receipt)
    if not lines:
        raise PurchasingError("A bill needs at least one line")

    bill = Bill.objects.create(
        tenant_id=tenant_id,
        number=sequence_service.next_number(tenant_id=tenant_id, prefix=sequence_service.BILL),
        vendor=vendor,
        vendor_invoice_number=vendor_invoice_number or "",
        purchase_order=po,
        receipt=receipt,
        bill_date=bill_date,
        due_date=_due_date(vendor, bill_date, due_date),
        match_status=Bill.MatchStatus.PARTIAL if po is not None else Bill.MatchStatus.UNMATCHED,
    )

    chart = ar.get_chart_for_tenant(tenant_id) if any(raw.get("account_id") for raw in lines) else None
    po_lines = {line.line_number: line for line in po.lines.all()} if po is not None else {}

    total = Decimal("0.00")
    for n, raw in enumerate(lines, start=1):
        po_line = None
        if raw.get("po_line_number") is not None:
            if po is None:
                raise PurchasingError("po_line_number given on a bill without a purchase order")
            po_line = po_lines.get(int(raw["po_line_number"]))
            if po_line is None:
                raise PurchasingError(f"{po.number} has no line {raw['po_line_number']}")

        if raw.get("amount") is not None and raw.get("unit_price") is None:
            quantity = Decimal("1.000")
            unit_price = decimal_field(raw["amount"], field_name="amount", places="0.0001")
        else:
            quantity = decimal_field(raw.get("quantity", "1"), field_name="quantity")
            unit_price = decimal_field(
                raw.get("unit_price"), field_name="unit_price", places="0.0001", positive=False
            )

        line = BillLine.objects.create(
            bill=bill,
            line_number=n,
            po_line=po_line,
            account=_line_account(chart, raw.get("account_id")),
            description=raw.get("description") or (po_line.description if po_line else ""),
            quantity=quantity,
            unit_price=unit_price,
        )
        total += line.amount

    bill.total = _money(total)
    bill.save(update_fields=["total", "updated_at"])

    logger.info(
        "Bill created",
        extra={"bill": bill.number, "vendor_id": str(vendor.pk), "total": str(bill.total), "linked": po is not None},
    )
    return bill


def _received_by_po_line(bill: Bill, *, receipt_only: bool) -> tuple[dict, dict]:
    """(qty, value) per PO line from posted receipts of the bill's PO (or its own receipt)."""
    qs = ReceiptLine.objects.filter(
        receipt__purchase_order_id=bill.purchase_order_id,
        receipt__status=Receipt.Status.POSTED,
    )
    if receipt_only:
        qs = qs.filter(receipt_id=bill.receipt_id)

    qty = defaultdict(lambda: Decimal("0"))
    value = defaultdict(lambda: Decimal("0"))
    for line in qs:
        qty[line.po_line_id] += line.qty_received
        value[line.po_line_id] += line.qty_received * line.unit_cost
    return qty, value


def _billed_by_po_line(bill: Bill, *, receipt_only: bool) -> dict:
    """Quantity per PO line already on other approved (or paid) bills."""
    qs = BillLine.objects.filter(
        bill__purchase_order_id=bill.purchase_order_id,
        bill__status__in=BILLED_STATUSES,
        po_line__isnull=False,
    ).exclude(bill_id=bill.pk)
    if receipt_only:
        qs = qs.filter(bill__receipt_id=bill.receipt_id)

    qty = defaultdict(lambda: Decimal("0"))
    for line in qs:
        qty[line.po_line_id] += line.quantity
    return qty


def _billable_by_po_line(bill: Bill) -> tuple[dict, dict, dict]:
    """
    (received, received_value, open_to_bill) per PO line.

    open_to_bill = received - already billed, never below zero. A bill tied
    to one receipt is also capped by what the whole PO has left to bill.
    """
    po_qty, po_value = _received_by_po_line(bill, receipt_only=False)
    po_billed = _billed_by_po_line(bill, receipt_only=False)
    open_qty = defaultdict(lambda: Decimal("0"))
    for po_line_id, got in po_qty.items():
        open_qty[po_line_id] = max(got - po_billed[po_line_id], Decimal("0"))

    if not bill.receipt_id:
        return po_qty, po_value, open_qty

    rc_qty, rc_value = _received_by_po_line(bill, receipt_only=True)
    rc_billed = _billed_by_po_line(bill, receipt_only=True)
    capped = defaultdict(lambda: Decimal("0"))
    for po_line_id, got in rc_qty.items():
        capped[po_line_id] = min(max(got - rc_billed[po_line_id], Decimal("0")), open_qty[po_line_id])
    return rc_qty, rc_value, capped


def evaluate_match(bill: Bill) -> dict:
    """
    Pure evaluation (no writes). Returns match_status, variance_amount and
    a per-line breakdown. Quantities already billed on other approved bills
    are not billable again.
    """
    if not bill.is_linked:
        return {"match_status": Bill.MatchStatus.UNMATCHED, "variance_amount": Decimal("0.00"), "lines": []}

    qty_tol = _qty_tolerance()
    price_tol = _price_tolerance()
    received_qty, received_value, open_qty = _billable_by_po_line(bill)

    results = []
    variance = Decimal("0.00")
    for line in bill.lines.select_related("po_line"):
        po_line = line.po_line
        if po_line is None:
            results.append(
                {
                    "line_number": line.line_number,
                    "status": Bill.MatchStatus.DISCREPANCY,
                    "reason": "not on purchase order",
                    "received": None,
                    "open_to_bill": None,
                }
            )
            variance += line.amount
            continue

        got = received_qty[po_line.pk]
        billable = open_qty[po_line.pk]
        avg_cost = (received_value[po_line.pk] / got) if got > 0 else po_line.unit_price
        covered = min(line.quantity, billable)
        variance += line.amount - _money(covered * avg_cost)

        if got <= 0:
            status, reason = Bill.MatchStatus.PARTIAL, "nothing received yet"
        elif billable <= 0:
            status, reason = Bill.MatchStatus.DISCREPANCY, f"all {got} received already billed"
        elif line.quantity - billable > qty_tol:
            status, reason = (
                Bill.MatchStatus.DISCREPANCY,
                f"billed {line.quantity} but only {billable} of {got} received is unbilled",
            )
        elif abs(line.unit_price - po_line.unit_price) > price_tol:
            status, reason = Bill.MatchStatus.DISCREPANCY, f"price {line.unit_price} vs PO {po_line.unit_price}"
        elif abs(line.unit_price - avg_cost) > price_tol:
            status, reason = Bill.MatchStatus.DISCREPANCY, f"price {line.unit_price} vs receipt {_money(avg_cost)}"
        elif billable - line.quantity > qty_tol:
            status, reason = Bill.MatchStatus.PARTIAL, f"billed {line.quantity} of {billable} unbilled"
        else:
            status, reason = Bill.MatchStatus.MATCHED, ""

        results.append(
            {
                "line_number": line.line_number,
                "status": status,
                "reason": reason,
                "received": got,
                "open_to_bill": billable,
                "quantity": line.quantity,
            }
        )

    statuses = {r["status"] for r in results}
    if Bill.MatchStatus.DISCREPANCY in statuses:
        overall = Bill.MatchStatus.DISCREPANCY
    elif statuses == {Bill.MatchStatus.MATCHED}:
        overall = Bill.MatchStatus.MATCHED
    else:
        overall = Bill.MatchStatus.PARTIAL

    return {"match_status": overall, "variance_amount": _money(variance), "lines": results}


@transaction.atomic
def match_bill(*, bill_id) -> dict:
    bill = lock_document(Bill, bill_id)
    if bill.status not in MATCHABLE_STATUSES:
        raise InvalidTransitionError(f"{bill.number} can only be matched before approval")

    outcome = evaluate_match(bill)
    bill.match_status = outcome["match_status"]
    bill.variance_amount = outcome["variance_amount"]
    bill.save(update_fields=["match_status", "variance_amount", "updated_at"])

    log = logger.info if bill.match_status != Bill.MatchStatus.DISCREPANCY else logger.warning
    log(
        "Bill matched",
        extra={"bill": bill.number, "match_status": bill.match_status, "variance": str(bill.variance_amount)},
    )
    return {"bill_id": str(bill.pk), "bill_total": bill.total, **outcome}


@transaction.atomic
def submit_bill(*, bill_id) -> Bill:
    bill = lock_document(Bill, bill_id)
    if bill.total <= 0:
        raise PurchasingError(f"{bill.number} has no amount to approve")
    transition(bill, Bill.Status.PENDING_APPROVAL)
    bill.save()
    return bill


def _manual_bill_lines(bill: Bill, chart) -> list[dict]:
    fallback = None
    lines = []
    for line in bill.lines.select_related("account"):
        if line.amount <= 0:
            continue
        account = line.account
        if account is None:
            fallback = fallback or ar.resolve_account(chart, ar.OTHER_EXPENSE)
            account = fallback
        lines.append({"account": account, "debit": line.amount, "description": line.description or bill.number})
    lines.append(
        {"account": ar.get_accounts_payable_account(chart), "credit": bill.total, "description": f"Bill {bill.number}"}
    )
    return lines


def _variance_lines(bill: Bill, chart) -> list[dict]:
    amount = abs(bill.variance_amount)
    if amount <= 0:
        return []
    ppv = ar.resolve_account(chart, ar.PURCHASE_PRICE_VARIANCE)
    ap = ar.get_accounts_payable_account(chart)
    description = f"Price variance on bill {bill.number}"
    if bill.variance_amount > 0:
        return [
            {"account": ppv, "debit": amount, "description": description},
            {"account": ap, "credit": amount, "description": description},
        ]
    return [
        {"account": ap, "debit": amount, "description": description},
        {"account": ppv, "credit": amount, "description": description},
    ]


@transaction.atomic
def approve_bill(*, bill_id) -> Bill:
    bill = lock_document(Bill, bill_id)
    transition(bill, Bill.Status.APPROVED)
    chart = ar.get_chart_for_tenant(bill.tenant_id)

    if bill.is_linked:
        # serializes approvals of bills drawing on the same PO lines
        lock_document(PurchaseOrder, bill.purchase_order_id)
        outcome = evaluate_match(bill)
        if any(r["received"] == 0 for r in outcome["lines"]):
            raise InvalidTransitionError(f"{bill.number} bills goods that have not been received yet")
        over = [
            r
            for r in outcome["lines"]
            if r["open_to_bill"] is not None and r["quantity"] - r["open_to_bill"] > _qty_tolerance()
        ]
        if over:
            logger.warning(
                "Over-billing rejected",
                extra={"bill": bill.number, "lines": [r["line_number"] for r in over]},
            )
            raise OverBillingError(
                f"{bill.number} bills more than was received and not yet billed: "
                + "; ".join(f"line {r['line_number']}: {r['reason']}" for r in over)
            )
        bill.match_status = outcome["match_status"]
        bill.variance_amount = outcome["variance_amount"]
        lines = _variance_lines(bill, chart)
    else:
        lines = _manual_bill_lines(bill, chart)

    if lines and bill.total > 0:
        bill.journal_entry = record_journal_entry(
            tenant_id=bill.tenant_id,
            memo=f"Bill {bill.number} ({bill.vendor.name})",
            lines=lines,
            entry_date=bill.bill_date,
            reference=f"{SOURCE_BILL.value}:{bill.pk}",
            source_type=SOURCE_BILL,
            source_id=str(bill.pk),
        )

    bill.approved_at = timezone.now()
    bill.save()

    logger.info(
        "Bill approved",
        extra={
            "bill": bill.number,
            "total": str(bill.total),
            "variance": str(bill.variance_amount),
            "journal_entry_id": bill.journal_entry_id,
        },
    )
    return bill


@transaction.atomic
def void_bill(*, bill_id) -> Bill:
    bill = lock_document(Bill, bill_id)
    if bill.status == Bill.Status.VOIDED:
        raise AlreadyVoidedError(f"{bill.number} is already voided")
    if bill.payments.exists():
        raise InvalidTransitionError(f"{bill.number} has payments and cannot be voided")

    transition(bill, Bill.Status.VOIDED)
    if bill.journal_entry_id:
        reverse_journal_entry(entry_id=bill.journal_entry_id, memo=f"Void of bill {bill.number}")

    bill.voided_at = timezone.now()
    bill.save()

    logger.info("Bill voided", extra={"bill": bill.number})
    return bill
