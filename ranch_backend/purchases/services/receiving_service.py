# purchases/services/receiving_service.py


"""
======================================================
PATH: purchases/services/receiving_service.py
======================================================
PURCHASE RECEIVING SERVICE

create_receipt(): DRAFT receipt against a sent PO, validated against the
quantity still open on each PO line (ordered - received - other drafts).

post_receipt(): one PostingIntent keyed RECEIPT:<id>, three steps:
1) quantities -> PO line qty_received += receipt qty (under the PO lock,
   0 <= qty_received <= qty_ordered re-checked) and PO status derived
2) inventory  -> inbound movement per line at the receipt unit cost
3) ledger     -> Dr Inventory / Cr Accounts Payable at movement value

Idempotency rule:
- a finished step is never repeated, so a reprocess after a ledger failure
  neither re-counts PO quantities nor receives the stock twice
- OverReceiptError and the other validation errors roll the whole
  attempt back
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from accounting.models.posting_intent import PostingIntent
from accounting.services import account_resolver as ar
from accounting.services.exceptions import AccountingServiceError, InvalidTransitionError
from accounting.services.journal_entry_service import record_journal_entry
from accounting.services.posting_intent_service import (
    PostingStep,
    lock_intent,
    run_posting_steps,
)
from inventory.services.valuation import (
    lock_site_inventory,
    movements_for_source,
    receive_inventory,
)
from purchases.models import PurchaseOrder, PurchaseOrderLine, Receipt, ReceiptLine
from purchases.services import sequence_service
from purchases.services.exceptions import OverReceiptError, PurchasingError
from purchases.services.lifecycle import decimal_field, lock_document
from purchases.services.order_service import refresh_receiving_status

logger = logging.getLogger(__name__)

SOURCE_RECEIPT = PostingIntent.SourceType.RECEIPT


def _pending_quantities(po: PurchaseOrder) -> dict:
    """Quantities sitting on DRAFT receipts, not yet counted on the PO lines."""
    rows = (
        ReceiptLine.objects.filter(
            receipt__purchase_order=po,
            receipt__status=Receipt.Status.DRAFT,
        )
        .values("po_line_id")
        .annotate(qty=Sum("qty_received"))
    )
    return {row["po_line_id"]: row["qty"] or Decimal("0") for row in rows}


def _resolve_po_line(po_lines: dict, raw: dict) -> PurchaseOrderLine:
    if raw.get("po_line_id") is not None:
        for line in po_lines.values():
            if str(line.pk) == str(raw["po_line_id"]):
                return line
    elif raw.get("po_line_number") is not None:
        try:
            line = po_lines.get(int(raw["po_line_number"]))
        except (TypeError, ValueError):
            line = None
        if line is not None:
            return line
    raise PurchasingError(f"Unknown PO line: {raw.get('po_line_number', raw.get('po_line_id'))!r}")


@transaction.atomic
def create_receipt(*, purchase_order_id, lines: list[dict], receipt_date=None, site_id: str | None = None) -> Receipt:
    """
    lines: [{"po_line_number", "qty_received", "unit_cost"?}, ...]
    unit_cost defaults to the PO line unit price.
    """
    po = lock_document(PurchaseOrder, purchase_order_id)

    if po.status not in PurchaseOrder.RECEIVABLE_STATUSES:
        raise InvalidTransitionError(f"Cannot receive against {po.number} in status {po.status}")
    if not lines:
        raise PurchasingError("A receipt needs at least one line")

    po_lines = {line.line_number: line for line in po.lines.select_related("item")}
    pending = _pending_quantities(po)

    requested = defaultdict(lambda: Decimal("0"))
    parsed = []
    for raw in lines:
        po_line = _resolve_po_line(po_lines, raw)
        qty = decimal_field(raw.get("qty_received"), field_name="qty_received")
        unit_cost = decimal_field(
            raw.get("unit_cost", po_line.unit_price),
            field_name="unit_cost",
            places="0.0001",
            positive=False,
        )
        requested[po_line.pk] += qty
        parsed.append((po_line, qty, unit_cost))

    for po_line, _, _ in parsed:
        open_qty = po_line.qty_remaining - pending.get(po_line.pk, Decimal("0"))
        if requested[po_line.pk] > open_qty:
            logger.warning(
                "Over-receipt rejected",
                extra={
                    "po": po.number,
                    "line": po_line.line_number,
                    "requested": str(requested[po_line.pk]),
                    "open": str(open_qty),
                },
            )
            raise OverReceiptError(
                f"Line {po_line.line_number}: receiving {requested[po_line.pk]} "
                f"but only {open_qty} remains open"
            )

    receipt = Receipt(
        tenant_id=po.tenant_id,
        site_id=site_id or po.site_id,
        number=sequence_service.next_number(tenant_id=po.tenant_id, prefix=sequence_service.RECEIPT),
        purchase_order=po,
    )
    if receipt_date:
        receipt.receipt_date = receipt_date
    receipt.save()

    ReceiptLine.objects.bulk_create(
        [
            ReceiptLine(receipt=receipt, po_line=po_line, qty_received=qty, unit_cost=unit_cost)
            for po_line, qty, unit_cost in parsed
        ]
    )
    return receipt


def _build_steps(receipt: Receipt, po: PurchaseOrder, lines: list[ReceiptLine], chart) -> list[PostingStep]:
    def quantities_step(intent):
        for line in lines:
            po_line = PurchaseOrderLine.objects.select_for_update().get(pk=line.po_line_id)
            new_qty = po_line.qty_received + line.qty_received
            if new_qty > po_line.qty_ordered:
                raise OverReceiptError(
                    f"Line {po_line.line_number}: {new_qty} would exceed ordered {po_line.qty_ordered}"
                )
            po_line.qty_received = new_qty
            po_line.save(update_fields=["qty_received"])
        refresh_receiving_status(po)

    def inventory_step(intent):
        items = {line.po_line.item_id: line.po_line.item for line in lines}
        for item_id in sorted(items):
            lock_site_inventory(item=items[item_id], site_id=receipt.site_id)
        for line in lines:
            receive_inventory(
                item=line.po_line.item,
                site_id=receipt.site_id,
                quantity=line.qty_received,
                unit_cost=line.unit_cost,
                source_type=SOURCE_RECEIPT,
                source_id=str(receipt.pk),
                note=f"{receipt.number} / {po.number} line {line.po_line.line_number}",
            )

    def ledger_step(intent):
        movements = movements_for_source(source_type=SOURCE_RECEIPT, source_id=receipt.pk)
        value = sum((m.total_cost for m in movements), Decimal("0.00"))
        if value <= 0:
            return
        description = f"Receipt {receipt.number} for {po.number}"
        intent.journal_entry = record_journal_entry(
            tenant_id=receipt.tenant_id,
            memo=f"{description} ({po.vendor.name})",
            lines=[
                {"account": ar.get_inventory_account(chart), "debit": value, "description": description},
                {"account": ar.get_accounts_payable_account(chart), "credit": value, "description": description},
            ],
            entry_date=receipt.receipt_date,
            reference=intent.reference,
            source_type=SOURCE_RECEIPT,
            source_id=str(receipt.pk),
        )

    return [
        PostingStep("quantities", "quantities_done", quantities_step),
        PostingStep("inventory", "inventory_done", inventory_step),
        PostingStep("ledger", "ledger_done", ledger_step),
    ]


@transaction.atomic
def post_receipt(*, receipt_id) -> dict:
    receipt = lock_document(Receipt, receipt_id)
    if receipt.status == Receipt.Status.POSTED:
        return {"posted": True, "partial": False, "message": "Receipt already posted"}

    po = lock_document(PurchaseOrder, receipt.purchase_order_id)
    chart = ar.get_chart_for_tenant(receipt.tenant_id)
    intent = lock_intent(chart=chart, source_type=SOURCE_RECEIPT, source_id=receipt.pk)

    if not intent.quantities_done and po.status not in PurchaseOrder.RECEIVABLE_STATUSES:
        raise InvalidTransitionError(f"Cannot receive against {po.number} in status {po.status}")

    lines = list(
        receipt.lines.select_related("po_line", "po_line__item").order_by("po_line__line_number", "pk")
    )
    result = run_posting_steps(intent, _build_steps(receipt, po, lines, chart))

    if result["posted"]:
        receipt.status = Receipt.Status.POSTED
        receipt.posted_at = intent.posted_at or timezone.now()
        receipt.journal_entry = intent.journal_entry
        receipt.last_error = ""
    elif result["partial"]:
        receipt.status = Receipt.Status.PARTIAL_FAILURE
        receipt.last_error = result["message"] or ""
    else:
        receipt.last_error = result["message"] or ""
    receipt.save()

    log = logger.info if result["posted"] else logger.warning
    log(
        "Receipt posting finished",
        extra={
            "receipt": receipt.number,
            "po": po.number,
            "posted": result["posted"],
            "partial": result["partial"],
            "attempts": intent.attempts,
        },
    )
    return result


def reprocess_failed_receipts(*, tenant_id: str) -> dict:
    receipt_ids = list(
        Receipt.objects.filter(tenant_id=tenant_id, status=Receipt.Status.PARTIAL_FAILURE)
        .order_by("created_at")
        .values_list("pk", flat=True)
    )

    reprocessed = 0
    details = []
    for receipt_id in receipt_ids:
        try:
            result = post_receipt(receipt_id=receipt_id)
        except AccountingServiceError as exc:
            logger.warning("Receipt reprocess rejected", extra={"receipt_id": str(receipt_id), "error": str(exc)})
            result = {"posted": False, "partial": True, "message": str(exc)}
        if result["posted"]:
            reprocessed += 1
        details.append({"receipt_id": str(receipt_id), **result})

    return {
        "found": len(receipt_ids),
        "reprocessed": reprocessed,
        "message": f"Reprocessed {reprocessed} of {len(receipt_ids)} failed receipts",
        "details": details,
    }
