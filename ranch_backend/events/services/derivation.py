# events/services/derivation.py

"""
======================================================
PATH: events/services/derivation.py
======================================================
LINE DERIVATION RULES (one per payload variant)

Each rule has up to two halves:
- inventory(event, payload, items): writes InventoryMovements for the event
- ledger(event, payload, movements, chart): returns journal lines

plus an optional documents(event, payload, entry) hook run right after the
journal entry is posted, in the same step (a sale on account raises its
customer invoice there).
The ledger half prices inventory from the movements that were actually
recorded (moving-average cost at the time), never from entered unit costs,
so the books and the stock valuation cannot drift apart.

A half that is None means the event has no effect on that side
(labor/maintenance touch no stock, transfers book nothing).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from django.core.exceptions import ImproperlyConfigured

from accounting.models.posting_intent import PostingIntent
from accounting.services import account_resolver as ar
from accounting.services.invoice_service import create_invoice
from events.payloads import (
    PAYLOAD_TYPES,
    SETTLE_CASH,
    SETTLE_RECEIVABLE,
    AdjustmentPayload,
    FeedingPayload,
    LaborPayload,
    MaintenancePayload,
    ReceivingPayload,
    SalePayload,
    TransferPayload,
    TreatmentPayload,
)
from inventory.services.valuation import (
    adjust_inventory,
    consume_inventory,
    receive_inventory,
    transfer_inventory,
)

SOURCE_EVENT = PostingIntent.SourceType.EVENT


@dataclass(frozen=True)
class DerivationRule:
    inventory: Callable | None
    ledger: Callable | None
    documents: Callable | None = None


def _pair(debit_account, credit_account, amount: Decimal, description: str) -> list[dict]:
    amount = abs(amount)
    if amount <= 0:
        return []
    return [
        {"account": debit_account, "debit": amount, "description": description},
        {"account": credit_account, "credit": amount, "description": description},
    ]


def _movement_value(movements) -> Decimal:
    return abs(sum((m.total_cost for m in movements), Decimal("0.00")))


# ------------------------------------------------------------
# Inventory halves
# ------------------------------------------------------------


def _consume_lines(event, payload, items) -> None:
    for line in payload.lines:
        consume_inventory(
            item=items[line.item_id],
            site_id=event.site_id,
            quantity=line.resolved_quantity(event.animal_count),
            source_type=SOURCE_EVENT,
            source_id=event.pk,
        )


def _receive_lines(event, payload: ReceivingPayload, items) -> None:
    for line in payload.lines:
        receive_inventory(
            item=items[line.item_id],
            site_id=event.site_id,
            quantity=line.quantity,
            unit_cost=line.unit_cost,
            source_type=SOURCE_EVENT,
            source_id=event.pk,
        )


def _adjust(event, payload: AdjustmentPayload, items) -> None:
    adjust_inventory(
        item=items[payload.item_id],
        site_id=event.site_id,
        quantity_delta=payload.quantity_delta,
        unit_cost=payload.unit_cost,
        source_type=SOURCE_EVENT,
        source_id=event.pk,
        note=payload.reason,
    )


def _transfer(event, payload: TransferPayload, items) -> None:
    transfer_inventory(
        item=items[payload.item_id],
        from_site_id=event.site_id,
        to_site_id=payload.to_site_id,
        quantity=payload.quantity,
        source_type=SOURCE_EVENT,
        source_id=event.pk,
    )


# ------------------------------------------------------------
# Ledger halves
# ------------------------------------------------------------


def _consumption_ledger(expense_subtype: str):
    def derive(event, payload, movements, chart) -> list[dict]:
        return _pair(
            ar.resolve_account(chart, expense_subtype),
            ar.get_inventory_account(chart),
            _movement_value(movements),
            f"{event.get_event_type_display()} at {event.site_id}",
        )

    return derive


def _receiving_ledger(event, payload: ReceivingPayload, movements, chart) -> list[dict]:
    if payload.settlement == SETTLE_CASH:
        credit_account = ar.get_cash_account(chart)
    else:
        credit_account = ar.get_accounts_payable_account(chart)
    description = payload.vendor_name or "Inventory received"
    return _pair(ar.get_inventory_account(chart), credit_account, _movement_value(movements), description)


def _sale_ledger(event, payload: SalePayload, movements, chart) -> list[dict]:
    if payload.settlement == SETTLE_RECEIVABLE:
        debit_account = ar.resolve_account(chart, ar.ACCOUNTS_RECEIVABLE)
    else:
        debit_account = ar.get_cash_account(chart)

    description = payload.customer_name or "Sale"
    lines = _pair(debit_account, ar.resolve_account(chart, ar.SALES), payload.amount, description)
    if movements:
        lines += _pair(
            ar.resolve_account(chart, ar.COST_OF_GOODS),
            ar.get_inventory_account(chart),
            _movement_value(movements),
            "Cost of goods sold",
        )
    return lines


def _labor_ledger(event, payload: LaborPayload, movements, chart) -> list[dict]:
    return _pair(
        ar.resolve_account(chart, ar.LABOR_EXPENSE),
        ar.get_cash_account(chart),
        payload.total,
        payload.worker_name or "Labor",
    )


def _maintenance_ledger(event, payload: MaintenancePayload, movements, chart) -> list[dict]:
    return _pair(
        ar.resolve_account(chart, ar.REPAIR_EXPENSE),
        ar.get_cash_account(chart),
        payload.amount,
        payload.asset_name or payload.vendor_name or "Maintenance",
    )


def _adjustment_ledger(event, payload: AdjustmentPayload, movements, chart) -> list[dict]:
    inventory = ar.get_inventory_account(chart)
    adjustment = ar.resolve_account(chart, ar.INVENTORY_ADJUSTMENT)
    value = _movement_value(movements)
    description = payload.reason or "Inventory adjustment"
    if payload.quantity_delta > 0:
        return _pair(inventory, adjustment, value, description)
    return _pair(adjustment, inventory, value, description)


# ------------------------------------------------------------
# Documents
# ------------------------------------------------------------


def _sale_invoice(event, payload: SalePayload, entry) -> None:
    if payload.settlement != SETTLE_RECEIVABLE:
        return
    create_invoice(
        tenant_id=event.tenant_id,
        customer_name=payload.customer_name,
        customer_id=payload.customer_id,
        total=payload.amount,
        invoice_date=event.event_date,
        terms_days=payload.terms_days,
        memo=f"Sale event #{event.pk}",
        journal_entry=entry,
        source_type=SOURCE_EVENT,
        source_id=str(event.pk),
    )


RULES = {
    FeedingPayload: DerivationRule(_consume_lines, _consumption_ledger(ar.FEED_EXPENSE)),
    TreatmentPayload: DerivationRule(_consume_lines, _consumption_ledger(ar.MEDICAL_EXPENSE)),
    ReceivingPayload: DerivationRule(_receive_lines, _receiving_ledger),
    SalePayload: DerivationRule(_consume_lines, _sale_ledger, _sale_invoice),
    LaborPayload: DerivationRule(None, _labor_ledger),
    MaintenancePayload: DerivationRule(None, _maintenance_ledger),
    AdjustmentPayload: DerivationRule(_adjust, _adjustment_ledger),
    TransferPayload: DerivationRule(_transfer, None),
}

_missing = set(PAYLOAD_TYPES.values()) - set(RULES)
if _missing:
    raise ImproperlyConfigured(
        f"Payload variants without a derivation rule: {sorted(c.__name__ for c in _missing)}"
    )


def rule_for(payload) -> DerivationRule:
    return RULES[type(payload)]
