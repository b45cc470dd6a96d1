# events/services/event_service.py

"""
EVENT RECORDING SERVICE

Create/update events before they are posted. Totals shown to the UI
(total_quantity, total_cost) are computed here from the payload inputs
only; the UI never computes them.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction

from accounting.services.exceptions import DocumentNotFoundError, InvalidTransitionError
from events.models import Event
from events.payloads import (
    AdjustmentPayload,
    FeedingPayload,
    LaborPayload,
    MaintenancePayload,
    ReceivingPayload,
    SalePayload,
    TransferPayload,
    item_ids,
    line_cost,
    parse_payload,
    payload_to_json,
)
from events.services.exceptions import PayloadValidationError
from inventory.models import InventoryItem

logger = logging.getLogger(__name__)

QTY_PLACES = Decimal("0.001")
TWOPLACES = Decimal("0.01")

EDITABLE_FIELDS = ("site_id", "event_date", "description", "status", "payload", "group_id", "animal_count")


def load_items(tenant_id: str, payload) -> dict[int, InventoryItem]:
    wanted = item_ids(payload)
    if not wanted:
        return {}
    items = {
        item.pk: item
        for item in InventoryItem.objects.filter(tenant_id=tenant_id, pk__in=wanted, is_active=True)
    }
    missing = [i for i in wanted if i not in items]
    if missing:
        raise PayloadValidationError(f"Unknown or inactive inventory item(s): {missing}")
    return items


def compute_totals(payload, *, animal_count: int | None, items: dict) -> tuple[Decimal, Decimal]:
    """
    Returns (total_quantity, total_cost) for the payload.

    Consumption lines use the entered unit cost, or the item's default
    unit cost when none was entered.
    """
    quantity = Decimal("0")
    cost = Decimal("0")

    if isinstance(payload, (FeedingPayload, SalePayload)):
        for line in payload.lines:
            qty = line.resolved_quantity(animal_count)
            unit_cost = line.unit_cost if line.unit_cost is not None else items[line.item_id].default_unit_cost
            quantity += qty
            cost += line_cost(qty, unit_cost)
        if isinstance(payload, SalePayload):
            cost = payload.amount
    elif isinstance(payload, ReceivingPayload):
        for line in payload.lines:
            quantity += line.quantity
            cost += line_cost(line.quantity, line.unit_cost)
    elif isinstance(payload, LaborPayload):
        quantity = payload.hours or Decimal("0")
        cost = payload.total
    elif isinstance(payload, MaintenancePayload):
        cost = payload.amount
    elif isinstance(payload, AdjustmentPayload):
        quantity = payload.quantity_delta
        unit_cost = payload.unit_cost if payload.unit_cost is not None else items[payload.item_id].default_unit_cost
        cost = line_cost(abs(payload.quantity_delta), unit_cost)
    elif isinstance(payload, TransferPayload):
        quantity = payload.quantity
        cost = line_cost(payload.quantity, items[payload.item_id].default_unit_cost)

    return (
        quantity.quantize(QTY_PLACES, rounding=ROUND_HALF_UP),
        Decimal(cost).quantize(TWOPLACES, rounding=ROUND_HALF_UP),
    )


def lock_event(event_id) -> Event:
    try:
        return Event.objects.select_for_update().get(pk=event_id)
    except Event.DoesNotExist as exc:
        raise DocumentNotFoundError(f"Event {event_id} not found") from exc


def _apply_payload(event: Event, raw_payload) -> None:
    payload = parse_payload(event.event_type, raw_payload)
    items = load_items(event.tenant_id, payload)
    event.payload = payload_to_json(payload)
    event.total_quantity, event.total_cost = compute_totals(
        payload, animal_count=event.animal_count, items=items
    )


@transaction.atomic
def create_event(
    *,
    tenant_id: str,
    site_id: str,
    event_type: str,
    payload: dict,
    event_date=None,
    description: str = "",
    status: str = Event.Status.PENDING,
    group_id: str = "",
    animal_count: int | None = None,
) -> Event:
    event = Event(
        tenant_id=tenant_id,
        site_id=site_id,
        event_type=event_type,
        description=description or "",
        status=status,
        group_id=group_id or "",
        animal_count=animal_count,
    )
    if event_date is not None:
        event.event_date = event_date

    if status == Event.Status.CANCELLED:
        raise InvalidTransitionError("Events cannot be created cancelled")

    _apply_payload(event, payload)
    event.save()

    logger.info(
        "Event recorded",
        extra={"event_id": event.pk, "event_type": event.event_type, "tenant_id": tenant_id},
    )
    return event


@transaction.atomic
def update_event(*, event_id, **changes) -> Event:
    """
    Edit an UNPOSTED event. Any change recomputes totals from the current
    inputs (payload + animal_count) from scratch.
    """
    event = lock_event(event_id)

    if event.posting_status != Event.PostingStatus.UNPOSTED:
        raise InvalidTransitionError("Only unposted events can be edited")
    if event.status == Event.Status.CANCELLED:
        raise InvalidTransitionError("Cancelled events cannot be edited")

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise PayloadValidationError(f"Fields cannot be edited: {sorted(unknown)}")

    for name, value in changes.items():
        if name != "payload":
            setattr(event, name, value)

    _apply_payload(event, changes.get("payload", event.payload))
    event.save()
    return event


@transaction.atomic
def cancel_event(*, event_id) -> Event:
    event = lock_event(event_id)
    if event.posting_status != Event.PostingStatus.UNPOSTED:
        raise InvalidTransitionError("Posted events must be voided, not cancelled")
    event.status = Event.Status.CANCELLED
    event.save(update_fields=["status", "updated_at"])
    return event
