# inventory/services/valuation.py

"""
======================================================
PATH: inventory/services/valuation.py
======================================================
INVENTORY VALUATION ENGINE (MOVING AVERAGE)

Purpose:
- Single writer of SiteInventory quantity/average cost.
- Every change is an immutable InventoryMovement row.

Rules:
- Inbound q at unit cost c: avg = (q0*a0 + q*c) / (q0 + q)
- Outbound: quantity drops, average unchanged, valued at the current average
- Outbound that would make quantity negative raises InsufficientQuantityError
- Compensating a prior inbound removes its value at its own unit cost
- All writes lock the (item, site) row with select_for_update()
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from inventory.models import InventoryItem, InventoryMovement, SiteInventory
from inventory.services.exceptions import InsufficientQuantityError, InventoryError

logger = logging.getLogger(__name__)

QTY_PLACES = Decimal("0.001")
COST_PLACES = Decimal("0.000001")
TWOPLACES = Decimal("0.01")

MovementType = InventoryMovement.MovementType


def _qty(value, *, field_name="quantity") -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        raise InventoryError(f"{field_name} is required")
    try:
        return Decimal(str(value)).quantize(QTY_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InventoryError(f"{field_name} must be a valid decimal") from exc


def _cost(value, *, field_name="unit_cost") -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        raise InventoryError(f"{field_name} is required")
    try:
        cost = Decimal(str(value)).quantize(COST_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InventoryError(f"{field_name} must be a valid decimal") from exc
    if cost < 0:
        raise InventoryError(f"{field_name} cannot be negative")
    return cost


def _money(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def lock_site_inventory(*, item: InventoryItem, site_id: str) -> SiteInventory:
    site_id = (str(site_id) if site_id is not None else "").strip()
    if not site_id:
        raise InventoryError("site_id is required")

    row, _ = SiteInventory.objects.get_or_create(item=item, site_id=site_id)
    return SiteInventory.objects.select_for_update().select_related("item").get(pk=row.pk)


def _apply(
    row: SiteInventory,
    *,
    movement_type: str,
    quantity: Decimal,
    unit_cost: Decimal | None,
    source_type: str = "",
    source_id: str = "",
    reverses: InventoryMovement | None = None,
    note: str = "",
) -> InventoryMovement:
    old_qty = row.quantity
    old_avg = row.average_cost

    if quantity > 0:
        cost = old_avg if unit_cost is None else unit_cost
        new_qty = old_qty + quantity
        new_avg = ((old_qty * old_avg + quantity * cost) / new_qty).quantize(
            COST_PLACES, rounding=ROUND_HALF_UP
        )
    else:
        new_qty = old_qty + quantity
        if new_qty < 0:
            raise InsufficientQuantityError(
                f"Insufficient quantity of {row.item.name} at site {row.site_id}: "
                f"on hand {old_qty}, requested {-quantity}"
            )
        if reverses is not None and unit_cost is not None:
            # take the compensated inbound's value back out at its own cost
            cost = unit_cost
            remaining_value = max(old_qty * old_avg + quantity * cost, Decimal("0"))
            new_avg = (
                (remaining_value / new_qty).quantize(COST_PLACES, rounding=ROUND_HALF_UP)
                if new_qty > 0
                else old_avg
            )
        else:
            cost = old_avg
            new_avg = old_avg

    row.quantity = new_qty
    row.average_cost = new_avg
    row.last_movement_at = timezone.now()
    row.save(update_fields=["quantity", "average_cost", "last_movement_at", "updated_at"])

    movement = InventoryMovement.objects.create(
        item=row.item,
        site_id=row.site_id,
        movement_type=movement_type,
        quantity=quantity,
        unit_cost=cost,
        total_cost=_money(quantity * cost),
        source_type=source_type or "",
        source_id=str(source_id or ""),
        reverses=reverses,
        quantity_after=new_qty,
        average_cost_after=new_avg,
        note=(note or "")[:255],
    )

    logger.info(
        "Inventory movement recorded",
        extra={
            "item_id": row.item_id,
            "site_id": row.site_id,
            "movement_type": movement_type,
            "quantity": str(quantity),
            "average_cost": str(new_avg),
        },
    )
    return movement


@transaction.atomic
def receive_inventory(
    *,
    item: InventoryItem,
    site_id: str,
    quantity,
    unit_cost,
    source_type: str = "",
    source_id: str = "",
    movement_type: str = MovementType.IN,
    note: str = "",
) -> InventoryMovement:
    qty = _qty(quantity)
    if qty <= 0:
        raise InventoryError("quantity must be greater than zero")

    row = lock_site_inventory(item=item, site_id=site_id)
    return _apply(
        row,
        movement_type=movement_type,
        quantity=qty,
        unit_cost=_cost(unit_cost),
        source_type=source_type,
        source_id=source_id,
        note=note,
    )


@transaction.atomic
def consume_inventory(
    *,
    item: InventoryItem,
    site_id: str,
    quantity,
    source_type: str = "",
    source_id: str = "",
    movement_type: str = MovementType.OUT,
    note: str = "",
) -> InventoryMovement:
    qty = _qty(quantity)
    if qty <= 0:
        raise InventoryError("quantity must be greater than zero")

    row = lock_site_inventory(item=item, site_id=site_id)
    return _apply(
        row,
        movement_type=movement_type,
        quantity=-qty,
        unit_cost=None,
        source_type=source_type,
        source_id=source_id,
        note=note,
    )


@transaction.atomic
def adjust_inventory(
    *,
    item: InventoryItem,
    site_id: str,
    quantity_delta,
    unit_cost=None,
    source_type: str = "ADJUSTMENT",
    source_id: str = "",
    note: str = "",
) -> InventoryMovement:
    """
    +N adds stock (at unit_cost, or the current average when omitted)
    -N removes stock at the current average
    """
    delta = _qty(quantity_delta, field_name="quantity_delta")
    if delta == 0:
        raise InventoryError("quantity_delta cannot be 0")

    row = lock_site_inventory(item=item, site_id=site_id)
    return _apply(
        row,
        movement_type=MovementType.ADJUSTMENT,
        quantity=delta,
        unit_cost=_cost(unit_cost) if (delta > 0 and unit_cost not in (None, "")) else None,
        source_type=source_type,
        source_id=source_id,
        note=note,
    )


@transaction.atomic
def transfer_inventory(
    *,
    item: InventoryItem,
    from_site_id: str,
    to_site_id: str,
    quantity,
    source_type: str = "",
    source_id: str = "",
) -> tuple[InventoryMovement, InventoryMovement]:
    if str(from_site_id) == str(to_site_id):
        raise InventoryError("Transfer source and destination must differ")

    qty = _qty(quantity)
    if qty <= 0:
        raise InventoryError("quantity must be greater than zero")

    # lock both rows in a stable order
    first, second = sorted([str(from_site_id), str(to_site_id)])
    rows = {
        first: lock_site_inventory(item=item, site_id=first),
        second: lock_site_inventory(item=item, site_id=second),
    }

    out_movement = _apply(
        rows[str(from_site_id)],
        movement_type=MovementType.TRANSFER_OUT,
        quantity=-qty,
        unit_cost=None,
        source_type=source_type,
        source_id=source_id,
        note=f"to {to_site_id}",
    )
    in_movement = _apply(
        rows[str(to_site_id)],
        movement_type=MovementType.TRANSFER_IN,
        quantity=qty,
        unit_cost=out_movement.unit_cost,
        source_type=source_type,
        source_id=source_id,
        note=f"from {from_site_id}",
    )
    return out_movement, in_movement


@transaction.atomic
def reverse_movement(*, movement: InventoryMovement, note: str = "") -> InventoryMovement:
    """
    Compensating movement: same item/site, quantity negated, valued at the
    original movement's unit cost. A movement can be compensated only once.
    """
    if movement.reverses_id is not None:
        raise InventoryError("A compensating movement cannot itself be reversed")
    if InventoryMovement.objects.filter(reverses=movement).exists():
        raise InventoryError(f"Movement {movement.pk} is already reversed")

    row = lock_site_inventory(item=movement.item, site_id=movement.site_id)
    try:
        return _apply(
            row,
            movement_type=MovementType.ADJUSTMENT,
            quantity=-movement.quantity,
            unit_cost=movement.unit_cost,
            source_type=movement.source_type,
            source_id=movement.source_id,
            reverses=movement,
            note=note or f"Reversal of movement {movement.pk}",
        )
    except ValidationError as exc:
        raise InventoryError(str(exc)) from exc


def movements_for_source(*, source_type: str, source_id) -> list[InventoryMovement]:
    return list(
        InventoryMovement.objects.filter(
            source_type=source_type,
            source_id=str(source_id),
            reverses__isnull=True,
        )
        .select_related("item")
        .order_by("id")
    )


def get_site_inventory(*, tenant_id: str, site_id: str | None = None):
    qs = SiteInventory.objects.filter(item__tenant_id=tenant_id).select_related("item")
    if site_id:
        qs = qs.filter(site_id=site_id)
    return qs


def list_below_reorder_point(*, tenant_id: str, site_id: str | None = None) -> list[SiteInventory]:
    return [row for row in get_site_inventory(tenant_id=tenant_id, site_id=site_id) if row.is_below_reorder_point]
