# purchases/services/order_service.py

"""
======================================================
PATH: purchases/services/order_service.py
======================================================
PURCHASE ORDER LIFECYCLE

create -> send -> acknowledge -> (receipts) -> close
cancel is only possible while nothing has been received.

PARTIALLY_RECEIVED / RECEIVED are never set by hand: they are derived
from line quantities by refresh_receiving_status() after each receipt.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from accounting.services.exceptions import InvalidTransitionError
from inventory.models import InventoryItem
from purchases.models import PurchaseOrder, PurchaseOrderLine, Vendor
from purchases.services import sequence_service
from purchases.services.exceptions import PurchasingError
from purchases.services.lifecycle import decimal_field, lock_document, transition

logger = logging.getLogger(__name__)


def load_item(tenant_id: str, item_id) -> InventoryItem:
    try:
        item = InventoryItem.objects.get(pk=item_id, tenant_id=tenant_id)
    except (InventoryItem.DoesNotExist, ValueError) as exc:
        raise PurchasingError(f"Inventory item not found: {item_id}") from exc
    if not item.is_active:
        raise PurchasingError(f"Inventory item is inactive: {item.name}")
    return item


def load_vendor(tenant_id: str, vendor_id) -> Vendor:
    try:
        vendor = Vendor.objects.get(pk=vendor_id, tenant_id=tenant_id)
    except (Vendor.DoesNotExist, ValueError) as exc:
        raise PurchasingError(f"Vendor not found: {vendor_id}") from exc
    if not vendor.is_active:
        raise PurchasingError(f"Vendor is inactive: {vendor.name}")
    return vendor


@transaction.atomic
def create_purchase_order(
    *,
    tenant_id: str,
    site_id: str,
    vendor_id,
    lines: list[dict],
    order_date=None,
    expected_date=None,
    notes: str = "",
    requisition=None,
) -> PurchaseOrder:
    """
    lines: [{"item_id", "qty_ordered", "unit_price", "description"?}, ...]
    """
    if not lines:
        raise PurchasingError("A purchase order needs at least one line")
    if not (site_id or "").strip():
        raise PurchasingError("site_id is required")

    vendor = load_vendor(tenant_id, vendor_id)

    po = PurchaseOrder(
        tenant_id=tenant_id,
        site_id=site_id,
        number=sequence_service.next_number(
            tenant_id=tenant_id, prefix=sequence_service.PURCHASE_ORDER
        ),
        vendor=vendor,
        requisition=requisition,
        expected_date=expected_date,
        notes=notes or "",
    )
    if order_date:
        po.order_date = order_date
    po.save()

    for n, raw in enumerate(lines, start=1):
        item = load_item(tenant_id, raw.get("item_id"))
        PurchaseOrderLine.objects.create(
            purchase_order=po,
            line_number=n,
            item=item,
            description=raw.get("description") or item.name,
            qty_ordered=decimal_field(raw.get("qty_ordered"), field_name="qty_ordered"),
            unit_price=decimal_field(
                raw.get("unit_price", item.default_unit_cost),
                field_name="unit_price",
                places="0.0001",
                positive=False,
            ),
        )

    logger.info(
        "Purchase order created",
        extra={"po": po.number, "tenant_id": tenant_id, "vendor_id": str(vendor.pk)},
    )
    return po


@transaction.atomic
def send_purchase_order(*, purchase_order_id) -> PurchaseOrder:
    po = lock_document(PurchaseOrder, purchase_order_id)
    transition(po, PurchaseOrder.Status.SENT)
    po.sent_at = timezone.now()
    po.save()
    return po


@transaction.atomic
def acknowledge_purchase_order(*, purchase_order_id) -> PurchaseOrder:
    po = lock_document(PurchaseOrder, purchase_order_id)
    transition(po, PurchaseOrder.Status.ACKNOWLEDGED)
    po.acknowledged_at = timezone.now()
    po.save()
    return po


@transaction.atomic
def cancel_purchase_order(*, purchase_order_id) -> PurchaseOrder:
    po = lock_document(PurchaseOrder, purchase_order_id)
    if po.lines.filter(qty_received__gt=0).exists():
        raise InvalidTransitionError(f"{po.number} has receipts and can no longer be cancelled")
    transition(po, PurchaseOrder.Status.CANCELLED)
    po.cancelled_at = timezone.now()
    po.save()
    return po


@transaction.atomic
def close_purchase_order(*, purchase_order_id) -> PurchaseOrder:
    po = lock_document(PurchaseOrder, purchase_order_id)
    transition(po, PurchaseOrder.Status.CLOSED)
    po.closed_at = timezone.now()
    po.save()
    logger.info("Purchase order closed", extra={"po": po.number})
    return po


def refresh_receiving_status(po: PurchaseOrder) -> PurchaseOrder:
    """
    Derive PARTIALLY_RECEIVED / RECEIVED from line quantities.
    Caller holds the PO lock.
    """
    lines = list(po.lines.all())
    if all(line.qty_received >= line.qty_ordered for line in lines):
        target = PurchaseOrder.Status.RECEIVED
    elif any(line.qty_received > 0 for line in lines):
        target = PurchaseOrder.Status.PARTIALLY_RECEIVED
    else:
        return po

    if po.status != target:
        transition(po, target)
        po.save(update_fields=["status", "updated_at"])
    return po
