# purchases/services/requisition_service.py

"""
REQUISITIONS

DRAFT -> SUBMITTED -> APPROVED | REJECTED
APPROVED -> CONVERTED (creates a DRAFT purchase order)
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from purchases.models import PurchaseOrder, Requisition, RequisitionLine
from purchases.services import sequence_service
from purchases.services.exceptions import PurchasingError
from purchases.services.lifecycle import decimal_field, lock_document, transition
from purchases.services.order_service import create_purchase_order, load_item

logger = logging.getLogger(__name__)


@transaction.atomic
def create_requisition(
    *,
    tenant_id: str,
    site_id: str,
    lines: list[dict],
    requested_by: str = "",
    notes: str = "",
    source: str = Requisition.Source.MANUAL,
) -> Requisition:
    """
    lines: [{"item_id", "quantity", "estimated_unit_price"?}, ...]
    """
    if not lines:
        raise PurchasingError("A requisition needs at least one line")

    req = Requisition.objects.create(
        tenant_id=tenant_id,
        site_id=site_id,
        number=sequence_service.next_number(tenant_id=tenant_id, prefix=sequence_service.REQUISITION),
        source=source,
        requested_by=requested_by or "",
        notes=notes or "",
    )

    for n, raw in enumerate(lines, start=1):
        item = load_item(tenant_id, raw.get("item_id"))
        RequisitionLine.objects.create(
            requisition=req,
            line_number=n,
            item=item,
            quantity=decimal_field(raw.get("quantity"), field_name="quantity"),
            estimated_unit_price=decimal_field(
                raw.get("estimated_unit_price", item.default_unit_cost),
                field_name="estimated_unit_price",
                places="0.0001",
                positive=False,
            ),
        )

    logger.info(
        "Requisition created",
        extra={"requisition": req.number, "source": source, "tenant_id": tenant_id},
    )
    return req


@transaction.atomic
def submit_requisition(*, requisition_id) -> Requisition:
    req = lock_document(Requisition, requisition_id)
    transition(req, Requisition.Status.SUBMITTED)
    req.submitted_at = timezone.now()
    req.save()
    return req


@transaction.atomic
def approve_requisition(*, requisition_id) -> Requisition:
    req = lock_document(Requisition, requisition_id)
    transition(req, Requisition.Status.APPROVED)
    req.decided_at = timezone.now()
    req.save()
    return req


@transaction.atomic
def reject_requisition(*, requisition_id, reason: str) -> Requisition:
    if not (reason or "").strip():
        raise PurchasingError("A reason is required to reject a requisition")

    req = lock_document(Requisition, requisition_id)
    transition(req, Requisition.Status.REJECTED)
    req.rejection_reason = reason.strip()
    req.decided_at = timezone.now()
    req.save()
    return req


@transaction.atomic
def convert_to_po(*, requisition_id, vendor_id, expected_date=None) -> PurchaseOrder:
    req = lock_document(Requisition, requisition_id)
    transition(req, Requisition.Status.CONVERTED)

    po = create_purchase_order(
        tenant_id=req.tenant_id,
        site_id=req.site_id,
        vendor_id=vendor_id,
        expected_date=expected_date,
        notes=f"From requisition {req.number}",
        requisition=req,
        lines=[
            {
                "item_id": line.item_id,
                "qty_ordered": line.quantity,
                "unit_price": line.estimated_unit_price,
            }
            for line in req.lines.all()
        ],
    )
    req.save()

    logger.info("Requisition converted", extra={"requisition": req.number, "po": po.number})
    return po
