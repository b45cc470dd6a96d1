# purchases/services/reorder_service.py

"""
AUTO-REORDER CHECK

For one site: every active item with a reorder point whose on-hand quantity
is at or below it (no SiteInventory row counts as zero on hand), unless an
open requisition (DRAFT / SUBMITTED / APPROVED) for that site already
carries the item. With create=True one AUTO_REORDER draft requisition is
raised per item.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.db import transaction

from inventory.models import InventoryItem, SiteInventory
from purchases.models import Requisition, RequisitionLine
from purchases.services.requisition_service import create_requisition

logger = logging.getLogger(__name__)

OPEN_REQUISITION_STATUSES = (
    Requisition.Status.DRAFT,
    Requisition.Status.SUBMITTED,
    Requisition.Status.APPROVED,
)


def _suggested_quantity(item: InventoryItem, reorder_point: Decimal) -> Decimal:
    if item.reorder_quantity and item.reorder_quantity > 0:
        return item.reorder_quantity
    return reorder_point * 2


@transaction.atomic
def check_reorder_points(*, tenant_id: str, site_id: str, create: bool = False) -> list[dict]:
    rows = {
        row.item_id: row
        for row in SiteInventory.objects.filter(item__tenant_id=tenant_id, site_id=site_id)
    }
    already_requested = set(
        RequisitionLine.objects.filter(
            requisition__tenant_id=tenant_id,
            requisition__site_id=site_id,
            requisition__status__in=OPEN_REQUISITION_STATUSES,
        ).values_list("item_id", flat=True)
    )

    suggestions = []
    for item in InventoryItem.objects.filter(tenant_id=tenant_id, is_active=True).order_by("name"):
        row = rows.get(item.pk)
        reorder_point = row.effective_reorder_point if row is not None else item.reorder_point
        on_hand = row.quantity if row is not None else Decimal("0")

        if not reorder_point or reorder_point <= 0 or on_hand > reorder_point:
            continue
        if item.pk in already_requested:
            continue

        suggestion = {
            "item_id": item.pk,
            "item_name": item.name,
            "site_id": site_id,
            "on_hand": on_hand,
            "reorder_point": reorder_point,
            "suggested_quantity": _suggested_quantity(item, reorder_point),
            "requisition_id": None,
        }

        if create:
            req = create_requisition(
                tenant_id=tenant_id,
                site_id=site_id,
                source=Requisition.Source.AUTO_REORDER,
                notes=(
                    f"Auto-generated: {item.name} below reorder point "
                    f"({on_hand} on hand, reorder at {reorder_point})"
                ),
                lines=[
                    {
                        "item_id": item.pk,
                        "quantity": suggestion["suggested_quantity"],
                        "estimated_unit_price": item.default_unit_cost,
                    }
                ],
            )
            suggestion["requisition_id"] = str(req.pk)

        suggestions.append(suggestion)

    if suggestions:
        logger.info(
            "Reorder check found items below reorder point",
            extra={"tenant_id": tenant_id, "site_id": site_id, "count": len(suggestions), "create": create},
        )
    return suggestions
