# purchases/services/lifecycle.py

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from accounting.services.exceptions import DocumentNotFoundError, InvalidTransitionError
from purchases.services.exceptions import PurchasingError

logger = logging.getLogger(__name__)


def lock_document(model, pk):
    try:
        return model.objects.select_for_update().get(pk=pk)
    except (model.DoesNotExist, ValueError) as exc:
        raise DocumentNotFoundError(f"{model.__name__} {pk} not found") from exc


def transition(doc, new_status: str) -> None:
    """
    Move a document along its ALLOWED_TRANSITIONS map (status is set, not saved).
    """
    allowed = doc.ALLOWED_TRANSITIONS.get(doc.status, set())
    if new_status not in allowed:
        logger.warning(
            "Rejected status transition",
            extra={
                "document": type(doc).__name__,
                "number": doc.number,
                "from": doc.status,
                "to": new_status,
            },
        )
        raise InvalidTransitionError(
            f"{type(doc).__name__} {doc.number} cannot move from {doc.status} to {new_status}"
        )
    doc.status = new_status


def decimal_field(value, *, field_name: str, places: str = "0.001", positive: bool = True) -> Decimal:
    try:
        d = Decimal(str(value)).quantize(Decimal(places))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise PurchasingError(f"Invalid {field_name}: {value!r}") from exc
    if positive and d <= 0:
        raise PurchasingError(f"{field_name} must be greater than zero")
    if d < 0:
        raise PurchasingError(f"{field_name} cannot be negative")
    return d
