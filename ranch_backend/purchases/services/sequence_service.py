# purchases/services/sequence_service.py

from django.db import transaction

from purchases.models import DocumentSequence

REQUISITION = "REQ"
PURCHASE_ORDER = "PO"
RECEIPT = "RCV"
BILL = "BILL"
PAYMENT = "PAY"


@transaction.atomic
def next_number(*, tenant_id: str, prefix: str) -> str:
    """
    Take the next human number for a tenant, e.g. PO-00042.
    The counter row is locked, so concurrent callers never share a number.
    """
    seq, _ = DocumentSequence.objects.get_or_create(tenant_id=tenant_id, prefix=prefix)
    seq = DocumentSequence.objects.select_for_update().get(pk=seq.pk)

    value = seq.next_value
    seq.next_value = value + 1
    seq.save(update_fields=["next_value"])
    return f"{prefix}-{value:05d}"
