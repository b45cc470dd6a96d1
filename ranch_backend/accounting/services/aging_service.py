# accounting/services/aging_service.py

"""
AGING CALCULATOR

Classifies open payables/receivables by how far past due they are.

Buckets (days = as_of - due_date):
- current: days <= 0
- days30:  1..30
- days60:  31..60
- days90:  61..90
- over90:  > 90

Totals are sums of amount_due (what is still open), never original totals.
Paid, voided and zero-due documents never land in a bucket.

Every open document is also listed under "details" with its own
days_past_due (0 while not yet due) and bucket, oldest due date first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from django.utils import timezone

TWOPLACES = Decimal("0.01")

BUCKETS = ("current", "days30", "days60", "days90", "over90")
CLOSED_STATUSES = frozenset({"PAID", "VOIDED"})


def _q2(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AgingDocument:
    """Snapshot of one open bill or invoice."""

    party_id: str
    party_name: str
    document_id: str
    due_date: date
    amount_due: Decimal
    status: str = ""
    document_number: str = ""


def bucket_for(days_past_due: int) -> str:
    if days_past_due <= 0:
        return "current"
    if days_past_due <= 30:
        return "days30"
    if days_past_due <= 60:
        return "days60"
    if days_past_due <= 90:
        return "days90"
    return "over90"


def _empty_totals() -> dict:
    totals = {b: Decimal("0.00") for b in BUCKETS}
    totals["total"] = Decimal("0.00")
    return totals


def build_aging(
    documents: Iterable[AgingDocument],
    as_of: date,
    *,
    party_key: str = "byVendor",
) -> dict:
    summary = _empty_totals()
    by_party: dict[str, dict] = {}
    details = []

    for doc in documents:
        if (doc.status or "").upper() in CLOSED_STATUSES:
            continue
        amount = _q2(doc.amount_due)
        if amount <= Decimal("0.00"):
            continue

        days = (as_of - doc.due_date).days
        bucket = bucket_for(days)
        details.append(
            {
                "document_id": str(doc.document_id),
                "document_number": doc.document_number,
                "party_id": str(doc.party_id),
                "party_name": doc.party_name,
                "due_date": doc.due_date.isoformat(),
                "amount_due": amount,
                "days_past_due": max(days, 0),
                "bucket": bucket,
            }
        )

        party = by_party.setdefault(
            str(doc.party_id),
            {"party_id": str(doc.party_id), "party_name": doc.party_name, "count": 0, **_empty_totals()},
        )
        party[bucket] += amount
        party["total"] += amount
        party["count"] += 1

        summary[bucket] += amount
        summary["total"] += amount

    parties = sorted(by_party.values(), key=lambda p: (-p["total"], p["party_name"]))
    return {
        "as_of": as_of.isoformat(),
        "summary": summary,
        party_key: parties,
        "details": sorted(details, key=lambda d: (d["due_date"], d["document_number"], d["document_id"])),
    }


def get_ap_aging(*, tenant_id: str, as_of: date | None = None) -> dict:
    from purchases.models import Bill

    as_of = as_of or timezone.localdate()
    bills = (
        Bill.objects.filter(tenant_id=tenant_id)
        .exclude(status__in=[Bill.Status.DRAFT, Bill.Status.PAID, Bill.Status.VOIDED])
        .select_related("vendor")
    )
    docs = [
        AgingDocument(
            party_id=str(b.vendor_id),
            party_name=b.vendor.name,
            document_id=str(b.pk),
            document_number=b.number,
            due_date=b.due_date,
            amount_due=b.amount_due,
            status=b.status,
        )
        for b in bills
    ]
    return build_aging(docs, as_of, party_key="byVendor")


def get_ar_aging(*, tenant_id: str, as_of: date | None = None) -> dict:
    from accounting.models.customer_invoice import CustomerInvoice

    as_of = as_of or timezone.localdate()
    invoices = CustomerInvoice.objects.filter(chart__tenant_id=tenant_id).exclude(
        status__in=[CustomerInvoice.Status.PAID, CustomerInvoice.Status.VOIDED]
    )
    docs = [
        AgingDocument(
            party_id=inv.customer_id,
            party_name=inv.customer_name,
            document_id=str(inv.pk),
            document_number=inv.invoice_number,
            due_date=inv.due_date,
            amount_due=inv.amount_due,
            status=inv.status,
        )
        for inv in invoices
    ]
    return build_aging(docs, as_of, party_key="byCustomer")
