# events/services/posting_service.py

"""
======================================================
PATH: events/services/posting_service.py
======================================================
EVENT POSTING PIPELINE

post_event(event_id):
  1) Lock event, check it is postable
  2) Lock the event's PostingIntent (keyed EVENT:<id>)
  3) Steps, each in its own savepoint:
       inventory -> movements at moving-average cost
       ledger    -> journal entry priced from those movements
  4) Validation errors (insufficient stock, unbalanced, inactive account,
     bad payload) roll back everything and propagate.
     Any other error after a committed step leaves PARTIAL_FAILURE.

reprocess_event(event_id): same pipeline and the same status gate as
post_event; completed steps are skipped, so it is safe to call any number
of times.

void_event(event_id): compensating movements + journal reversal; only
from POSTED, and a second void raises AlreadyVoidedError. A sale on account
voids its customer invoice too, and cannot be voided once it was collected on.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from accounting.models.posting_intent import PostingIntent
from accounting.services.account_resolver import get_chart_for_tenant
from accounting.services.exceptions import (
    AccountingServiceError,
    AlreadyVoidedError,
    InvalidTransitionError,
)
from accounting.services.invoice_service import void_invoices_for_source
from accounting.services.journal_entry_service import (
    record_journal_entry,
    reverse_journal_entry,
)
from accounting.services.posting_intent_service import (
    PostingStep,
    lock_intent,
    mark_voided,
    run_posting_steps,
)
from events.models import Event
from events.payloads import item_ids, parse_payload
from events.services.derivation import SOURCE_EVENT, rule_for
from events.services.event_service import lock_event, load_items
from inventory.services.valuation import (
    lock_site_inventory,
    movements_for_source,
    reverse_movement,
)

logger = logging.getLogger(__name__)


def _prelock_stock(event: Event, payload, items: dict) -> None:
    # (item, site) rows in a stable order before any movement is written
    keys = {(item_id, event.site_id) for item_id in item_ids(payload)}
    to_site = getattr(payload, "to_site_id", None)
    if to_site:
        keys |= {(item_id, to_site) for item_id in item_ids(payload)}
    for item_id, site_id in sorted(keys):
        lock_site_inventory(item=items[item_id], site_id=site_id)


def _build_steps(event: Event, payload, items: dict, chart) -> list[PostingStep]:
    rule = rule_for(payload)
    steps: list[PostingStep] = []

    if rule.inventory is not None and items:

        def inventory_step(intent):
            _prelock_stock(event, payload, items)
            rule.inventory(event, payload, items)

        steps.append(PostingStep("inventory", "inventory_done", inventory_step))

    if rule.ledger is not None:

        def ledger_step(intent):
            movements = movements_for_source(source_type=SOURCE_EVENT, source_id=event.pk)
            lines = rule.ledger(event, payload, movements, chart)
            if not lines:
                return
            intent.journal_entry = record_journal_entry(
                tenant_id=event.tenant_id,
                memo=f"{event.get_event_type_display()} event #{event.pk} at {event.site_id}",
                lines=lines,
                entry_date=event.event_date,
                reference=intent.reference,
                source_type=SOURCE_EVENT,
                source_id=str(event.pk),
            )
            if rule.documents is not None:
                rule.documents(event, payload, intent.journal_entry)

        steps.append(PostingStep("ledger", "ledger_done", ledger_step))

    return steps


def _run_pipeline(event: Event) -> dict:
    payload = parse_payload(event.event_type, event.payload)
    items = load_items(event.tenant_id, payload)
    chart = get_chart_for_tenant(event.tenant_id)

    intent = lock_intent(chart=chart, source_type=SOURCE_EVENT, source_id=event.pk)
    result = run_posting_steps(intent, _build_steps(event, payload, items, chart))

    if result["posted"]:
        movements = movements_for_source(source_type=SOURCE_EVENT, source_id=event.pk)
        event.posting_status = Event.PostingStatus.POSTED
        event.journal_entry = intent.journal_entry
        event.posted_at = intent.posted_at or timezone.now()
        event.posted_cost = (
            abs(sum(m.total_cost for m in movements)) if movements else event.total_cost
        )
        event.last_error = ""
    elif result["partial"]:
        event.posting_status = Event.PostingStatus.PARTIAL_FAILURE
        event.last_error = result["message"] or ""
    else:
        event.last_error = result["message"] or ""

    event.save()

    log = logger.info if result["posted"] else logger.warning
    log(
        "Event posting finished",
        extra={
            "event_id": event.pk,
            "posted": result["posted"],
            "partial": result["partial"],
            "attempts": intent.attempts,
        },
    )
    return result


@transaction.atomic
def post_event(*, event_id) -> dict:
    event = lock_event(event_id)

    if event.posting_status == Event.PostingStatus.POSTED:
        return {"posted": True, "partial": False, "message": "Event already posted"}
    if event.posting_status == Event.PostingStatus.VOIDED:
        raise InvalidTransitionError("Voided events cannot be posted")
    if not event.is_postable:
        raise InvalidTransitionError(
            f"Only pending or completed events can be posted (event is {event.status})"
        )

    return _run_pipeline(event)


@transaction.atomic
def reprocess_event(*, event_id) -> dict:
    event = lock_event(event_id)

    if event.posting_status == Event.PostingStatus.POSTED:
        return {"posted": True, "partial": False, "message": "Event already posted"}
    if event.posting_status == Event.PostingStatus.VOIDED:
        raise InvalidTransitionError("Voided events cannot be reprocessed")
    if not event.is_postable:
        raise InvalidTransitionError(
            f"Only pending or completed events can be reprocessed (event is {event.status})"
        )

    return _run_pipeline(event)


def reprocess_failed_events(*, tenant_id: str) -> dict:
    """
    Retry every PARTIAL_FAILURE event of a tenant, each in its own transaction.
    """
    event_ids = list(
        Event.objects.filter(
            tenant_id=tenant_id, posting_status=Event.PostingStatus.PARTIAL_FAILURE
        )
        .order_by("pk")
        .values_list("pk", flat=True)
    )

    reprocessed = 0
    details = []
    for event_id in event_ids:
        try:
            result = reprocess_event(event_id=event_id)
        except AccountingServiceError as exc:
            logger.warning("Event reprocess rejected", extra={"event_id": event_id, "error": str(exc)})
            result = {"posted": False, "partial": True, "message": str(exc)}
        if result["posted"]:
            reprocessed += 1
        details.append({"event_id": event_id, **result})

    return {
        "found": len(event_ids),
        "reprocessed": reprocessed,
        "message": f"Reprocessed {reprocessed} of {len(event_ids)} failed events",
        "details": details,
    }


@transaction.atomic
def void_event(*, event_id) -> dict:
    event = lock_event(event_id)

    if event.posting_status == Event.PostingStatus.VOIDED:
        raise AlreadyVoidedError(f"Event {event.pk} is already voided")
    if event.posting_status != Event.PostingStatus.POSTED or event.status == Event.Status.CANCELLED:
        raise InvalidTransitionError("Only posted, non-cancelled events can be voided")

    chart = get_chart_for_tenant(event.tenant_id)
    intent = lock_intent(chart=chart, source_type=SOURCE_EVENT, source_id=event.pk)

    movements = movements_for_source(source_type=SOURCE_EVENT, source_id=event.pk)
    for m in sorted(movements, key=lambda m: (m.item_id, m.site_id)):
        lock_site_inventory(item=m.item, site_id=m.site_id)
    for movement in reversed(movements):
        reverse_movement(movement=movement, note=f"Void of event {event.pk}")

    void_invoices_for_source(source_type=SOURCE_EVENT, source_id=event.pk)

    if event.journal_entry_id:
        reverse_journal_entry(
            entry_id=event.journal_entry_id,
            memo=f"Void of {event.get_event_type_display()} event #{event.pk}",
        )

    mark_voided(intent)

    event.status = Event.Status.CANCELLED
    event.posting_status = Event.PostingStatus.VOIDED
    event.voided_at = timezone.now()
    event.save()

    logger.info("Event voided", extra={"event_id": event.pk})
    return {"voided": True}
