# accounting/services/posting_intent_service.py

"""
======================================================
PATH: accounting/services/posting_intent_service.py
======================================================
POSTING INTENT RUNNER ("record intent, then reconcile")

Every multi-step posting (event: inventory -> ledger, receipt:
quantities -> inventory -> ledger) runs through run_posting_steps():

1) The caller locks the PostingIntent for its source document.
2) Each step whose completion flag is still False runs inside its own
   savepoint; on success its flag is flipped and saved in the same savepoint.
3) A validation error (bad input) propagates: the caller's outer
   transaction rolls back and nothing is committed.
4) Any other error rolls back only the failing step. Steps that already
   finished stay committed, the intent becomes PARTIAL_FAILURE with the
   message, and the caller gets {"posted": False, "partial": True, ...}.
5) A later run (reprocess) skips every step whose flag is already set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from accounting.models.chart import ChartOfAccounts
from accounting.models.posting_intent import PostingIntent
from accounting.services.exceptions import LedgerValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostingStep:
    name: str
    flag: str
    run: Callable[[PostingIntent], None]


def lock_intent(*, chart: ChartOfAccounts, source_type: str, source_id) -> PostingIntent:
    intent, _ = PostingIntent.objects.get_or_create(
        source_type=source_type,
        source_id=str(source_id),
        defaults={"chart": chart},
    )
    return PostingIntent.objects.select_for_update().get(pk=intent.pk)


def _result(posted: bool, partial: bool, message: str | None = None) -> dict:
    return {"posted": posted, "partial": partial, "message": message}


def run_posting_steps(intent: PostingIntent, steps: list[PostingStep]) -> dict:
    """
    Must be called inside the caller's transaction.atomic() block with the
    intent already locked.
    """
    if intent.status == PostingIntent.Status.COMPLETED:
        return _result(True, False, "Already posted")
    if intent.status == PostingIntent.Status.VOIDED:
        return _result(False, False, "Posting was voided")

    intent.attempts += 1
    intent.save(update_fields=["attempts", "updated_at"])

    for step in steps:
        if getattr(intent, step.flag):
            continue

        try:
            with transaction.atomic():
                step.run(intent)
                setattr(intent, step.flag, True)
                intent.save(update_fields=[step.flag, "journal_entry", "updated_at"])
        except (LedgerValidationError, ValidationError):
            raise
        except Exception as exc:
            # savepoint rolled back; reload what actually committed
            intent.refresh_from_db()
            partial = any(getattr(intent, s.flag) for s in steps)
            message = f"{step.name} step failed: {exc}"

            intent.status = (
                PostingIntent.Status.PARTIAL_FAILURE if partial else PostingIntent.Status.PENDING
            )
            intent.last_error = message
            intent.save(update_fields=["status", "last_error", "updated_at"])

            logger.exception(
                "Posting step failed",
                extra={
                    "source": intent.reference,
                    "step": step.name,
                    "partial": partial,
                },
            )
            return _result(False, partial, message)

    intent.status = PostingIntent.Status.COMPLETED
    intent.last_error = ""
    intent.posted_at = timezone.now()
    intent.save(update_fields=["status", "last_error", "posted_at", "updated_at"])

    logger.info(
        "Posting completed",
        extra={"source": intent.reference, "attempts": intent.attempts},
    )
    return _result(True, False)


def mark_voided(intent: PostingIntent) -> PostingIntent:
    intent.status = PostingIntent.Status.VOIDED
    intent.voided_at = timezone.now()
    intent.save(update_fields=["status", "voided_at", "updated_at"])
    return intent
