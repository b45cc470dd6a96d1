# accounting/services/journal_entry_service.py

"""
======================================================
PATH: accounting/services/journal_entry_service.py
======================================================
JOURNAL ENTRY SERVICE (LEDGER ENGINE)

This module is the ONLY place allowed to:
- Create Account rows for a tenant chart
- Create JournalEntry / JournalLine rows
- Enforce debit == credit (within LEDGER_BALANCE_TOLERANCE)
- Move entries DRAFT -> POSTED -> REVERSED
- Enforce idempotency via reference (prevents double-posting)

The event pipeline and the purchase-to-pay services go through here;
nothing else writes the ledger.

Concurrency:
- post/reverse lock the entry row, then the involved account rows
  ordered by primary key, so two postings touching the same accounts
  serialize instead of interleaving.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalLine
from accounting.services.account_resolver import get_chart_for_tenant
from accounting.services.exceptions import (
    AlreadyReversedError,
    DocumentNotFoundError,
    EntryNotDraftError,
    IdempotencyError,
    InactiveAccountError,
    InvalidTransitionError,
    JournalEntryCreationError,
    UnbalancedEntryError,
)

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
MIN_LINE_AMOUNT = Decimal("0.01")


def _money(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0.00")

    if isinstance(value, Decimal):
        amt = value
    else:
        try:
            amt = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise JournalEntryCreationError(f"Invalid money value: {value!r}") from exc

    return amt.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _tolerance() -> Decimal:
    return Decimal(str(getattr(settings, "LEDGER_BALANCE_TOLERANCE", "0.01")))


def _normalize_reference(reference: str | None) -> str | None:
    if reference is None:
        return None
    ref = str(reference).strip()
    if not ref:
        return None
    if ref.startswith(":") or ref.endswith(":"):
        raise JournalEntryCreationError(f"Invalid reference: {reference!r}")
    return ref


def _resolve_line_account(chart, account) -> Account:
    if isinstance(account, Account):
        if account.chart_id != chart.id:
            raise JournalEntryCreationError(
                "All lines must belong to the same chart. Cross-tenant entries are not allowed."
            )
        return account

    try:
        return Account.objects.get(chart=chart, pk=account)
    except (Account.DoesNotExist, ValueError, TypeError) as exc:
        raise JournalEntryCreationError(f"Account not found in chart: {account!r}") from exc


def _normalize_lines(chart, lines) -> list[dict]:
    if not lines:
        raise JournalEntryCreationError("Journal entry must contain at least one line")

    normalized: list[dict] = []
    for line in lines:
        if not isinstance(line, dict):
            raise JournalEntryCreationError("Each line must be an object/dict")

        account = line.get("account")
        if account is None:
            account = line.get("account_id")
        if account is None:
            raise JournalEntryCreationError("Line missing account")

        debit = _money(line.get("debit"))
        credit = _money(line.get("credit"))

        if debit < 0 or credit < 0:
            raise JournalEntryCreationError("Debit or credit cannot be negative")

        if debit > 0 and credit > 0:
            raise JournalEntryCreationError("A line cannot have both debit and credit")

        if debit == 0 and credit == 0:
            raise JournalEntryCreationError("A line must have either debit or credit")

        if debit > 0 and debit < MIN_LINE_AMOUNT:
            raise JournalEntryCreationError(f"Debit amount too small: {debit}")
        if credit > 0 and credit < MIN_LINE_AMOUNT:
            raise JournalEntryCreationError(f"Credit amount too small: {credit}")

        normalized.append(
            {
                "account": _resolve_line_account(chart, account),
                "debit": debit,
                "credit": credit,
                "description": str(line.get("description") or "")[:255],
            }
        )

    return normalized


@transaction.atomic
def create_account(
    *,
    tenant_id: str,
    code: str,
    name: str,
    account_type: str,
    normal_balance: str | None = None,
    subtype: str = "",
    is_system: bool = False,
    is_active: bool = True,
) -> Account:
    chart = get_chart_for_tenant(tenant_id, create=True)

    if account_type not in dict(Account.ACCOUNT_TYPES):
        raise JournalEntryCreationError(f"Invalid account_type: {account_type!r}")

    return Account.objects.create(
        chart=chart,
        code=code,
        name=name,
        account_type=account_type,
        normal_balance=normal_balance or Account.default_normal_balance(account_type),
        subtype=subtype,
        is_system=is_system,
        is_active=is_active,
    )


@transaction.atomic
def create_journal_entry(
    *,
    tenant_id: str,
    memo: str,
    lines: list,
    entry_date: date | None = None,
    reference: str | None = None,
    source_type: str = "",
    source_id: str = "",
    reverses: JournalEntry | None = None,
) -> JournalEntry:
    """
    Create a DRAFT entry. Balance is checked at post time, not here.
    """
    memo = (memo or "").strip()
    if not memo:
        raise JournalEntryCreationError("Journal entry memo is required")

    chart = get_chart_for_tenant(tenant_id)
    normalized = _normalize_lines(chart, lines)
    reference = _normalize_reference(reference)

    # Clear error before DB constraint race handling
    if reference and JournalEntry.objects.filter(chart=chart, reference=reference).exists():
        raise IdempotencyError(f"Journal entry already exists for reference {reference}")

    try:
        with transaction.atomic():
            entry = JournalEntry.objects.create(
                chart=chart,
                entry_date=entry_date or timezone.localdate(),
                memo=memo,
                reference=reference,
                status=JournalEntry.Status.DRAFT,
                source_type=source_type or "",
                source_id=str(source_id or ""),
                reverses=reverses,
            )
    except IntegrityError as exc:
        if reference and JournalEntry.objects.filter(chart=chart, reference=reference).exists():
            raise IdempotencyError(
                f"Journal entry already exists for reference {reference}"
            ) from exc
        raise JournalEntryCreationError(f"Failed to create journal entry: {exc}") from exc

    JournalLine.objects.bulk_create(
        [
            JournalLine(
                journal_entry=entry,
                line_number=idx,
                account=line["account"],
                debit=line["debit"],
                credit=line["credit"],
                description=line["description"],
            )
            for idx, line in enumerate(normalized, start=1)
        ]
    )
    return entry


def _lock_entry(entry_id) -> JournalEntry:
    try:
        return JournalEntry.objects.select_for_update().get(pk=entry_id)
    except JournalEntry.DoesNotExist as exc:
        raise DocumentNotFoundError(f"Journal entry {entry_id} not found") from exc


def _lock_accounts(entry: JournalEntry) -> dict:
    account_ids = sorted(set(entry.lines.values_list("account_id", flat=True)))
    accounts = Account.objects.select_for_update().filter(pk__in=account_ids).order_by("pk")
    return {acc.pk: acc for acc in accounts}


@transaction.atomic
def post_journal_entry(*, entry_id) -> JournalEntry:
    entry = _lock_entry(entry_id)

    if entry.status != JournalEntry.Status.DRAFT:
        raise EntryNotDraftError(
            f"Only DRAFT entries can be posted (entry {entry.pk} is {entry.status})"
        )

    accounts = _lock_accounts(entry)
    lines = list(entry.lines.all())
    if not lines:
        raise JournalEntryCreationError("Journal entry must contain at least one line")

    inactive = [accounts[line.account_id].code for line in lines if not accounts[line.account_id].is_active]
    if inactive:
        raise InactiveAccountError(f"Inactive account(s): {', '.join(sorted(set(inactive)))}")

    total_debits = _money(sum((line.debit for line in lines), Decimal("0.00")))
    total_credits = _money(sum((line.credit for line in lines), Decimal("0.00")))

    if abs(total_debits - total_credits) >= _tolerance():
        raise UnbalancedEntryError(
            f"Journal entry not balanced: debits={total_debits} credits={total_credits}"
        )

    entry.status = JournalEntry.Status.POSTED
    entry.posted_at = timezone.now()
    entry.save(update_fields=["status", "posted_at"])

    logger.info(
        "Journal entry posted",
        extra={
            "journal_entry_id": entry.pk,
            "reference": entry.reference,
            "amount": str(total_debits),
        },
    )
    return entry


@transaction.atomic
def record_journal_entry(**kwargs) -> JournalEntry:
    """
    Create + post in one atomic step (what the pipelines use).
    """
    entry = create_journal_entry(**kwargs)
    return post_journal_entry(entry_id=entry.pk)


@transaction.atomic
def reverse_journal_entry(
    *,
    entry_id,
    reversal_date: date | None = None,
    memo: str | None = None,
) -> JournalEntry:
    original = _lock_entry(entry_id)

    if original.status == JournalEntry.Status.REVERSED:
        raise AlreadyReversedError(f"Journal entry {original.pk} is already reversed")
    if original.status != JournalEntry.Status.POSTED:
        raise InvalidTransitionError("Only POSTED entries can be reversed")
    if original.is_reversal:
        raise InvalidTransitionError("A reversal entry cannot itself be reversed")

    swapped = [
        {
            "account": line.account,
            "debit": line.credit,
            "credit": line.debit,
            "description": line.description,
        }
        for line in original.lines.select_related("account").order_by("line_number")
    ]

    reversal = create_journal_entry(
        tenant_id=original.chart.tenant_id,
        memo=memo or f"Reversal of #{original.pk}: {original.memo}",
        lines=swapped,
        entry_date=reversal_date or timezone.localdate(),
        reference=f"REVERSAL:{original.pk}",
        source_type=original.source_type,
        source_id=original.source_id,
        reverses=original,
    )
    reversal = post_journal_entry(entry_id=reversal.pk)

    original.status = JournalEntry.Status.REVERSED
    original.reversed_at = timezone.now()
    original.save(update_fields=["status", "reversed_at"])

    logger.info(
        "Journal entry reversed",
        extra={"journal_entry_id": original.pk, "reversal_id": reversal.pk},
    )
    return reversal
