# accounting/services/balance_service.py

"""
BALANCE & REPORTING SERVICE (AUTHORITATIVE)

Read-only ledger aggregation helpers.

RULES:
- READ-ONLY: no writes, ever
- JournalLine is the single source of truth (balances are never stored)
- Accounting timeline uses JournalEntry.entry_date
- Only POSTED entries count. DRAFT never counts; a REVERSED original and
  the reversal that cancels it are both left out, so reversing an entry
  restores the balance it had before the original was posted.
- Tenant-aware: never mix charts

REPORTS:
- trial balance: every account with activity, debits == credits
- income statement: income, cost of goods and expenses over a date range
- balance sheet: assets = liabilities + equity, with income/expense
  activity shown as "Current Period Earnings" in equity (no closing entries)
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Sum
from django.db.models.functions import Coalesce

from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalLine
from accounting.services.account_resolver import get_chart_for_tenant
from accounting.services.exceptions import DocumentNotFoundError


TWOPLACES = Decimal("0.01")


def _q2(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _counted_lines(as_of: date | None = None, *, start: date | None = None):
    qs = JournalLine.objects.filter(
        journal_entry__status=JournalEntry.Status.POSTED,
        journal_entry__reverses__isnull=True,
    )
    if start is not None:
        qs = qs.filter(journal_entry__entry_date__gte=start)
    if as_of is not None:
        qs = qs.filter(journal_entry__entry_date__lte=as_of)
    return qs


def _signed(account: Account, debit: Decimal, credit: Decimal) -> Decimal:
    if account.is_debit_normal:
        return _q2(debit - credit)
    return _q2(credit - debit)


def get_account_balance(account: Account, *, as_of: date | None = None) -> Decimal:
    """
    Balance rule (normal-balance sign convention):
    - DEBIT-normal accounts → debits - credits
    - CREDIT-normal accounts → credits - debits
    """
    aggregates = _counted_lines(as_of).filter(account=account).aggregate(
        debit_total=Coalesce(Sum("debit"), Decimal("0.00")),
        credit_total=Coalesce(Sum("credit"), Decimal("0.00")),
    )
    return _signed(account, _q2(aggregates["debit_total"]), _q2(aggregates["credit_total"]))


def get_balance(*, tenant_id: str, account_id, as_of: date | None = None) -> Decimal:
    chart = get_chart_for_tenant(tenant_id)
    try:
        account = Account.objects.get(chart=chart, pk=account_id)
    except Account.DoesNotExist as exc:
        raise DocumentNotFoundError(f"Account {account_id} not found") from exc
    return get_account_balance(account, as_of=as_of)


def _totals_by_account(chart, *, as_of: date | None = None, start: date | None = None) -> dict:
    rows = (
        _counted_lines(as_of, start=start)
        .filter(account__chart=chart)
        .values("account_id")
        .annotate(
            debit_total=Coalesce(Sum("debit"), Decimal("0.00")),
            credit_total=Coalesce(Sum("credit"), Decimal("0.00")),
        )
    )
    return {r["account_id"]: (_q2(r["debit_total"]), _q2(r["credit_total"])) for r in rows}


def get_trial_balance(*, tenant_id: str, as_of: date | None = None) -> dict:
    """
    Bulk trial balance (no N+1). Accounts with no activity are skipped.
    """
    chart = get_chart_for_tenant(tenant_id)

    accounts = list(Account.objects.filter(chart=chart).order_by("code"))
    totals_by = _totals_by_account(chart, as_of=as_of)

    results = []
    total_debit = Decimal("0.00")
    total_credit = Decimal("0.00")

    for acc in accounts:
        if acc.pk not in totals_by:
            continue
        debit, credit = totals_by[acc.pk]
        total_debit += debit
        total_credit += credit
        results.append(
            {
                "account_id": acc.pk,
                "code": acc.code,
                "name": acc.name,
                "account_type": acc.account_type,
                "debit_total": debit,
                "credit_total": credit,
                "balance": _signed(acc, debit, credit),
            }
        )

    total_debit = _q2(total_debit)
    total_credit = _q2(total_credit)

    return {
        "as_of": as_of.isoformat() if as_of else None,
        "accounts": results,
        "totals": {
            "debit": total_debit,
            "credit": total_credit,
            "balanced": total_debit == total_credit,
        },
    }


def _section(accounts, totals_by: dict, account_type: str) -> tuple[list[dict], Decimal]:
    rows = []
    total = Decimal("0.00")
    for acc in accounts:
        if acc.account_type != account_type or acc.pk not in totals_by:
            continue
        amount = _signed(acc, *totals_by[acc.pk])
        if amount == 0:
            continue
        total += amount
        rows.append({"account_id": acc.pk, "code": acc.code, "name": acc.name, "amount": amount})
    return rows, _q2(total)


def get_income_statement(*, tenant_id: str, start: date | None = None, end: date | None = None) -> dict:
    """
    Income statement over [start, end] by entry_date (both ends inclusive,
    either may be open).

    gross_profit = total_income - total_cogs
    net_income   = gross_profit - total_expenses
    """
    chart = get_chart_for_tenant(tenant_id)
    accounts = list(Account.objects.filter(chart=chart).order_by("code"))
    totals_by = _totals_by_account(chart, as_of=end, start=start)

    income, total_income = _section(accounts, totals_by, Account.INCOME)
    cogs, total_cogs = _section(accounts, totals_by, Account.COGS)
    expenses, total_expenses = _section(accounts, totals_by, Account.EXPENSE)

    gross_profit = _q2(total_income - total_cogs)
    return {
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "income": income,
        "total_income": total_income,
        "cogs": cogs,
        "total_cogs": total_cogs,
        "gross_profit": gross_profit,
        "expenses": expenses,
        "total_expenses": total_expenses,
        "net_income": _q2(gross_profit - total_expenses),
    }


def get_balance_sheet(*, tenant_id: str, as_of: date | None = None) -> dict:
    chart = get_chart_for_tenant(tenant_id)
    accounts = list(Account.objects.filter(chart=chart).order_by("code"))
    totals_by = _totals_by_account(chart, as_of=as_of)

    assets, total_assets = _section(accounts, totals_by, Account.ASSET)
    liabilities, total_liabilities = _section(accounts, totals_by, Account.LIABILITY)
    equity, total_equity = _section(accounts, totals_by, Account.EQUITY)

    _, income = _section(accounts, totals_by, Account.INCOME)
    _, cogs = _section(accounts, totals_by, Account.COGS)
    _, expenses = _section(accounts, totals_by, Account.EXPENSE)
    earnings = _q2(income - cogs - expenses)
    if earnings != 0:
        equity.append({"account_id": None, "code": "", "name": "Current Period Earnings", "amount": earnings})
        total_equity = _q2(total_equity + earnings)

    liabilities_and_equity = _q2(total_liabilities + total_equity)
    return {
        "as_of": as_of.isoformat() if as_of else None,
        "assets": assets,
        "liabilities": liabilities,
        "equity": equity,
        "totals": {
            "assets": total_assets,
            "liabilities": total_liabilities,
            "equity": total_equity,
            "liabilities_and_equity": liabilities_and_equity,
            "balanced": total_assets == liabilities_and_equity,
        },
    }
