# PATH: accounting/services/account_resolver.py

"""
PATH: accounting/services/account_resolver.py

ACCOUNT RESOLVER (AUTHORITATIVE)

This module answers ONE question:
"Which account should be used for this purpose, for this tenant?"

Accounts carry a semantic `subtype` ("inventory", "accounts_payable",
"feed_expense", ...). Posting code asks for the subtype, never for a code,
so tenants may renumber their chart freely.

Design goals:
- deterministic (lowest active code wins when several share a subtype)
- tenant-safe (every lookup is scoped to one chart)
- hard-fail on missing setup (so we don't post to wrong accounts)
"""

from __future__ import annotations

import logging

from django.db import transaction

from accounting.models.account import Account
from accounting.models.chart import ChartOfAccounts
from accounting.services.exceptions import AccountResolutionError

logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# SEMANTIC SUBTYPES
# ------------------------------------------------------------

CASH = "cash"
BANK = "bank"
ACCOUNTS_RECEIVABLE = "accounts_receivable"
INVENTORY = "inventory"
ACCOUNTS_PAYABLE = "accounts_payable"
OWNER_EQUITY = "owner_equity"
SALES = "sales"
COST_OF_GOODS = "cost_of_goods"
FEED_EXPENSE = "feed_expense"
MEDICAL_EXPENSE = "medical_expense"
LABOR_EXPENSE = "labor_expense"
REPAIR_EXPENSE = "repair_expense"
PURCHASE_PRICE_VARIANCE = "purchase_price_variance"
INVENTORY_ADJUSTMENT = "inventory_adjustment"
OTHER_EXPENSE = "other_expense"

# (code, name, account_type, subtype, is_system)
DEFAULT_FARM_ACCOUNTS = [
    ("1000", "Cash", Account.ASSET, CASH, True),
    ("1010", "Checking Account", Account.ASSET, BANK, True),
    ("1100", "Accounts Receivable", Account.ASSET, ACCOUNTS_RECEIVABLE, True),
    ("1200", "Feed Inventory", Account.ASSET, INVENTORY, True),
    ("1210", "Supply Inventory", Account.ASSET, "supply_inventory", False),
    ("1220", "Medicine Inventory", Account.ASSET, "medicine_inventory", False),
    ("1300", "Livestock", Account.ASSET, "livestock", True),
    ("2000", "Accounts Payable", Account.LIABILITY, ACCOUNTS_PAYABLE, True),
    ("2300", "Operating Loan", Account.LIABILITY, "loan", False),
    ("3000", "Owner's Equity", Account.EQUITY, OWNER_EQUITY, True),
    ("3100", "Retained Earnings", Account.EQUITY, "retained_earnings", True),
    ("4000", "Livestock Sales", Account.INCOME, SALES, True),
    ("4900", "Other Income", Account.INCOME, "other_income", False),
    ("5000", "Cost of Goods Sold", Account.COGS, COST_OF_GOODS, True),
    ("5050", "Purchase Price Variance", Account.COGS, PURCHASE_PRICE_VARIANCE, True),
    ("5060", "Inventory Adjustments", Account.COGS, INVENTORY_ADJUSTMENT, True),
    ("5100", "Feed Expense", Account.COGS, FEED_EXPENSE, True),
    ("5200", "Veterinary & Medical", Account.COGS, MEDICAL_EXPENSE, True),
    ("5300", "Labor Expense", Account.EXPENSE, LABOR_EXPENSE, True),
    ("5400", "Fuel & Oil", Account.EXPENSE, "fuel_expense", False),
    ("5500", "Repairs & Maintenance", Account.EXPENSE, REPAIR_EXPENSE, True),
    ("5990", "Other Expense", Account.EXPENSE, OTHER_EXPENSE, False),
]


def get_chart_for_tenant(tenant_id: str, *, create: bool = False) -> ChartOfAccounts:
    tenant_id = (str(tenant_id) if tenant_id is not None else "").strip()
    if not tenant_id:
        raise AccountResolutionError("tenant_id is required")

    chart = ChartOfAccounts.objects.filter(tenant_id=tenant_id).first()
    if chart is not None:
        return chart

    if not create:
        raise AccountResolutionError(
            f"No chart of accounts for tenant {tenant_id}. Run seed_farm_chart first."
        )

    chart, _ = ChartOfAccounts.objects.get_or_create(
        tenant_id=tenant_id,
        defaults={"name": f"Farm Chart ({tenant_id})"},
    )
    return chart


def resolve_account(chart: ChartOfAccounts, subtype: str) -> Account:
    acc = (
        Account.objects.filter(chart=chart, subtype=subtype, is_active=True)
        .order_by("code")
        .first()
    )
    if acc is None:
        logger.warning(
            "Account resolution failed",
            extra={"tenant_id": chart.tenant_id, "subtype": subtype},
        )
        raise AccountResolutionError(
            f"No active '{subtype}' account in chart for tenant {chart.tenant_id}."
        )
    return acc


def resolve_account_by_code(chart: ChartOfAccounts, code: str) -> Account:
    code = (code or "").strip()
    try:
        return Account.objects.get(chart=chart, code=code)
    except Account.DoesNotExist as exc:
        raise AccountResolutionError(
            f"Account with code={code} not found for tenant {chart.tenant_id}."
        ) from exc


def get_inventory_account(chart):
    return resolve_account(chart, INVENTORY)


def get_accounts_payable_account(chart):
    return resolve_account(chart, ACCOUNTS_PAYABLE)


def get_cash_account(chart):
    return resolve_account(chart, CASH)


def get_bank_account(chart):
    return resolve_account(chart, BANK)


@transaction.atomic
def seed_farm_chart(tenant_id: str, *, name: str | None = None) -> tuple[ChartOfAccounts, int]:
    """
    Idempotently create the default farm chart for a tenant.

    Returns (chart, created_count). Existing accounts are left untouched.
    """
    chart = get_chart_for_tenant(tenant_id, create=True)
    if name and chart.name != name:
        chart.name = name
        chart.save(update_fields=["name", "updated_at"])

    created_count = 0
    for code, acc_name, account_type, subtype, is_system in DEFAULT_FARM_ACCOUNTS:
        _, created = Account.objects.get_or_create(
            chart=chart,
            code=code,
            defaults={
                "name": acc_name,
                "account_type": account_type,
                "normal_balance": Account.default_normal_balance(account_type),
                "subtype": subtype,
                "is_system": is_system,
                "is_active": True,
            },
        )
        if created:
            created_count += 1

    logger.info(
        "Farm chart seeded",
        extra={"tenant_id": chart.tenant_id, "created_count": created_count},
    )
    return chart, created_count
