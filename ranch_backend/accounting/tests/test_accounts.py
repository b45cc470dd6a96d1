# accounting/tests/test_accounts.py

from django.core.exceptions import ValidationError
from django.test import TestCase

from accounting.models.account import Account
from accounting.services import account_resolver as ar
from accounting.services.exceptions import AccountResolutionError
from accounting.services.journal_entry_service import create_account


class AccountResolverTests(TestCase):
    """
    GUARANTEES:
    - Seeding is idempotent
    - Semantic subtypes resolve to active accounts only
    - System accounts are protected
    """

    def setUp(self):
        self.chart, self.created = ar.seed_farm_chart("ranch-b")

    def test_seed_is_idempotent(self):
        self.assertEqual(self.created, len(ar.DEFAULT_FARM_ACCOUNTS))
        _, again = ar.seed_farm_chart("ranch-b")
        self.assertEqual(again, 0)

    def test_seeding_logs_created_count(self):
        with self.assertLogs("accounting.services.account_resolver", level="INFO") as logs:
            _, created = ar.seed_farm_chart("ranch-c")

        self.assertEqual(created, len(ar.DEFAULT_FARM_ACCOUNTS))
        self.assertEqual(logs.records[-1].created_count, created)

    def test_resolves_by_subtype(self):
        self.assertEqual(ar.get_accounts_payable_account(self.chart).code, "2000")
        self.assertEqual(ar.resolve_account(self.chart, ar.PURCHASE_PRICE_VARIANCE).code, "5050")

    def test_missing_subtype_raises(self):
        other = Account.objects.get(chart=self.chart, subtype="fuel_expense")
        other.is_active = False
        other.save()
        with self.assertRaises(AccountResolutionError):
            ar.resolve_account(self.chart, "fuel_expense")

    def test_unknown_tenant_has_no_chart(self):
        with self.assertRaises(AccountResolutionError):
            ar.get_chart_for_tenant("nobody")

    def test_system_account_cannot_be_deactivated(self):
        cash = ar.get_cash_account(self.chart)
        cash.is_active = False
        with self.assertRaises(ValidationError):
            cash.save()

    def test_normal_balance_follows_type(self):
        acc = create_account(tenant_id="ranch-b", code="2500", name="Note Payable", account_type=Account.LIABILITY)
        self.assertEqual(acc.normal_balance, Account.CREDIT)
        cogs = create_account(tenant_id="ranch-b", code="5070", name="Hay Shrink", account_type=Account.COGS)
        self.assertEqual(cogs.normal_balance, Account.DEBIT)
