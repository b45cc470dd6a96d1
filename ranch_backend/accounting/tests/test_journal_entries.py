# accounting/tests/test_journal_entries.py

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.test import TestCase

from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalLine
from accounting.services import account_resolver as ar
from accounting.services.balance_service import get_balance, get_trial_balance
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
from accounting.services.journal_entry_service import (
    create_account,
    create_journal_entry,
    post_journal_entry,
    record_journal_entry,
    reverse_journal_entry,
)

TENANT = "ranch-a"


class JournalEntryServiceTests(TestCase):
    """
    Journal entry engine.

    GUARANTEES:
    - Only balanced entries with active accounts can be posted
    - Drafts carry no weight in balances
    - Reversal restores the balance and happens only once
    """

    def setUp(self):
        self.chart, _ = ar.seed_farm_chart(TENANT)
        self.cash = ar.get_cash_account(self.chart)
        self.inventory = ar.get_inventory_account(self.chart)
        self.feed = ar.resolve_account(self.chart, ar.FEED_EXPENSE)

    def _lines(self, debit="100.00", credit="100.00"):
        return [
            {"account": self.inventory, "debit": debit},
            {"account": self.cash, "credit": credit},
        ]

    # =====================================================
    # CREATE / POST
    # =====================================================

    def test_create_is_draft_and_does_not_touch_balances(self):
        entry = create_journal_entry(tenant_id=TENANT, memo="Feed bought", lines=self._lines())

        self.assertEqual(entry.status, JournalEntry.Status.DRAFT)
        self.assertEqual(JournalLine.objects.filter(journal_entry=entry).count(), 2)
        self.assertEqual(get_balance(tenant_id=TENANT, account_id=self.inventory.pk), Decimal("0.00"))

    def test_post_balanced_entry(self):
        entry = create_journal_entry(tenant_id=TENANT, memo="Feed bought", lines=self._lines())
        posted = post_journal_entry(entry_id=entry.pk)

        self.assertEqual(posted.status, JournalEntry.Status.POSTED)
        self.assertIsNotNone(posted.posted_at)
        self.assertEqual(get_balance(tenant_id=TENANT, account_id=self.inventory.pk), Decimal("100.00"))
        self.assertEqual(get_balance(tenant_id=TENANT, account_id=self.cash.pk), Decimal("-100.00"))

    def test_unbalanced_entry_cannot_be_posted(self):
        entry = create_journal_entry(tenant_id=TENANT, memo="Bad", lines=self._lines(credit="90.00"))

        with self.assertRaises(UnbalancedEntryError):
            post_journal_entry(entry_id=entry.pk)

        entry.refresh_from_db()
        self.assertEqual(entry.status, JournalEntry.Status.DRAFT)

    def test_inactive_account_blocks_posting(self):
        extra = create_account(tenant_id=TENANT, code="1900", name="Old Shed", account_type="ASSET")
        entry = create_journal_entry(
            tenant_id=TENANT,
            memo="Shed",
            lines=[{"account": extra, "debit": "5.00"}, {"account": self.cash, "credit": "5.00"}],
        )
        extra.is_active = False
        extra.save()

        with self.assertRaises(InactiveAccountError):
            post_journal_entry(entry_id=entry.pk)

    def test_posting_twice_is_rejected(self):
        entry = record_journal_entry(tenant_id=TENANT, memo="Once", lines=self._lines())
        with self.assertRaises(EntryNotDraftError):
            post_journal_entry(entry_id=entry.pk)

    def test_line_with_both_sides_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            create_journal_entry(
                tenant_id=TENANT,
                memo="Both",
                lines=[{"account": self.cash, "debit": "1.00", "credit": "1.00"}],
            )

    def test_duplicate_reference_is_rejected(self):
        record_journal_entry(tenant_id=TENANT, memo="First", lines=self._lines(), reference="EVENT:1")
        with self.assertRaises(IdempotencyError):
            record_journal_entry(tenant_id=TENANT, memo="Again", lines=self._lines(), reference="EVENT:1")

    def test_unknown_entry(self):
        with self.assertRaises(DocumentNotFoundError):
            post_journal_entry(entry_id=987654)

    # =====================================================
    # REVERSAL
    # =====================================================

    def test_reversal_restores_balance(self):
        before = get_balance(tenant_id=TENANT, account_id=self.inventory.pk)
        entry = record_journal_entry(tenant_id=TENANT, memo="Feed", lines=self._lines())

        reversal = reverse_journal_entry(entry_id=entry.pk)

        entry.refresh_from_db()
        self.assertEqual(entry.status, JournalEntry.Status.REVERSED)
        self.assertEqual(reversal.reverses_id, entry.pk)
        self.assertEqual(reversal.status, JournalEntry.Status.POSTED)
        self.assertEqual(get_balance(tenant_id=TENANT, account_id=self.inventory.pk), before)
        self.assertEqual(get_balance(tenant_id=TENANT, account_id=self.cash.pk), Decimal("0.00"))

        swapped = {(l.account_id, l.debit, l.credit) for l in reversal.lines.all()}
        self.assertIn((self.inventory.pk, Decimal("0.00"), Decimal("100.00")), swapped)
        self.assertIn((self.cash.pk, Decimal("100.00"), Decimal("0.00")), swapped)

    def test_second_reversal_fails(self):
        entry = record_journal_entry(tenant_id=TENANT, memo="Feed", lines=self._lines())
        reverse_journal_entry(entry_id=entry.pk)

        with self.assertRaises(AlreadyReversedError):
            reverse_journal_entry(entry_id=entry.pk)

    def test_draft_cannot_be_reversed(self):
        entry = create_journal_entry(tenant_id=TENANT, memo="Draft", lines=self._lines())
        with self.assertRaises(InvalidTransitionError):
            reverse_journal_entry(entry_id=entry.pk)

    def test_reversal_cannot_be_reversed(self):
        entry = record_journal_entry(tenant_id=TENANT, memo="Feed", lines=self._lines())
        reversal = reverse_journal_entry(entry_id=entry.pk)
        with self.assertRaises(InvalidTransitionError):
            reverse_journal_entry(entry_id=reversal.pk)

    # =====================================================
    # BALANCES / TRIAL BALANCE
    # =====================================================

    def test_balance_as_of_date(self):
        record_journal_entry(
            tenant_id=TENANT, memo="Jan", lines=self._lines("40.00", "40.00"), entry_date=date(2024, 1, 10)
        )
        record_journal_entry(
            tenant_id=TENANT, memo="Mar", lines=self._lines("60.00", "60.00"), entry_date=date(2024, 3, 10)
        )

        self.assertEqual(
            get_balance(tenant_id=TENANT, account_id=self.inventory.pk, as_of=date(2024, 2, 1)), Decimal("40.00")
        )
        self.assertEqual(get_balance(tenant_id=TENANT, account_id=self.inventory.pk), Decimal("100.00"))

    def test_trial_balance_debits_equal_credits(self):
        record_journal_entry(tenant_id=TENANT, memo="Stock", lines=self._lines())
        record_journal_entry(
            tenant_id=TENANT,
            memo="Fed",
            lines=[{"account": self.feed, "debit": "30.00"}, {"account": self.inventory, "credit": "30.00"}],
        )
        tb = get_trial_balance(tenant_id=TENANT)

        self.assertTrue(tb["totals"]["balanced"])
        self.assertEqual(tb["totals"]["debit"], Decimal("130.00"))
        by_code = {row["code"]: row["balance"] for row in tb["accounts"]}
        self.assertEqual(by_code[self.inventory.code], Decimal("70.00"))
        self.assertEqual(by_code[self.feed.code], Decimal("30.00"))
