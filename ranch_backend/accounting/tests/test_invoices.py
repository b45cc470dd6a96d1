# accounting/tests/test_invoices.py

from datetime import date
from decimal import Decimal

from django.test import TestCase

from accounting.models.customer_invoice import CustomerInvoice, InvoicePayment
from accounting.models.journal import JournalEntry
from accounting.services import account_resolver as ar
from accounting.services.balance_service import get_balance
from accounting.services.exceptions import (
    AccountResolutionError,
    AlreadyVoidedError,
    InvalidTransitionError,
    LedgerValidationError,
    OverCollectionError,
)
from accounting.services.invoice_service import create_invoice, record_invoice_payment, void_invoice

TENANT = "ranch-invoices"


class InvoiceServiceTests(TestCase):
    """
    GUARANTEES:
    - A standalone invoice posts Dr Accounts Receivable / Cr revenue
    - Payments post Dr Cash or Bank / Cr Accounts Receivable
    - Payments never exceed the amount due
    - Voiding is refused once money was collected
    """

    def setUp(self):
        self.chart, _ = ar.seed_farm_chart(TENANT)

    def balance(self, subtype):
        account = ar.resolve_account(self.chart, subtype)
        return get_balance(tenant_id=TENANT, account_id=account.pk)

    def invoice(self, total="1200.00", **kwargs):
        return create_invoice(tenant_id=TENANT, customer_name="Sale Barn", total=total, **kwargs)

    def test_invoice_posts_receivable_and_revenue(self):
        inv = self.invoice(invoice_date=date(2024, 5, 1), terms_days=15)

        self.assertEqual(inv.invoice_number, "INV-00001")
        self.assertEqual(inv.status, CustomerInvoice.Status.OPEN)
        self.assertEqual(inv.due_date, date(2024, 5, 16))
        self.assertEqual(inv.customer_id, "sale barn")
        self.assertEqual(inv.journal_entry.status, JournalEntry.Status.POSTED)
        self.assertEqual(self.balance(ar.ACCOUNTS_RECEIVABLE), Decimal("1200.00"))
        self.assertEqual(self.balance(ar.SALES), Decimal("1200.00"))

    def test_default_terms_and_numbering(self):
        first = self.invoice(invoice_date=date(2024, 5, 1))
        second = self.invoice(total="50.00")

        self.assertEqual(first.due_date, date(2024, 5, 31))
        self.assertEqual(second.invoice_number, "INV-00002")

    def test_revenue_account_by_code(self):
        self.invoice(total="75.00", revenue_code="4900")

        other = ar.resolve_account_by_code(self.chart, "4900")
        self.assertEqual(get_balance(tenant_id=TENANT, account_id=other.pk), Decimal("75.00"))
        self.assertEqual(self.balance(ar.SALES), Decimal("0.00"))

    def test_revenue_code_must_be_income(self):
        with self.assertRaises(LedgerValidationError):
            self.invoice(revenue_code="1000")
        with self.assertRaises(AccountResolutionError):
            self.invoice(revenue_code="9999")
        self.assertFalse(CustomerInvoice.objects.exists())

    def test_rejects_bad_totals_and_blank_customer(self):
        with self.assertRaises(LedgerValidationError):
            self.invoice(total="0")
        with self.assertRaises(LedgerValidationError):
            create_invoice(tenant_id=TENANT, customer_name="  ", total="10.00")

    def test_partial_then_full_payment(self):
        inv = self.invoice()

        record_invoice_payment(invoice_id=inv.pk, amount="200.00")
        inv.refresh_from_db()
        self.assertEqual(inv.status, CustomerInvoice.Status.PARTIALLY_PAID)
        self.assertEqual(inv.amount_due, Decimal("1000.00"))
        self.assertEqual(self.balance(ar.BANK), Decimal("200.00"))

        record_invoice_payment(invoice_id=inv.pk, amount="1000.00", method=InvoicePayment.Method.CASH)
        inv.refresh_from_db()
        self.assertEqual(inv.status, CustomerInvoice.Status.PAID)
        self.assertEqual(self.balance(ar.CASH), Decimal("1000.00"))
        self.assertEqual(self.balance(ar.ACCOUNTS_RECEIVABLE), Decimal("0.00"))

    def test_over_collection_is_rejected(self):
        inv = self.invoice(total="300.00")
        record_invoice_payment(invoice_id=inv.pk, amount="250.00")

        with self.assertRaises(OverCollectionError):
            record_invoice_payment(invoice_id=inv.pk, amount="50.01")

        inv.refresh_from_db()
        self.assertEqual(inv.amount_paid, Decimal("250.00"))
        self.assertEqual(inv.payments.count(), 1)
        self.assertEqual(self.balance(ar.ACCOUNTS_RECEIVABLE), Decimal("50.00"))

    def test_paid_invoice_takes_no_more_payments(self):
        inv = self.invoice(total="10.00")
        record_invoice_payment(invoice_id=inv.pk, amount="10.00")

        with self.assertRaises(InvalidTransitionError):
            record_invoice_payment(invoice_id=inv.pk, amount="1.00")

    def test_void_reverses_the_invoice(self):
        inv = self.invoice()

        void_invoice(invoice_id=inv.pk)

        inv.refresh_from_db()
        self.assertEqual(inv.status, CustomerInvoice.Status.VOIDED)
        self.assertEqual(inv.journal_entry.status, JournalEntry.Status.REVERSED)
        self.assertEqual(self.balance(ar.ACCOUNTS_RECEIVABLE), Decimal("0.00"))
        self.assertEqual(self.balance(ar.SALES), Decimal("0.00"))

        with self.assertRaises(AlreadyVoidedError):
            void_invoice(invoice_id=inv.pk)
        with self.assertRaises(InvalidTransitionError):
            record_invoice_payment(invoice_id=inv.pk, amount="1.00")

    def test_collected_invoice_cannot_be_voided(self):
        inv = self.invoice()
        record_invoice_payment(invoice_id=inv.pk, amount="100.00")

        with self.assertRaises(InvalidTransitionError):
            void_invoice(invoice_id=inv.pk)
        inv.refresh_from_db()
        self.assertEqual(inv.status, CustomerInvoice.Status.PARTIALLY_PAID)
