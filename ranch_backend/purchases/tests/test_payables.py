# purchases/tests/test_payables.py

from datetime import date
from decimal import Decimal

from django.test import TestCase

from accounting.models.journal import JournalEntry
from accounting.services import account_resolver as ar
from accounting.services.aging_service import get_ap_aging
from accounting.services.exceptions import AlreadyVoidedError, InvalidTransitionError
from inventory.models import InventoryItem
from inventory.services.valuation import receive_inventory
from purchases.models import Bill, Payment, Requisition, Vendor
from purchases.services.bill_service import (
    approve_bill,
    create_bill,
    match_bill,
    submit_bill,
    void_bill,
)
from purchases.services.exceptions import OverBillingError, OverPaymentError, PurchasingError
from purchases.services.payment_service import create_payment
from purchases.services.reorder_service import check_reorder_points
from purchases.tests.base import SITE, TENANT, PurchasingTestMixin


class ThreeWayMatchTests(PurchasingTestMixin, TestCase):
    """
    Bill vs PO vs posted receipts.

    GUARANTEES:
    - Agreeing quantities and prices match
    - Billing more than received, or off-price, is a discrepancy
    - Approval of a linked bill books only the price variance
    """

    def setUp(self):
        super().setUp()
        self.po = self.sent_po("100", "8.00")

    def _bill(self, qty, unit_price):
        return create_bill(
            tenant_id=TENANT,
            vendor_id=self.vendor.pk,
            purchase_order_id=self.po.pk,
            lines=[{"po_line_number": 1, "quantity": qty, "unit_price": unit_price}],
        )

    def test_bill_copied_from_receipt_matches(self):
        receipt = self.received(self.po, "100")
        bill = create_bill(tenant_id=TENANT, vendor_id=self.vendor.pk, receipt_id=receipt.pk)

        outcome = match_bill(bill_id=bill.pk)

        self.assertEqual(bill.purchase_order_id, self.po.pk)
        self.assertEqual(outcome["match_status"], Bill.MatchStatus.MATCHED)
        self.assertEqual(outcome["variance_amount"], Decimal("0.00"))

        bill = approve_bill(bill_id=bill.pk)
        self.assertEqual(bill.status, Bill.Status.APPROVED)
        self.assertIsNone(bill.journal_entry_id)
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("800.00"))

    def test_price_over_po_is_discrepancy_and_books_variance(self):
        self.received(self.po, "100")
        bill = self._bill("100", "8.50")

        outcome = match_bill(bill_id=bill.pk)
        self.assertEqual(outcome["match_status"], Bill.MatchStatus.DISCREPANCY)
        self.assertEqual(outcome["variance_amount"], Decimal("50.00"))

        approve_bill(bill_id=bill.pk)

        self.assertEqual(self.balance(ar.PURCHASE_PRICE_VARIANCE), Decimal("50.00"))
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("850.00"))
        self.assertEqual(self.balance(ar.INVENTORY), Decimal("800.00"))

    def test_price_under_receipt_credits_variance(self):
        self.received(self.po, "100")
        bill = self._bill("100", "7.995")

        approve_bill(bill_id=bill.pk)

        self.assertEqual(self.balance(ar.PURCHASE_PRICE_VARIANCE), Decimal("-0.50"))
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("799.50"))

    def test_billing_less_than_received_is_partial(self):
        self.received(self.po, "100")
        outcome = match_bill(bill_id=self._bill("60", "8.00").pk)

        self.assertEqual(outcome["match_status"], Bill.MatchStatus.PARTIAL)
        self.assertEqual(outcome["variance_amount"], Decimal("0.00"))

    def test_billing_more_than_received_is_discrepancy(self):
        self.received(self.po, "50")
        outcome = match_bill(bill_id=self._bill("80", "8.00").pk)

        self.assertEqual(outcome["match_status"], Bill.MatchStatus.DISCREPANCY)
        self.assertEqual(outcome["variance_amount"], Decimal("240.00"))

    def test_second_bill_for_same_receipt_is_rejected(self):
        receipt = self.received(self.po, "100")
        first = create_bill(tenant_id=TENANT, vendor_id=self.vendor.pk, receipt_id=receipt.pk)
        approve_bill(bill_id=first.pk)

        second = create_bill(tenant_id=TENANT, vendor_id=self.vendor.pk, receipt_id=receipt.pk)
        outcome = match_bill(bill_id=second.pk)

        self.assertEqual(outcome["match_status"], Bill.MatchStatus.DISCREPANCY)
        self.assertEqual(outcome["lines"][0]["open_to_bill"], Decimal("0"))
        self.assertEqual(outcome["variance_amount"], Decimal("800.00"))

        with self.assertRaises(OverBillingError):
            approve_bill(bill_id=second.pk)

        second.refresh_from_db()
        self.assertEqual(second.status, Bill.Status.DRAFT)
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("800.00"))

    def test_split_billing_counts_earlier_bills(self):
        self.received(self.po, "100")
        approve_bill(bill_id=self._bill("60", "8.00").pk)

        rest = self._bill("40", "8.00")
        self.assertEqual(match_bill(bill_id=rest.pk)["match_status"], Bill.MatchStatus.MATCHED)

        too_much = self._bill("50", "8.00")
        outcome = match_bill(bill_id=too_much.pk)
        self.assertEqual(outcome["match_status"], Bill.MatchStatus.DISCREPANCY)
        self.assertEqual(outcome["variance_amount"], Decimal("80.00"))

        approve_bill(bill_id=rest.pk)
        with self.assertRaises(OverBillingError):
            approve_bill(bill_id=too_much.pk)
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("800.00"))

    def test_voided_bill_frees_its_quantity(self):
        receipt = self.received(self.po, "100")
        first = create_bill(tenant_id=TENANT, vendor_id=self.vendor.pk, receipt_id=receipt.pk)
        approve_bill(bill_id=first.pk)
        void_bill(bill_id=first.pk)

        second = create_bill(tenant_id=TENANT, vendor_id=self.vendor.pk, receipt_id=receipt.pk)
        self.assertEqual(match_bill(bill_id=second.pk)["match_status"], Bill.MatchStatus.MATCHED)

    def test_nothing_received_is_partial_and_blocks_approval(self):
        bill = create_bill(tenant_id=TENANT, vendor_id=self.vendor.pk, purchase_order_id=self.po.pk)

        outcome = match_bill(bill_id=bill.pk)
        self.assertEqual(outcome["match_status"], Bill.MatchStatus.PARTIAL)

        with self.assertRaises(InvalidTransitionError):
            approve_bill(bill_id=bill.pk)
        bill.refresh_from_db()
        self.assertEqual(bill.status, Bill.Status.DRAFT)

    def test_line_not_on_po_is_discrepancy(self):
        self.received(self.po, "100")
        bill = create_bill(
            tenant_id=TENANT,
            vendor_id=self.vendor.pk,
            purchase_order_id=self.po.pk,
            lines=[
                {"po_line_number": 1, "quantity": "100", "unit_price": "8.00"},
                {"description": "Delivery fee", "amount": "35.00"},
            ],
        )

        outcome = match_bill(bill_id=bill.pk)

        self.assertEqual(outcome["match_status"], Bill.MatchStatus.DISCREPANCY)
        self.assertEqual(outcome["variance_amount"], Decimal("35.00"))

    def test_manual_bill_is_unmatched(self):
        bill = create_bill(
            tenant_id=TENANT,
            vendor_id=self.vendor.pk,
            lines=[{"description": "Fence repair", "amount": "120.00"}],
        )
        self.assertEqual(match_bill(bill_id=bill.pk)["match_status"], Bill.MatchStatus.UNMATCHED)

    def test_po_for_other_vendor_is_rejected(self):
        other = Vendor.objects.create(tenant_id=TENANT, name="Parts Depot")
        with self.assertRaises(PurchasingError):
            create_bill(tenant_id=TENANT, vendor_id=other.pk, purchase_order_id=self.po.pk)


class BillAndPaymentTests(PurchasingTestMixin, TestCase):
    """
    GUARANTEES:
    - Manual bills debit their line accounts (Other Expense by default)
    - Voiding reverses the bill entry exactly once
    - Payments never exceed the amount due
    """

    def _manual_bill(self, amount="150.00", **kwargs):
        return create_bill(
            tenant_id=TENANT,
            vendor_id=self.vendor.pk,
            lines=[{"description": "Vet call", "amount": amount}],
            **kwargs,
        )

    def test_due_date_from_vendor_terms(self):
        bill = self._manual_bill(bill_date=date(2026, 1, 1))
        self.assertEqual(bill.due_date, date(2026, 1, 31))
        self.assertEqual(bill.number, "BILL-00001")

    def test_approve_manual_bill(self):
        bill = self._manual_bill()
        submit_bill(bill_id=bill.pk)
        bill = approve_bill(bill_id=bill.pk)

        self.assertEqual(bill.journal_entry.status, JournalEntry.Status.POSTED)
        self.assertEqual(self.balance(ar.OTHER_EXPENSE), Decimal("150.00"))
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("150.00"))

    def test_manual_bill_line_account(self):
        repairs = ar.resolve_account(self.chart, ar.REPAIR_EXPENSE)
        bill = create_bill(
            tenant_id=TENANT,
            vendor_id=self.vendor.pk,
            lines=[{"description": "Baler belts", "quantity": "2", "unit_price": "75", "account_id": repairs.pk}],
        )
        approve_bill(bill_id=bill.pk)

        self.assertEqual(self.balance(ar.REPAIR_EXPENSE), Decimal("150.00"))
        self.assertEqual(self.balance(ar.OTHER_EXPENSE), Decimal("0.00"))

    def test_void_bill_reverses_entry_once(self):
        bill = self._manual_bill()
        approve_bill(bill_id=bill.pk)

        bill = void_bill(bill_id=bill.pk)

        self.assertEqual(bill.status, Bill.Status.VOIDED)
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("0.00"))
        with self.assertRaises(AlreadyVoidedError):
            void_bill(bill_id=bill.pk)

    def test_paid_bill_cannot_be_voided(self):
        bill = self._manual_bill()
        approve_bill(bill_id=bill.pk)
        create_payment(bill_id=bill.pk, amount="10.00")

        with self.assertRaises(InvalidTransitionError):
            void_bill(bill_id=bill.pk)

    def test_partial_then_full_payment(self):
        bill = self._manual_bill("150.00")
        approve_bill(bill_id=bill.pk)

        payment = create_payment(bill_id=bill.pk, amount="50.00", method=Payment.Method.CHECK, reference="1042")
        bill.refresh_from_db()
        self.assertEqual(payment.number, "PAY-00001")
        self.assertEqual(bill.status, Bill.Status.PARTIALLY_PAID)
        self.assertEqual(bill.amount_due, Decimal("100.00"))
        self.assertEqual(self.balance(ar.BANK), Decimal("-50.00"))

        create_payment(bill_id=bill.pk, amount="100.00", method=Payment.Method.CASH)
        bill.refresh_from_db()
        self.assertEqual(bill.status, Bill.Status.PAID)
        self.assertEqual(bill.amount_due, Decimal("0.00"))
        self.assertEqual(self.balance(ar.CASH), Decimal("-100.00"))
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("0.00"))

        with self.assertRaises(InvalidTransitionError):
            create_payment(bill_id=bill.pk, amount="1.00")

    def test_over_payment_is_rejected(self):
        bill = self._manual_bill("150.00")
        approve_bill(bill_id=bill.pk)

        with self.assertRaises(OverPaymentError):
            create_payment(bill_id=bill.pk, amount="150.01")

        bill.refresh_from_db()
        self.assertEqual(bill.amount_paid, Decimal("0.00"))
        self.assertFalse(Payment.objects.exists())

    def test_unapproved_bill_cannot_be_paid(self):
        bill = self._manual_bill()
        with self.assertRaises(InvalidTransitionError):
            create_payment(bill_id=bill.pk, amount="10.00")

    def test_ap_aging_buckets_open_amounts(self):
        overdue = self._manual_bill("150.00", bill_date=date(2026, 1, 1))
        approve_bill(bill_id=overdue.pk)
        create_payment(bill_id=overdue.pk, amount="50.00")

        current = self._manual_bill("40.00", bill_date=date(2026, 3, 1))
        approve_bill(bill_id=current.pk)

        self._manual_bill("999.00", bill_date=date(2026, 1, 1))

        aging = get_ap_aging(tenant_id=TENANT, as_of=date(2026, 3, 15))

        self.assertEqual(aging["summary"]["days60"], Decimal("100.00"))
        self.assertEqual(aging["summary"]["current"], Decimal("40.00"))
        self.assertEqual(aging["summary"]["total"], Decimal("140.00"))
        self.assertEqual(aging["byVendor"][0]["party_name"], "Valley Feed")
        self.assertEqual(aging["byVendor"][0]["count"], 2)


class ReorderCheckTests(PurchasingTestMixin, TestCase):
    """
    GUARANTEES:
    - Items at or below their reorder point are suggested once
    - An open requisition for the item suppresses the suggestion
    """

    def setUp(self):
        super().setUp()
        self.alfalfa.reorder_point = Decimal("40")
        self.alfalfa.save()
        self.mineral = InventoryItem.objects.create(
            tenant_id=TENANT,
            name="Loose Mineral",
            unit="bag",
            default_unit_cost=Decimal("22.00"),
            reorder_point=Decimal("5"),
            reorder_quantity=Decimal("20"),
        )
        receive_inventory(item=self.mineral, site_id=SITE, quantity="12", unit_cost="22.00")

    def test_suggests_items_below_reorder_point(self):
        suggestions = check_reorder_points(tenant_id=TENANT, site_id=SITE)

        self.assertEqual([s["item_id"] for s in suggestions], [self.alfalfa.pk])
        self.assertEqual(suggestions[0]["on_hand"], Decimal("0"))
        self.assertEqual(suggestions[0]["suggested_quantity"], Decimal("80.000"))
        self.assertIsNone(suggestions[0]["requisition_id"])
        self.assertFalse(Requisition.objects.exists())

    def test_create_raises_one_requisition_per_item(self):
        suggestions = check_reorder_points(tenant_id=TENANT, site_id=SITE, create=True)

        req = Requisition.objects.get(pk=suggestions[0]["requisition_id"])
        self.assertEqual(req.source, Requisition.Source.AUTO_REORDER)
        self.assertEqual(req.status, Requisition.Status.DRAFT)
        self.assertEqual(req.lines.get().quantity, Decimal("80.000"))

        self.assertEqual(check_reorder_points(tenant_id=TENANT, site_id=SITE, create=True), [])
        self.assertEqual(Requisition.objects.count(), 1)

    def test_reorder_check_logs_its_result(self):
        with self.assertLogs("purchases.services.reorder_service", level="INFO") as logs:
            suggestions = check_reorder_points(tenant_id=TENANT, site_id=SITE, create=True)

        self.assertEqual(logs.records[-1].count, len(suggestions))
        self.assertTrue(logs.records[-1].create)

    def test_explicit_reorder_quantity_is_used(self):
        self.mineral.reorder_point = Decimal("15")
        self.mineral.save()

        suggestions = {s["item_id"]: s for s in check_reorder_points(tenant_id=TENANT, site_id=SITE)}

        self.assertEqual(suggestions[self.mineral.pk]["suggested_quantity"], Decimal("20"))
