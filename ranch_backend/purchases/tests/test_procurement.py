# purchases/tests/test_procurement.py

from decimal import Decimal
from unittest import mock

from django.test import TestCase

from accounting.services import account_resolver as ar
from accounting.services.exceptions import DocumentNotFoundError, InvalidTransitionError
from purchases.models import PurchaseOrder, Receipt, Requisition
from purchases.services.exceptions import OverReceiptError, PurchasingError
from purchases.services.order_service import (
    acknowledge_purchase_order,
    cancel_purchase_order,
    close_purchase_order,
    create_purchase_order,
)
from purchases.services.receiving_service import (
    create_receipt,
    post_receipt,
    reprocess_failed_receipts,
)
from purchases.services.requisition_service import (
    approve_requisition,
    convert_to_po,
    create_requisition,
    reject_requisition,
    submit_requisition,
)
from purchases.tests.base import SITE, TENANT, PurchasingTestMixin


class RequisitionTests(PurchasingTestMixin, TestCase):
    """
    GUARANTEES:
    - Requisitions move DRAFT -> SUBMITTED -> APPROVED -> CONVERTED
    - Conversion creates a draft PO carrying the requisition lines
    - Document numbers are sequential per tenant and prefix
    """

    def _requisition(self, qty="50"):
        return create_requisition(
            tenant_id=TENANT,
            site_id=SITE,
            requested_by="foreman",
            lines=[{"item_id": self.alfalfa.pk, "quantity": qty}],
        )

    def test_numbers_are_sequential(self):
        first = self._requisition()
        second = self._requisition()

        self.assertEqual(first.number, "REQ-00001")
        self.assertEqual(second.number, "REQ-00002")

    def test_convert_approved_requisition(self):
        req = self._requisition("50")
        submit_requisition(requisition_id=req.pk)
        approve_requisition(requisition_id=req.pk)

        po = convert_to_po(requisition_id=req.pk, vendor_id=self.vendor.pk)
        req.refresh_from_db()

        self.assertEqual(req.status, Requisition.Status.CONVERTED)
        self.assertEqual(po.status, PurchaseOrder.Status.DRAFT)
        self.assertEqual(po.number, "PO-00001")
        self.assertEqual(po.requisition_id, req.pk)
        line = po.lines.get()
        self.assertEqual(line.qty_ordered, Decimal("50.000"))
        self.assertEqual(line.unit_price, Decimal("8.0000"))

    def test_unapproved_requisition_cannot_convert(self):
        req = self._requisition()
        submit_requisition(requisition_id=req.pk)

        with self.assertRaises(InvalidTransitionError):
            convert_to_po(requisition_id=req.pk, vendor_id=self.vendor.pk)
        self.assertFalse(PurchaseOrder.objects.exists())

    def test_reject_needs_reason(self):
        req = self._requisition()
        submit_requisition(requisition_id=req.pk)

        with self.assertRaises(PurchasingError):
            reject_requisition(requisition_id=req.pk, reason="  ")

        req = reject_requisition(requisition_id=req.pk, reason="Hay is cheaper this month")
        self.assertEqual(req.status, Requisition.Status.REJECTED)

    def test_draft_cannot_be_approved(self):
        req = self._requisition()
        with self.assertRaises(InvalidTransitionError):
            approve_requisition(requisition_id=req.pk)


class PurchaseOrderTests(PurchasingTestMixin, TestCase):
    """
    GUARANTEES:
    - Status moves forward only
    - Cancel is refused once anything was received
    - Unknown items and vendors are rejected
    """

    def test_lifecycle_to_close(self):
        po = self.sent_po("100")
        po = acknowledge_purchase_order(purchase_order_id=po.pk)
        self.assertEqual(po.status, PurchaseOrder.Status.ACKNOWLEDGED)

        self.received(po, "40")
        po.refresh_from_db()
        self.assertEqual(po.status, PurchaseOrder.Status.PARTIALLY_RECEIVED)

        po = close_purchase_order(purchase_order_id=po.pk)
        self.assertEqual(po.status, PurchaseOrder.Status.CLOSED)

    def test_cancel_after_receipt_is_refused(self):
        po = self.sent_po("100")
        self.received(po, "10")

        with self.assertRaises(InvalidTransitionError):
            cancel_purchase_order(purchase_order_id=po.pk)

    def test_cancel_before_receipt(self):
        po = self.sent_po("100")
        po = cancel_purchase_order(purchase_order_id=po.pk)
        self.assertEqual(po.status, PurchaseOrder.Status.CANCELLED)

        with self.assertRaises(InvalidTransitionError):
            create_receipt(purchase_order_id=po.pk, lines=[{"po_line_number": 1, "qty_received": "1"}])

    def test_draft_po_cannot_be_closed(self):
        po = create_purchase_order(
            tenant_id=TENANT,
            site_id=SITE,
            vendor_id=self.vendor.pk,
            lines=[{"item_id": self.alfalfa.pk, "qty_ordered": "5", "unit_price": "8"}],
        )
        with self.assertRaises(InvalidTransitionError):
            close_purchase_order(purchase_order_id=po.pk)

    def test_documents_from_another_tenant_are_rejected(self):
        with self.assertRaises(PurchasingError):
            create_purchase_order(
                tenant_id="someone-else",
                site_id=SITE,
                vendor_id=self.vendor.pk,
                lines=[{"item_id": self.alfalfa.pk, "qty_ordered": "5"}],
            )

    def test_unknown_po(self):
        with self.assertRaises(DocumentNotFoundError):
            close_purchase_order(purchase_order_id="00000000-0000-0000-0000-000000000000")


class ReceivingTests(PurchasingTestMixin, TestCase):
    """
    GUARANTEES:
    - Received quantity never exceeds ordered quantity
    - Posting moves PO quantities, stock and the ledger together
    - A failed ledger step resumes without re-counting quantities or stock
    """

    def test_post_receipt_updates_po_stock_and_ledger(self):
        po = self.sent_po("100", "8.00")
        receipt = self.received(po, "60")

        self.assertEqual(receipt.status, Receipt.Status.POSTED)
        self.assertEqual(receipt.number, "RCV-00001")
        self.assertEqual(po.lines.get().qty_received, Decimal("60.000"))
        self.assertEqual(self.on_hand(), Decimal("60.000"))
        self.assertEqual(self.balance(ar.INVENTORY), Decimal("480.00"))
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("480.00"))

        self.received(po, "40")
        po.refresh_from_db()
        self.assertEqual(po.status, PurchaseOrder.Status.RECEIVED)

    def test_receipt_cost_overrides_po_price(self):
        po = self.sent_po("10", "8.00")
        self.received(po, "10", unit_cost="8.50")

        self.assertEqual(self.balance(ar.INVENTORY), Decimal("85.00"))

    def test_over_receipt_is_rejected(self):
        po = self.sent_po("100")

        with self.assertRaises(OverReceiptError):
            create_receipt(purchase_order_id=po.pk, lines=[{"po_line_number": 1, "qty_received": "101"}])

    def test_draft_receipts_reserve_open_quantity(self):
        po = self.sent_po("100")
        create_receipt(purchase_order_id=po.pk, lines=[{"po_line_number": 1, "qty_received": "60"}])

        with self.assertRaises(OverReceiptError):
            create_receipt(purchase_order_id=po.pk, lines=[{"po_line_number": 1, "qty_received": "50"}])

    def test_unknown_po_line(self):
        po = self.sent_po("100")
        with self.assertRaises(PurchasingError):
            create_receipt(purchase_order_id=po.pk, lines=[{"po_line_number": 9, "qty_received": "1"}])

    def test_posting_twice_is_a_noop(self):
        po = self.sent_po("100")
        receipt = self.received(po, "25")

        result = post_receipt(receipt_id=receipt.pk)

        self.assertTrue(result["posted"])
        self.assertEqual(po.lines.get().qty_received, Decimal("25.000"))
        self.assertEqual(self.on_hand(), Decimal("25.000"))

    def test_ledger_failure_then_reprocess(self):
        po = self.sent_po("100", "8.00")
        receipt = create_receipt(purchase_order_id=po.pk, lines=[{"po_line_number": 1, "qty_received": "60"}])

        with mock.patch(
            "purchases.services.receiving_service.record_journal_entry",
            side_effect=RuntimeError("ledger offline"),
        ):
            result = post_receipt(receipt_id=receipt.pk)

        receipt.refresh_from_db()
        self.assertTrue(result["partial"])
        self.assertEqual(receipt.status, Receipt.Status.PARTIAL_FAILURE)
        self.assertEqual(po.lines.get().qty_received, Decimal("60.000"))
        self.assertEqual(self.on_hand(), Decimal("60.000"))
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("0.00"))

        summary = reprocess_failed_receipts(tenant_id=TENANT)
        receipt.refresh_from_db()

        self.assertEqual(summary["reprocessed"], 1)
        self.assertEqual(receipt.status, Receipt.Status.POSTED)
        self.assertEqual(po.lines.get().qty_received, Decimal("60.000"))
        self.assertEqual(self.on_hand(), Decimal("60.000"))
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("480.00"))
