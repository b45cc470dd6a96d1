# events/tests/test_posting.py

from datetime import date
from decimal import Decimal
from unittest import mock

from django.test import TestCase

from accounting.models.customer_invoice import CustomerInvoice
from accounting.models.journal import JournalEntry
from accounting.models.posting_intent import PostingIntent
from accounting.services import account_resolver as ar
from accounting.services.aging_service import get_ar_aging
from accounting.services.balance_service import get_balance
from accounting.services.exceptions import AlreadyVoidedError, InvalidTransitionError
from accounting.services.invoice_service import record_invoice_payment, void_invoice
from events.models import Event
from events.services.event_service import cancel_event, create_event, update_event
from events.services.exceptions import PayloadValidationError
from events.services.posting_service import (
    post_event,
    reprocess_event,
    reprocess_failed_events,
    void_event,
)
from inventory.models import InventoryItem, InventoryMovement, SiteInventory
from inventory.services.exceptions import InsufficientQuantityError

TENANT = "ranch-events"
SITE = "home-place"


class EventTestMixin:
    def setUp(self):
        self.chart, _ = ar.seed_farm_chart(TENANT)
        self.feed = InventoryItem.objects.create(
            tenant_id=TENANT,
            name="Cattle Cubes",
            unit="lb",
            category=InventoryItem.Category.FEED,
            default_unit_cost=Decimal("3.00"),
        )

    def balance(self, subtype):
        account = ar.resolve_account(self.chart, subtype)
        return get_balance(tenant_id=TENANT, account_id=account.pk)

    def on_hand(self, site=SITE):
        row = SiteInventory.objects.filter(item=self.feed, site_id=site).first()
        return row.quantity if row else Decimal("0")

    def receive(self, quantity="100", unit_cost="2.00", settlement="payable"):
        event = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.RECEIVING,
            payload={
                "lines": [{"item_id": self.feed.pk, "quantity": quantity, "unit_cost": unit_cost}],
                "settlement": settlement,
                "vendor_name": "Co-op",
            },
        )
        post_event(event_id=event.pk)
        event.refresh_from_db()
        return event

    def feeding(self, quantity="30"):
        return create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.FEEDING,
            payload={"lines": [{"item_id": self.feed.pk, "quantity": quantity}]},
        )


class EventRecordingTests(EventTestMixin, TestCase):
    """
    GUARANTEES:
    - Totals come from payload inputs only
    - Per-animal quantities rescale without drift
    - Only unposted events can be edited or cancelled
    """

    def test_per_animal_totals_recompute_from_inputs(self):
        event = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.FEEDING,
            group_id="steers-2024",
            animal_count=10,
            payload={"lines": [{"item_id": self.feed.pk, "quantity_per_animal": "2", "unit_cost": "3"}]},
        )
        self.assertEqual(event.total_quantity, Decimal("20.000"))
        self.assertEqual(event.total_cost, Decimal("60.00"))

        event = update_event(event_id=event.pk, animal_count=12)
        self.assertEqual(event.total_quantity, Decimal("24.000"))
        self.assertEqual(event.total_cost, Decimal("72.00"))

        event = update_event(event_id=event.pk, animal_count=10)
        self.assertEqual(event.total_cost, Decimal("60.00"))

    def test_per_animal_line_needs_animal_count(self):
        with self.assertRaises(PayloadValidationError):
            create_event(
                tenant_id=TENANT,
                site_id=SITE,
                event_type=Event.EventType.FEEDING,
                payload={"lines": [{"item_id": self.feed.pk, "quantity_per_animal": "2"}]},
            )

    def test_unknown_item_is_rejected(self):
        with self.assertRaises(PayloadValidationError):
            create_event(
                tenant_id=TENANT,
                site_id=SITE,
                event_type=Event.EventType.FEEDING,
                payload={"lines": [{"item_id": 999999, "quantity": "1"}]},
            )

    def test_labor_total_from_hours_and_rate(self):
        event = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.LABOR,
            payload={"hours": "8", "rate": "18.50", "worker_name": "Day hand"},
        )
        self.assertEqual(event.total_cost, Decimal("148.00"))

    def test_posted_event_cannot_be_edited(self):
        self.receive()
        event = self.feeding()
        post_event(event_id=event.pk)

        with self.assertRaises(InvalidTransitionError):
            update_event(event_id=event.pk, description="changed")
        with self.assertRaises(InvalidTransitionError):
            cancel_event(event_id=event.pk)


class EventPostingTests(EventTestMixin, TestCase):
    """
    GUARANTEES:
    - Inventory and ledger move together, priced from the movements
    - Validation failures commit nothing
    - A partial failure resumes without double-counting
    - Voids compensate both sides exactly once
    """

    def test_receiving_event_books_inventory_and_payable(self):
        event = self.receive("100", "2.00")

        self.assertEqual(event.posting_status, Event.PostingStatus.POSTED)
        self.assertEqual(self.on_hand(), Decimal("100.000"))
        self.assertEqual(self.balance(ar.INVENTORY), Decimal("200.00"))
        self.assertEqual(self.balance(ar.ACCOUNTS_PAYABLE), Decimal("200.00"))
        self.assertEqual(event.journal_entry.reference, f"EVENT:{event.pk}")

    def test_feeding_valued_at_moving_average(self):
        self.receive("100", "2.00")
        self.receive("50", "5.00")

        event = self.feeding("30")
        result = post_event(event_id=event.pk)
        event.refresh_from_db()

        self.assertTrue(result["posted"])
        self.assertEqual(event.posted_cost, Decimal("90.00"))
        self.assertEqual(self.balance(ar.FEED_EXPENSE), Decimal("90.00"))
        self.assertEqual(self.balance(ar.INVENTORY), Decimal("360.00"))

    def test_posting_twice_is_a_noop(self):
        self.receive()
        event = self.feeding()
        post_event(event_id=event.pk)
        again = post_event(event_id=event.pk)

        self.assertTrue(again["posted"])
        self.assertEqual(self.on_hand(), Decimal("70.000"))

    def test_draft_event_is_not_postable(self):
        event = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.MAINTENANCE,
            status=Event.Status.DRAFT,
            payload={"amount": "125.00"},
        )
        with self.assertRaises(InvalidTransitionError):
            post_event(event_id=event.pk)

    def test_insufficient_stock_commits_nothing(self):
        self.receive("100", "2.00")
        event = self.feeding("120")

        with self.assertRaises(InsufficientQuantityError):
            post_event(event_id=event.pk)

        event.refresh_from_db()
        self.assertEqual(event.posting_status, Event.PostingStatus.UNPOSTED)
        self.assertEqual(self.on_hand(), Decimal("100.000"))
        self.assertFalse(JournalEntry.objects.filter(source_id=str(event.pk), source_type="EVENT").exists())

    def test_labor_and_transfer_rules(self):
        labor = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.LABOR,
            payload={"amount": "250.00"},
        )
        post_event(event_id=labor.pk)
        self.assertEqual(self.balance(ar.LABOR_EXPENSE), Decimal("250.00"))
        self.assertEqual(self.balance(ar.CASH), Decimal("-250.00"))

        self.receive("40", "2.00")
        transfer = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.TRANSFER,
            payload={"item_id": self.feed.pk, "quantity": "15", "to_site_id": "east-lot"},
        )
        post_event(event_id=transfer.pk)
        transfer.refresh_from_db()

        self.assertEqual(transfer.posting_status, Event.PostingStatus.POSTED)
        self.assertIsNone(transfer.journal_entry_id)
        self.assertEqual(self.on_hand("east-lot"), Decimal("15.000"))

    def test_sale_books_revenue_and_cost(self):
        self.receive("10", "4.00")
        sale = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.SALE,
            payload={
                "amount": "90.00",
                "settlement": "receivable",
                "customer_name": "Sale Barn",
                "lines": [{"item_id": self.feed.pk, "quantity": "5"}],
            },
        )
        post_event(event_id=sale.pk)

        self.assertEqual(self.balance(ar.SALES), Decimal("90.00"))
        self.assertEqual(self.balance(ar.ACCOUNTS_RECEIVABLE), Decimal("90.00"))
        self.assertEqual(self.balance(ar.COST_OF_GOODS), Decimal("20.00"))

    def sale_on_account(self, amount="90.00", **extra):
        sale = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.SALE,
            event_date=date(2024, 3, 1),
            payload={"amount": amount, "settlement": "receivable", "customer_name": "Sale Barn", **extra},
        )
        post_event(event_id=sale.pk)
        sale.refresh_from_db()
        return sale

    def test_sale_on_account_raises_invoice(self):
        sale = self.sale_on_account(customer_id="barn-7", terms_days=10)

        invoice = CustomerInvoice.objects.get(source_type="EVENT", source_id=str(sale.pk))
        self.assertEqual(invoice.total, Decimal("90.00"))
        self.assertEqual(invoice.customer_id, "barn-7")
        self.assertEqual(invoice.due_date, date(2024, 3, 11))
        self.assertEqual(invoice.journal_entry_id, sale.journal_entry_id)
        # linked to the sale entry, nothing booked twice
        self.assertEqual(self.balance(ar.ACCOUNTS_RECEIVABLE), Decimal("90.00"))

        aging = get_ar_aging(tenant_id=TENANT, as_of=date(2024, 3, 31))
        self.assertEqual(aging["summary"]["days30"], Decimal("90.00"))
        self.assertEqual(aging["details"][0]["document_number"], invoice.invoice_number)

        record_invoice_payment(invoice_id=invoice.pk, amount="90.00")
        self.assertEqual(self.balance(ar.ACCOUNTS_RECEIVABLE), Decimal("0.00"))

    def test_cash_sale_raises_no_invoice(self):
        sale = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.SALE,
            payload={"amount": "40.00"},
        )
        post_event(event_id=sale.pk)
        self.assertFalse(CustomerInvoice.objects.exists())

    def test_sale_on_account_needs_customer(self):
        with self.assertRaises(PayloadValidationError):
            create_event(
                tenant_id=TENANT,
                site_id=SITE,
                event_type=Event.EventType.SALE,
                payload={"amount": "40.00", "settlement": "receivable"},
            )

    def test_void_sale_voids_its_invoice(self):
        sale = self.sale_on_account()

        void_event(event_id=sale.pk)

        invoice = CustomerInvoice.objects.get(source_id=str(sale.pk))
        self.assertEqual(invoice.status, CustomerInvoice.Status.VOIDED)
        self.assertEqual(self.balance(ar.ACCOUNTS_RECEIVABLE), Decimal("0.00"))

    def test_collected_sale_cannot_be_voided(self):
        sale = self.sale_on_account()
        invoice = CustomerInvoice.objects.get(source_id=str(sale.pk))
        record_invoice_payment(invoice_id=invoice.pk, amount="10.00")

        with self.assertRaises(InvalidTransitionError):
            void_event(event_id=sale.pk)

        sale.refresh_from_db()
        self.assertEqual(sale.posting_status, Event.PostingStatus.POSTED)
        with self.assertRaises(InvalidTransitionError):
            void_invoice(invoice_id=invoice.pk)

    # =====================================================
    # PARTIAL FAILURE / REPROCESS
    # =====================================================

    def test_ledger_failure_leaves_partial_and_reprocess_finishes(self):
        self.receive("100", "2.00")
        event = self.feeding("30")

        with mock.patch(
            "events.services.posting_service.record_journal_entry",
            side_effect=RuntimeError("ledger offline"),
        ):
            result = post_event(event_id=event.pk)

        event.refresh_from_db()
        self.assertFalse(result["posted"])
        self.assertTrue(result["partial"])
        self.assertEqual(event.posting_status, Event.PostingStatus.PARTIAL_FAILURE)
        self.assertIn("ledger offline", event.last_error)
        self.assertEqual(self.on_hand(), Decimal("70.000"))

        result = reprocess_event(event_id=event.pk)
        event.refresh_from_db()

        self.assertTrue(result["posted"])
        self.assertEqual(event.posting_status, Event.PostingStatus.POSTED)
        self.assertEqual(self.on_hand(), Decimal("70.000"))
        self.assertEqual(self.balance(ar.FEED_EXPENSE), Decimal("60.00"))

        intent = PostingIntent.objects.get(source_type="EVENT", source_id=str(event.pk))
        self.assertEqual(intent.attempts, 2)
        self.assertEqual(
            InventoryMovement.objects.filter(source_type="EVENT", source_id=str(event.pk)).count(), 1
        )

    def test_first_step_failure_is_not_partial(self):
        self.receive("100", "2.00")
        event = self.feeding("30")

        with mock.patch(
            "events.services.derivation.consume_inventory",
            side_effect=RuntimeError("scale offline"),
        ):
            result = post_event(event_id=event.pk)

        event.refresh_from_db()
        self.assertEqual(result, {"posted": False, "partial": False, "message": mock.ANY})
        self.assertEqual(event.posting_status, Event.PostingStatus.UNPOSTED)
        self.assertIn("scale offline", event.last_error)
        self.assertEqual(self.on_hand(), Decimal("100.000"))

    def test_reprocess_failed_events_for_tenant(self):
        self.receive("100", "2.00")
        event = self.feeding("10")
        with mock.patch(
            "events.services.posting_service.record_journal_entry",
            side_effect=RuntimeError("ledger offline"),
        ):
            post_event(event_id=event.pk)

        summary = reprocess_failed_events(tenant_id=TENANT)

        self.assertEqual(summary["found"], 1)
        self.assertEqual(summary["reprocessed"], 1)
        self.assertEqual(self.on_hand(), Decimal("90.000"))

    def test_draft_event_cannot_be_reprocessed(self):
        self.receive("100", "2.00")
        event = create_event(
            tenant_id=TENANT,
            site_id=SITE,
            event_type=Event.EventType.FEEDING,
            status=Event.Status.DRAFT,
            payload={"lines": [{"item_id": self.feed.pk, "quantity": "10"}]},
        )

        with self.assertRaises(InvalidTransitionError):
            reprocess_event(event_id=event.pk)

        event.refresh_from_db()
        self.assertEqual(event.posting_status, Event.PostingStatus.UNPOSTED)
        self.assertEqual(self.on_hand(), Decimal("100.000"))

    def test_cancelled_event_cannot_be_reprocessed(self):
        self.receive("100", "2.00")
        event = self.feeding("30")
        cancel_event(event_id=event.pk)

        with self.assertRaises(InvalidTransitionError):
            reprocess_event(event_id=event.pk)

        event.refresh_from_db()
        self.assertEqual(event.status, Event.Status.CANCELLED)
        self.assertEqual(event.posting_status, Event.PostingStatus.UNPOSTED)
        self.assertEqual(self.on_hand(), Decimal("100.000"))
        self.assertFalse(JournalEntry.objects.filter(source_type="EVENT", source_id=str(event.pk)).exists())

    # =====================================================
    # VOID
    # =====================================================

    def test_void_restores_stock_and_books(self):
        self.receive("100", "2.00")
        event = self.feeding("30")
        post_event(event_id=event.pk)

        self.assertEqual(void_event(event_id=event.pk), {"voided": True})

        event.refresh_from_db()
        self.assertEqual(event.posting_status, Event.PostingStatus.VOIDED)
        self.assertEqual(event.status, Event.Status.CANCELLED)
        self.assertEqual(self.on_hand(), Decimal("100.000"))
        self.assertEqual(self.balance(ar.FEED_EXPENSE), Decimal("0.00"))
        self.assertEqual(event.journal_entry.status, JournalEntry.Status.REVERSED)

        with self.assertRaises(AlreadyVoidedError):
            void_event(event_id=event.pk)

    def test_void_of_consumed_receipt_fails_and_commits_nothing(self):
        receiving = self.receive("100", "2.00")
        feeding = self.feeding("80")
        post_event(event_id=feeding.pk)

        with self.assertRaises(InsufficientQuantityError):
            void_event(event_id=receiving.pk)

        receiving.refresh_from_db()
        self.assertEqual(receiving.posting_status, Event.PostingStatus.POSTED)
        self.assertEqual(receiving.journal_entry.status, JournalEntry.Status.POSTED)
        self.assertEqual(self.on_hand(), Decimal("20.000"))

    def test_unposted_event_cannot_be_voided(self):
        event = self.feeding()
        with self.assertRaises(InvalidTransitionError):
            void_event(event_id=event.pk)
