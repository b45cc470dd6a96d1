# accounting/tests/test_aging.py

from datetime import date, timedelta
from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from accounting.models.customer_invoice import CustomerInvoice
from accounting.services import account_resolver as ar
from accounting.services.aging_service import AgingDocument, build_aging, bucket_for, get_ar_aging

AS_OF = date(2024, 6, 30)


def _doc(party, days_past_due, amount, status="APPROVED"):
    return AgingDocument(
        party_id=party,
        party_name=party.title(),
        document_id=f"{party}-{days_past_due}",
        due_date=AS_OF - timedelta(days=days_past_due),
        amount_due=Decimal(amount),
        status=status,
    )


class BucketTests(SimpleTestCase):
    def test_bucket_edges(self):
        self.assertEqual(bucket_for(-5), "current")
        self.assertEqual(bucket_for(0), "current")
        self.assertEqual(bucket_for(1), "days30")
        self.assertEqual(bucket_for(30), "days30")
        self.assertEqual(bucket_for(31), "days60")
        self.assertEqual(bucket_for(60), "days60")
        self.assertEqual(bucket_for(61), "days90")
        self.assertEqual(bucket_for(90), "days90")
        self.assertEqual(bucket_for(91), "over90")


class BuildAgingTests(SimpleTestCase):
    """
    GUARANTEES:
    - Totals are sums of amount due per bucket
    - Paid, voided and zero-due documents are ignored
    """

    def test_summary_and_parties(self):
        report = build_aging(
            [
                _doc("feedco", 0, "100.00"),
                _doc("feedco", 45, "50.00"),
                _doc("vetpro", 120, "75.25"),
                _doc("vetpro", 10, "999.00", status="PAID"),
                _doc("vetpro", 10, "999.00", status="VOIDED"),
                _doc("hayman", 5, "0.00"),
            ],
            AS_OF,
        )

        summary = report["summary"]
        self.assertEqual(summary["current"], Decimal("100.00"))
        self.assertEqual(summary["days30"], Decimal("0.00"))
        self.assertEqual(summary["days60"], Decimal("50.00"))
        self.assertEqual(summary["over90"], Decimal("75.25"))
        self.assertEqual(summary["total"], Decimal("225.25"))

        parties = report["byVendor"]
        self.assertEqual([p["party_id"] for p in parties], ["feedco", "vetpro"])
        self.assertEqual(parties[0]["count"], 2)
        self.assertEqual(report["as_of"], "2024-06-30")

    def test_details_list_each_open_document(self):
        report = build_aging(
            [
                _doc("feedco", -10, "40.00"),
                _doc("vetpro", 95, "75.25"),
                _doc("vetpro", 10, "999.00", status="PAID"),
            ],
            AS_OF,
        )

        details = report["details"]
        self.assertEqual([d["document_id"] for d in details], ["vetpro-95", "feedco--10"])
        self.assertEqual(details[0]["days_past_due"], 95)
        self.assertEqual(details[0]["bucket"], "over90")
        self.assertEqual(details[0]["amount_due"], Decimal("75.25"))
        self.assertEqual(details[1]["days_past_due"], 0)
        self.assertEqual(details[1]["bucket"], "current")
        self.assertEqual(details[1]["due_date"], "2024-07-10")


class ARAgingTests(TestCase):
    def setUp(self):
        self.chart, _ = ar.seed_farm_chart("ranch-ar")

    def test_open_invoices_by_customer(self):
        CustomerInvoice.objects.create(
            chart=self.chart,
            customer_id="sale-barn",
            customer_name="Sale Barn",
            invoice_number="INV-1",
            due_date=AS_OF - timedelta(days=20),
            total=Decimal("500.00"),
            amount_paid=Decimal("200.00"),
            status=CustomerInvoice.Status.PARTIALLY_PAID,
        )
        CustomerInvoice.objects.create(
            chart=self.chart,
            customer_id="sale-barn",
            customer_name="Sale Barn",
            invoice_number="INV-2",
            due_date=AS_OF,
            total=Decimal("80.00"),
            amount_paid=Decimal("80.00"),
            status=CustomerInvoice.Status.PAID,
        )

        report = get_ar_aging(tenant_id="ranch-ar", as_of=AS_OF)

        self.assertEqual(report["summary"]["days30"], Decimal("300.00"))
        self.assertEqual(report["summary"]["total"], Decimal("300.00"))
        self.assertEqual(report["byCustomer"][0]["party_name"], "Sale Barn")

        [detail] = report["details"]
        self.assertEqual(detail["document_number"], "INV-1")
        self.assertEqual(detail["days_past_due"], 20)
        self.assertEqual(detail["bucket"], "days30")
        self.assertEqual(detail["amount_due"], Decimal("300.00"))
