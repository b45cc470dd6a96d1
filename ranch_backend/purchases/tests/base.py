# purchases/tests/base.py

from decimal import Decimal

from accounting.services import account_resolver as ar
from accounting.services.balance_service import get_balance
from inventory.models import InventoryItem, SiteInventory
from purchases.models import Vendor
from purchases.services.order_service import create_purchase_order, send_purchase_order
from purchases.services.receiving_service import create_receipt, post_receipt

TENANT = "ranch-p2p"
SITE = "home-place"


class PurchasingTestMixin:
    def setUp(self):
        self.chart, _ = ar.seed_farm_chart(TENANT)
        self.vendor = Vendor.objects.create(tenant_id=TENANT, name="Valley Feed", payment_terms_days=30)
        self.alfalfa = InventoryItem.objects.create(
            tenant_id=TENANT,
            name="Alfalfa Pellets",
            unit="bag",
            category=InventoryItem.Category.FEED,
            default_unit_cost=Decimal("8.00"),
        )

    def balance(self, subtype):
        account = ar.resolve_account(self.chart, subtype)
        return get_balance(tenant_id=TENANT, account_id=account.pk)

    def on_hand(self, item=None):
        row = SiteInventory.objects.filter(item=item or self.alfalfa, site_id=SITE).first()
        return row.quantity if row else Decimal("0")

    def sent_po(self, qty="100", unit_price="8.00"):
        po = create_purchase_order(
            tenant_id=TENANT,
            site_id=SITE,
            vendor_id=self.vendor.pk,
            lines=[{"item_id": self.alfalfa.pk, "qty_ordered": qty, "unit_price": unit_price}],
        )
        return send_purchase_order(purchase_order_id=po.pk)

    def received(self, po, qty="100", unit_cost=None):
        line = {"po_line_number": 1, "qty_received": qty}
        if unit_cost is not None:
            line["unit_cost"] = unit_cost
        receipt = create_receipt(purchase_order_id=po.pk, lines=[line])
        post_receipt(receipt_id=receipt.pk)
        receipt.refresh_from_db()
        return receipt
