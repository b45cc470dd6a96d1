# inventory/tests/test_valuation.py

from decimal import Decimal

from django.test import TestCase

from inventory.models import InventoryItem, InventoryMovement, SiteInventory
from inventory.services.exceptions import InsufficientQuantityError, InventoryError
from inventory.services.valuation import (
    adjust_inventory,
    consume_inventory,
    list_below_reorder_point,
    receive_inventory,
    reverse_movement,
    transfer_inventory,
)

TENANT = "ranch-inv"
SITE = "north-pasture"


class MovingAverageTests(TestCase):
    """
    Moving-average valuation per (item, site).

    GUARANTEES:
    - Inbound stock re-weights the average cost
    - Outbound stock leaves the average unchanged
    - Quantity on hand never goes negative
    """

    def setUp(self):
        self.hay = InventoryItem.objects.create(
            tenant_id=TENANT,
            name="Grass Hay",
            unit="bale",
            category=InventoryItem.Category.FEED,
            default_unit_cost=Decimal("2.50"),
            reorder_point=Decimal("40"),
        )

    def _row(self, site=SITE):
        return SiteInventory.objects.get(item=self.hay, site_id=site)

    def test_weighted_average_on_receipts(self):
        receive_inventory(item=self.hay, site_id=SITE, quantity="100", unit_cost="2.00")
        receive_inventory(item=self.hay, site_id=SITE, quantity="50", unit_cost="5.00")

        row = self._row()
        self.assertEqual(row.quantity, Decimal("150.000"))
        self.assertEqual(row.average_cost, Decimal("3.000000"))
        self.assertEqual(row.total_value, Decimal("450.00"))

    def test_consumption_at_average_cost(self):
        receive_inventory(item=self.hay, site_id=SITE, quantity="100", unit_cost="2.00")
        receive_inventory(item=self.hay, site_id=SITE, quantity="50", unit_cost="5.00")

        movement = consume_inventory(item=self.hay, site_id=SITE, quantity="30")

        self.assertEqual(movement.quantity, Decimal("-30.000"))
        self.assertEqual(movement.unit_cost, Decimal("3.000000"))
        self.assertEqual(movement.total_cost, Decimal("-90.00"))
        row = self._row()
        self.assertEqual(row.quantity, Decimal("120.000"))
        self.assertEqual(row.average_cost, Decimal("3.000000"))

    def test_over_consumption_commits_nothing(self):
        receive_inventory(item=self.hay, site_id=SITE, quantity="100", unit_cost="2.00")

        with self.assertRaises(InsufficientQuantityError):
            consume_inventory(item=self.hay, site_id=SITE, quantity="120")

        self.assertEqual(self._row().quantity, Decimal("100.000"))
        self.assertFalse(InventoryMovement.objects.filter(item=self.hay, quantity__lt=0).exists())

    def test_zero_quantity_rejected(self):
        with self.assertRaises(InventoryError):
            receive_inventory(item=self.hay, site_id=SITE, quantity="0", unit_cost="1.00")

    def test_negative_adjustment_uses_average(self):
        receive_inventory(item=self.hay, site_id=SITE, quantity="10", unit_cost="4.00")
        movement = adjust_inventory(item=self.hay, site_id=SITE, quantity_delta="-2", unit_cost="99")

        self.assertEqual(movement.unit_cost, Decimal("4.000000"))
        self.assertEqual(self._row().quantity, Decimal("8.000"))

    def test_transfer_carries_cost_to_destination(self):
        receive_inventory(item=self.hay, site_id=SITE, quantity="20", unit_cost="3.00")
        receive_inventory(item=self.hay, site_id="south-barn", quantity="10", unit_cost="6.00")

        out_m, in_m = transfer_inventory(item=self.hay, from_site_id=SITE, to_site_id="south-barn", quantity="10")

        self.assertEqual(out_m.movement_type, InventoryMovement.MovementType.TRANSFER_OUT)
        self.assertEqual(in_m.unit_cost, Decimal("3.000000"))
        self.assertEqual(self._row().quantity, Decimal("10.000"))
        dest = self._row("south-barn")
        self.assertEqual(dest.quantity, Decimal("20.000"))
        self.assertEqual(dest.average_cost, Decimal("4.500000"))

    def test_transfer_to_same_site_rejected(self):
        with self.assertRaises(InventoryError):
            transfer_inventory(item=self.hay, from_site_id=SITE, to_site_id=SITE, quantity="1")

    # =====================================================
    # COMPENSATING MOVEMENTS
    # =====================================================

    def test_reverse_inbound_removes_its_value(self):
        receive_inventory(item=self.hay, site_id=SITE, quantity="100", unit_cost="2.00")
        second = receive_inventory(item=self.hay, site_id=SITE, quantity="50", unit_cost="5.00")

        reverse_movement(movement=second)

        row = self._row()
        self.assertEqual(row.quantity, Decimal("100.000"))
        self.assertEqual(row.average_cost, Decimal("2.000000"))

    def test_reverse_twice_rejected(self):
        movement = receive_inventory(item=self.hay, site_id=SITE, quantity="5", unit_cost="2.00")
        reverse_movement(movement=movement)
        with self.assertRaises(InventoryError):
            reverse_movement(movement=movement)

    def test_reverse_after_consumption_fails(self):
        movement = receive_inventory(item=self.hay, site_id=SITE, quantity="10", unit_cost="2.00")
        consume_inventory(item=self.hay, site_id=SITE, quantity="8")

        with self.assertRaises(InsufficientQuantityError):
            reverse_movement(movement=movement)
        self.assertEqual(self._row().quantity, Decimal("2.000"))

    # =====================================================
    # REORDER POINT
    # =====================================================

    def test_below_reorder_point_is_derived(self):
        receive_inventory(item=self.hay, site_id=SITE, quantity="60", unit_cost="2.00")
        self.assertEqual(list_below_reorder_point(tenant_id=TENANT), [])

        consume_inventory(item=self.hay, site_id=SITE, quantity="20")
        below = list_below_reorder_point(tenant_id=TENANT)
        self.assertEqual([r.site_id for r in below], [SITE])

    def test_site_override_of_reorder_point(self):
        receive_inventory(item=self.hay, site_id=SITE, quantity="30", unit_cost="2.00")
        row = self._row()
        row.reorder_point = Decimal("10")
        row.save()
        self.assertFalse(row.is_below_reorder_point)
