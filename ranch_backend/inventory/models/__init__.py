# inventory/models/__init__.py

from inventory.models.item import InventoryItem
from inventory.models.movement import InventoryMovement
from inventory.models.site_inventory import SiteInventory

__all__ = [
    "InventoryItem",
    "SiteInventory",
    "InventoryMovement",
]
