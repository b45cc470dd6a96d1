# inventory/services/exceptions.py

"""
INVENTORY SERVICE ERRORS
"""

from accounting.services.exceptions import LedgerValidationError


class InventoryError(LedgerValidationError):
    """Base error for rejected inventory movements."""


class InsufficientQuantityError(InventoryError):
    """Raised when an outbound movement would drive quantity on hand below zero."""
