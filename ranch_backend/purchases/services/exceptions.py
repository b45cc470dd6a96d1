# purchases/services/exceptions.py

"""
PURCHASE-TO-PAY ERRORS

All of them are validation errors: the request is rejected and nothing
is committed. Lifecycle violations reuse InvalidTransitionError.
"""

from accounting.services.exceptions import LedgerValidationError


class PurchasingError(LedgerValidationError):
    """Malformed purchasing document or line."""


class OverReceiptError(PurchasingError):
    """Receipt quantity exceeds what remains open on the PO line."""


class OverPaymentError(PurchasingError):
    """Payment amount exceeds the bill's amount due."""


class OverBillingError(PurchasingError):
    """Bill quantity exceeds what was received and is not yet billed."""
