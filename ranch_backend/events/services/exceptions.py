# events/services/exceptions.py

"""
EVENT SERVICE ERRORS
"""

from accounting.services.exceptions import LedgerValidationError


class PayloadValidationError(LedgerValidationError):
    """Raised when an event payload does not fit its event type."""
