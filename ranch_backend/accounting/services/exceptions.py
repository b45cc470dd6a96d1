# accounting/services/exceptions.py

"""
LEDGER SERVICE ERRORS

Centralized domain errors shared by every writer of the ledger.

Kinds:
- LedgerValidationError: input rejected, nothing committed, caller fixes input
- LedgerStateError: target already in an incompatible (often terminal) state
- AccountResolutionError: chart is missing a required semantic account

Partial failures are not exceptions: they are returned as
{"posted": False, "partial": True, "message": ...} and persisted on the
PostingIntent for the reprocess operation.
"""


class AccountingServiceError(Exception):
    """Base exception for all ledger engine failures."""


class LedgerValidationError(AccountingServiceError):
    """Input was rejected; no state has been committed."""


class LedgerStateError(AccountingServiceError):
    """The target is in a state that does not allow the request."""


class UnbalancedEntryError(LedgerValidationError):
    """Raised when total debits and credits differ beyond tolerance."""


class InactiveAccountError(LedgerValidationError):
    """Raised when a line references an inactive account."""


class JournalEntryCreationError(LedgerValidationError):
    """Raised when journal lines are malformed."""


class AlreadyReversedError(LedgerStateError):
    """Raised when reversing an entry that already has a reversal."""


class InvalidTransitionError(LedgerStateError):
    """Raised on a lifecycle transition the document does not allow."""


class AlreadyVoidedError(LedgerStateError):
    """Raised when voiding an event or document that is already voided."""


class AccountResolutionError(AccountingServiceError):
    """Raised when an expected account cannot be resolved."""


class IdempotencyError(AccountingServiceError):
    """Raised on duplicate or retried postings for the same reference."""


class EntryNotDraftError(InvalidTransitionError):
    """Raised when posting an entry that is no longer DRAFT."""


class DocumentNotFoundError(AccountingServiceError):
    """Raised when the target document does not exist for the tenant."""


class OverCollectionError(LedgerValidationError):
    """Raised when a customer payment exceeds the invoice's amount due."""
