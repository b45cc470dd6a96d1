# accounting/api/serializers/__init__.py

from accounting.api.serializers.accounts import AccountCreateSerializer, AccountSerializer
from accounting.api.serializers.journal_entries import (
    JournalEntryCreateSerializer,
    JournalEntryReverseSerializer,
    JournalEntrySerializer,
)
from accounting.api.serializers.invoices import (
    CustomerInvoiceCreateSerializer,
    CustomerInvoiceSerializer,
    InvoicePaymentCreateSerializer,
    InvoicePaymentSerializer,
)

__all__ = [
    "AccountSerializer",
    "AccountCreateSerializer",
    "JournalEntrySerializer",
    "JournalEntryCreateSerializer",
    "JournalEntryReverseSerializer",
    "CustomerInvoiceSerializer",
    "CustomerInvoiceCreateSerializer",
    "InvoicePaymentSerializer",
    "InvoicePaymentCreateSerializer",
]
