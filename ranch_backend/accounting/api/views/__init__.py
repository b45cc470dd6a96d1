# accounting/api/views/__init__.py

from accounting.api.views.accounts import AccountBalanceView, AccountListCreateView
from accounting.api.views.journal_entries import (
    JournalEntryListCreateView,
    JournalEntryPostView,
    JournalEntryReverseView,
)
from accounting.api.views.invoices import (
    InvoiceDetailView,
    InvoiceListCreateView,
    InvoicePaymentView,
    InvoiceVoidView,
)
from accounting.api.views.reports import (
    ARAgingView,
    BalanceSheetView,
    IncomeStatementView,
    TrialBalanceView,
)

__all__ = [
    "AccountListCreateView",
    "AccountBalanceView",
    "JournalEntryListCreateView",
    "JournalEntryPostView",
    "JournalEntryReverseView",
    "TrialBalanceView",
    "ARAgingView",
    "IncomeStatementView",
    "BalanceSheetView",
    "InvoiceListCreateView",
    "InvoiceDetailView",
    "InvoicePaymentView",
    "InvoiceVoidView",
]
