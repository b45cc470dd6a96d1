# accounting/api/urls.py

from django.urls import path

from accounting.api.views import (
    AccountBalanceView,
    AccountListCreateView,
    ARAgingView,
    BalanceSheetView,
    IncomeStatementView,
    InvoiceDetailView,
    InvoiceListCreateView,
    InvoicePaymentView,
    InvoiceVoidView,
    JournalEntryListCreateView,
    JournalEntryPostView,
    JournalEntryReverseView,
    TrialBalanceView,
)

urlpatterns = [
    # Master data
    path("accounts/", AccountListCreateView.as_view(), name="accounts"),
    path("accounts/<int:pk>/balance/", AccountBalanceView.as_view(), name="account-balance"),
    # Journal
    path("journal-entries/", JournalEntryListCreateView.as_view(), name="journal-entries"),
    path("journal-entries/<int:pk>/post/", JournalEntryPostView.as_view(), name="journal-entry-post"),
    path("journal-entries/<int:pk>/reverse/", JournalEntryReverseView.as_view(), name="journal-entry-reverse"),
    # Receivables
    path("invoices/", InvoiceListCreateView.as_view(), name="invoices"),
    path("invoices/<int:pk>/", InvoiceDetailView.as_view(), name="invoice-detail"),
    path("invoices/<int:pk>/payments/", InvoicePaymentView.as_view(), name="invoice-payments"),
    path("invoices/<int:pk>/void/", InvoiceVoidView.as_view(), name="invoice-void"),
    # Reports
    path("trial-balance/", TrialBalanceView.as_view(), name="trial-balance"),
    path("ar-aging/", ARAgingView.as_view(), name="ar-aging"),
    path("income-statement/", IncomeStatementView.as_view(), name="income-statement"),
    path("balance-sheet/", BalanceSheetView.as_view(), name="balance-sheet"),
]
