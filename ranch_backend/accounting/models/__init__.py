# accounting/models/__init__.py

"""
ACCOUNTING MODELS PACKAGE EXPORTS

Note:
- Keep this file *imports-only* (no business logic).
- Do NOT import services from models anywhere (models must stay pure).
"""

from accounting.models.account import Account
from accounting.models.chart import ChartOfAccounts
from accounting.models.customer_invoice import CustomerInvoice, InvoicePayment
from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalLine
from accounting.models.posting_intent import PostingIntent

__all__ = [
    "ChartOfAccounts",
    "Account",
    "JournalEntry",
    "JournalLine",
    "PostingIntent",
    "CustomerInvoice",
    "InvoicePayment",
]
