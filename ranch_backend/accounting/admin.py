# accounting/admin.py

from django.contrib import admin

from accounting.models.account import Account
from accounting.models.chart import ChartOfAccounts
from accounting.models.customer_invoice import CustomerInvoice, InvoicePayment
from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalLine
from accounting.models.posting_intent import PostingIntent


class ReadOnlyAdmin(admin.ModelAdmin):
    """Ledger rows only change through the posting services."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ============================================================
# CHART OF ACCOUNTS
# ============================================================


@admin.register(ChartOfAccounts)
class ChartOfAccountsAdmin(admin.ModelAdmin):
    list_display = ("tenant_id", "name", "created_at", "updated_at")
    search_fields = ("tenant_id", "name")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("tenant_id",)


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "account_type", "subtype", "chart", "is_system", "is_active")
    list_filter = ("account_type", "is_system", "is_active", "chart")
    search_fields = ("code", "name", "subtype")
    ordering = ("chart", "code")
    readonly_fields = ("created_at", "updated_at")

    fieldsets = (
        ("Account Identity", {"fields": ("chart", "code", "name", "account_type", "normal_balance", "subtype")}),
        ("Status", {"fields": ("is_system", "is_active")}),
        ("System Fields", {"fields": ("created_at", "updated_at")}),
    )


# ============================================================
# JOURNAL (READ-ONLY)
# ============================================================


class JournalLineInline(admin.TabularInline):
    model = JournalLine
    extra = 0
    can_delete = False
    fields = ("line_number", "account", "debit", "credit", "description")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JournalEntry)
class JournalEntryAdmin(ReadOnlyAdmin):
    list_display = ("id", "entry_date", "memo", "reference", "status", "source_type", "posted_at")
    list_filter = ("status", "source_type", "chart")
    search_fields = ("memo", "reference", "source_id")
    ordering = ("-entry_date", "-id")
    inlines = [JournalLineInline]


@admin.register(PostingIntent)
class PostingIntentAdmin(ReadOnlyAdmin):
    list_display = (
        "source_type",
        "source_id",
        "status",
        "quantities_done",
        "inventory_done",
        "ledger_done",
        "attempts",
        "updated_at",
    )
    list_filter = ("status", "source_type")
    search_fields = ("source_id", "last_error")


@admin.register(CustomerInvoice)
class CustomerInvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "customer_name", "invoice_date", "due_date", "total", "amount_paid", "status")
    list_filter = ("status",)
    search_fields = ("invoice_number", "customer_name")
    readonly_fields = ("amount_paid", "journal_entry", "source_type", "source_id", "voided_at")


@admin.register(InvoicePayment)
class InvoicePaymentAdmin(ReadOnlyAdmin):
    list_display = ("invoice", "amount", "method", "payment_date", "reference", "journal_entry")
    list_filter = ("method",)
    search_fields = ("invoice__invoice_number", "reference")
