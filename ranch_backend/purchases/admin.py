# purchases/admin.py

from django.contrib import admin

from purchases.models import (
    Bill,
    BillLine,
    Payment,
    PurchaseOrder,
    PurchaseOrderLine,
    Receipt,
    ReceiptLine,
    Requisition,
    RequisitionLine,
    Vendor,
)


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("name", "tenant_id", "phone", "email", "payment_terms_days", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "email", "tenant_id")


class RequisitionLineInline(admin.TabularInline):
    model = RequisitionLine
    extra = 0


@admin.register(Requisition)
class RequisitionAdmin(admin.ModelAdmin):
    list_display = ("number", "site_id", "status", "source", "requested_by", "created_at")
    list_filter = ("status", "source")
    search_fields = ("number", "requested_by")
    inlines = [RequisitionLineInline]


class PurchaseOrderLineInline(admin.TabularInline):
    model = PurchaseOrderLine
    extra = 0
    readonly_fields = ("qty_received",)


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ("number", "vendor", "site_id", "status", "order_date", "expected_date")
    list_filter = ("status",)
    search_fields = ("number", "vendor__name")
    inlines = [PurchaseOrderLineInline]


class ReceiptLineInline(admin.TabularInline):
    model = ReceiptLine
    extra = 0


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = ("number", "purchase_order", "site_id", "receipt_date", "status", "posted_at")
    list_filter = ("status",)
    search_fields = ("number", "purchase_order__number")
    readonly_fields = ("status", "journal_entry", "last_error", "posted_at")
    inlines = [ReceiptLineInline]


class BillLineInline(admin.TabularInline):
    model = BillLine
    extra = 0


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ("number", "vendor", "bill_date", "due_date", "status", "match_status", "total", "amount_paid")
    list_filter = ("status", "match_status")
    search_fields = ("number", "vendor__name", "vendor_invoice_number")
    readonly_fields = ("status", "match_status", "variance_amount", "amount_paid", "journal_entry", "approved_at", "voided_at")
    inlines = [BillLineInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("number", "bill", "payment_date", "amount", "method", "reference")
    list_filter = ("method",)
    search_fields = ("number", "bill__number", "reference")
    readonly_fields = ("journal_entry",)
