# events/admin.py

from django.contrib import admin

from events.models import Event


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("id", "event_date", "event_type", "site_id", "status", "posting_status", "total_cost", "posted_cost")
    list_filter = ("event_type", "status", "posting_status")
    search_fields = ("tenant_id", "site_id", "description", "group_id")
    readonly_fields = (
        "posting_status",
        "total_quantity",
        "total_cost",
        "posted_cost",
        "journal_entry",
        "last_error",
        "posted_at",
        "voided_at",
    )
