from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin  # pyright: ignore[reportMissingImports]

from .models import Invoice, InvoiceItem


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    autocomplete_fields = ("product",)


@admin.register(Invoice)
class InvoiceAdmin(SimpleHistoryAdmin):
    list_display = ("invoice_number", "status", "subtotal", "total_amount", "issue_date")
    list_filter = ("status",)
    search_fields = ("invoice_number",)
    inlines = [InvoiceItemInline]
