from django.contrib import admin

from apps.invoices.models import Invoice


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "shop", "amount", "invoice_date", "status", "created_by")
    list_filter = ("status", "invoice_date")
    search_fields = ("invoice_number", "reference", "shop__name")
    readonly_fields = ("amount", "status", "invoice_number_lower")
