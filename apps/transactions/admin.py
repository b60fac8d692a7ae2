from django.contrib import admin

from apps.transactions.models import Transaction


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "shop", "employee", "amount", "payment_mode", "status", "is_verified")
    list_filter = ("payment_mode", "status", "is_verified")
    search_fields = ("shop__name", "employee__name", "reference")
    readonly_fields = ("amount", "shop", "employee", "status")
