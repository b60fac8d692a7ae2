from django.contrib import admin

from apps.ledger.models import BalanceAuditLog


@admin.register(BalanceAuditLog)
class BalanceAuditLogAdmin(admin.ModelAdmin):
    list_display = (
        "shop",
        "change_type",
        "previous_balance",
        "change_amount",
        "new_balance",
        "reference_type",
        "reference_id",
        "changed_by",
        "created_at",
    )
    search_fields = ("shop__name", "reference_type", "reference_id", "note")
    list_filter = ("change_type",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
