from django.contrib import admin

from apps.settlements.models import DailyReconciliation, Settlement


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    list_display = ("employee", "expected_amount", "received_amount", "variance", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("employee__name", "note")
    filter_horizontal = ("transactions",)


@admin.register(DailyReconciliation)
class DailyReconciliationAdmin(admin.ModelAdmin):
    list_display = ("date", "employee", "expected_cash", "actual_cash", "variance", "status")
    list_filter = ("status", "date")
    search_fields = ("employee__name",)
