from django.contrib import admin

from apps.shops.models import Shop


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "zone", "route", "current_balance", "last_collection_date", "deleted_at")
    search_fields = ("name", "code", "address")
    list_filter = ("zone", "route")
    readonly_fields = ("current_balance", "name_lower", "code_lower")
