from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import Employee


@admin.register(Employee)
class EmployeeAdmin(DjangoUserAdmin):
    fieldsets = DjangoUserAdmin.fieldsets + (
        ("PSBook", {"fields": ("name", "phone", "role", "status", "external_user_id", "deleted_at")}),
    )
    list_display = ("username", "name", "email", "role", "status", "external_user_id", "deleted_at")
    list_filter = ("role", "status")
    search_fields = ("username", "name", "email", "external_user_id")
