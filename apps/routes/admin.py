from django.contrib import admin

from apps.routes.models import Route, RouteAssignment


@admin.register(Route)
class RouteAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "description", "deleted_at", "created_at")
    search_fields = ("name", "code")
    readonly_fields = ("name_lower", "code_lower")


@admin.register(RouteAssignment)
class RouteAssignmentAdmin(admin.ModelAdmin):
    list_display = ("date", "employee", "route", "status", "assigned_at")
    list_filter = ("status", "date")
    search_fields = ("employee__name", "route__name")
