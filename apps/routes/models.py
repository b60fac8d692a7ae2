import uuid

from django.db import models

from apps.common.text import normalize_key


class AssignmentStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class RouteQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)


class Route(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120)
    name_lower = models.CharField(max_length=120, blank=True, default="", db_index=True)
    code = models.CharField(max_length=40, blank=True, default="")
    code_lower = models.CharField(max_length=40, blank=True, default="", db_index=True)
    description = models.CharField(max_length=255, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RouteQuerySet.as_manager()

    class Meta:
        ordering = ["name"]

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        self.code = (self.code or "").strip()
        self.name_lower = normalize_key(self.name)
        self.code_lower = normalize_key(self.code)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {"name_lower", "code_lower"}
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class RouteAssignment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee = models.ForeignKey("accounts.Employee", on_delete=models.PROTECT, related_name="route_assignments")
    route = models.ForeignKey(Route, on_delete=models.PROTECT, related_name="assignments")
    date = models.DateField()
    status = models.CharField(max_length=16, choices=AssignmentStatus.choices, default=AssignmentStatus.ACTIVE)
    assigned_by = models.ForeignKey(
        "accounts.Employee",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="route_assignments_made",
    )
    assigned_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-date", "-assigned_at"]
        indexes = [
            models.Index(fields=["date"], name="assignment_date_idx"),
            models.Index(fields=["employee", "date"], name="assignment_employee_date_idx"),
            models.Index(fields=["route", "date"], name="assignment_route_date_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["employee", "date"],
                condition=models.Q(status="active"),
                name="unique_active_assignment_per_day",
            )
        ]
