from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models
from django.utils import timezone


class EmployeeRole(models.TextChoices):
    FIELD_STAFF = "field_staff", "Field Staff"
    ADMIN = "admin", "Admin"
    SUPER_ADMIN = "super_admin", "Super Admin"


class EmployeeStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


def normalize_email(value):
    return str(value or "").strip().lower()


class EmployeeManager(UserManager):
    def alive(self):
        return self.get_queryset().filter(deleted_at__isnull=True)


class Employee(AbstractUser):
    name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(unique=True, null=True, blank=True)
    phone = models.CharField(max_length=50, blank=True)
    role = models.CharField(max_length=20, choices=EmployeeRole.choices, default=EmployeeRole.FIELD_STAFF)
    status = models.CharField(max_length=16, choices=EmployeeStatus.choices, default=EmployeeStatus.ACTIVE)
    external_user_id = models.CharField(max_length=255, unique=True, null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = EmployeeManager()

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="employee_status_idx"),
            models.Index(fields=["deleted_at"], name="employee_deleted_idx"),
        ]

    def save(self, *args, **kwargs):
        self.email = normalize_email(self.email) or None
        if not self.username:
            self.username = self.email
        if not self.name:
            self.name = self.get_full_name() or self.username
        self.is_active = self.status == EmployeeStatus.ACTIVE and self.deleted_at is None
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and ("status" in update_fields or "deleted_at" in update_fields):
            kwargs["update_fields"] = set(update_fields) | {"is_active"}
        super().save(*args, **kwargs)

    @property
    def is_protected(self):
        return self.role == EmployeeRole.SUPER_ADMIN

    def soft_delete(self):
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at"])

    def __str__(self):
        return f"{self.name} <{self.email}>"
