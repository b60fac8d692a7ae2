import uuid

from django.db import models

from apps.common.text import normalize_key


class InvoiceStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"


class Invoice(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.ForeignKey("shops.Shop", on_delete=models.PROTECT, related_name="invoices")
    created_by = models.ForeignKey(
        "accounts.Employee",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="invoices_created",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    invoice_number = models.CharField(max_length=64)
    invoice_number_lower = models.CharField(max_length=64, blank=True, default="", db_index=True)
    invoice_date = models.DateField()
    reference = models.CharField(max_length=120, blank=True)
    note = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=16, choices=InvoiceStatus.choices, default=InvoiceStatus.ACTIVE)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        "accounts.Employee",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="invoices_cancelled",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-invoice_date", "-created_at"]
        indexes = [
            models.Index(fields=["shop", "invoice_date"], name="invoice_shop_date_idx"),
            models.Index(fields=["status"], name="invoice_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="invoice_amount_positive"),
        ]

    def save(self, *args, **kwargs):
        self.invoice_number = (self.invoice_number or "").strip()
        self.invoice_number_lower = normalize_key(self.invoice_number)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {"invoice_number_lower"}
        super().save(*args, **kwargs)

    def __str__(self):
        return self.invoice_number
