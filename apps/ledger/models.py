import uuid

from django.db import models


class ChangeType(models.TextChoices):
    COLLECTION = "collection", "Collection"
    INVOICE = "invoice", "Invoice"
    INVOICE_CANCEL = "invoice_cancel", "Invoice Cancel"
    ADJUSTMENT = "adjustment", "Adjustment"
    REVERSAL = "reversal", "Reversal"


class BalanceAuditLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.ForeignKey("shops.Shop", on_delete=models.PROTECT, related_name="ledger_entries")
    previous_balance = models.DecimalField(max_digits=12, decimal_places=2)
    new_balance = models.DecimalField(max_digits=12, decimal_places=2)
    change_amount = models.DecimalField(max_digits=12, decimal_places=2)
    change_type = models.CharField(max_length=20, choices=ChangeType.choices)
    reference_type = models.CharField(max_length=32, blank=True)
    reference_id = models.CharField(max_length=64, blank=True)
    changed_by = models.ForeignKey(
        "accounts.Employee",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="balance_changes",
    )
    note = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["shop", "created_at"], name="ledger_shop_created_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="ledger_reference_idx"),
        ]

    def __str__(self):
        return f"{self.shop_id} {self.change_type} {self.change_amount}"
