import uuid

from django.db import models
from django.utils import timezone


class PaymentMode(models.TextChoices):
    CASH = "cash", "Cash"
    UPI = "upi", "UPI"
    CHEQUE = "cheque", "Cheque"


class TransactionStatus(models.TextChoices):
    COMPLETED = "completed", "Completed"
    ADJUSTED = "adjusted", "Adjusted"
    REVERSED = "reversed", "Reversed"


class Transaction(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.ForeignKey("shops.Shop", on_delete=models.PROTECT, related_name="transactions")
    employee = models.ForeignKey("accounts.Employee", on_delete=models.PROTECT, related_name="transactions")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_mode = models.CharField(max_length=16, choices=PaymentMode.choices)
    reference = models.CharField(max_length=120, blank=True)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)
    status = models.CharField(max_length=16, choices=TransactionStatus.choices, default=TransactionStatus.COMPLETED)
    is_verified = models.BooleanField(default=False)
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        "accounts.Employee",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="verified_transactions",
    )
    reversed_at = models.DateTimeField(null=True, blank=True)
    reversed_by = models.ForeignKey(
        "accounts.Employee",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="reversed_transactions",
    )
    reverse_reason = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["timestamp"], name="txn_timestamp_idx"),
            models.Index(fields=["employee", "timestamp"], name="txn_employee_ts_idx"),
            models.Index(fields=["shop", "timestamp"], name="txn_shop_ts_idx"),
            models.Index(fields=["employee", "is_verified"], name="txn_employee_verified_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="txn_amount_positive"),
        ]

    def __str__(self):
        return f"{self.payment_mode} {self.amount} @ {self.shop_id}"
