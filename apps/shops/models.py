import uuid

from django.db import models

from apps.common.text import normalize_key


class ShopQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)


class Shop(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    name_lower = models.CharField(max_length=255, blank=True, default="", db_index=True)
    code = models.CharField(max_length=40, blank=True, default="")
    code_lower = models.CharField(max_length=40, blank=True, default="", db_index=True)
    address = models.CharField(max_length=255)
    phone = models.CharField(max_length=50, blank=True)
    zone = models.CharField(max_length=120)
    # Written only by apps.ledger.services.apply_balance_change.
    current_balance = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    route = models.ForeignKey("routes.Route", null=True, blank=True, on_delete=models.SET_NULL, related_name="shops")
    last_collection_date = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ShopQuerySet.as_manager()

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["zone"], name="shop_zone_idx"),
            models.Index(fields=["deleted_at"], name="shop_deleted_idx"),
        ]

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        self.code = (self.code or "").strip()
        self.zone = (self.zone or "").strip()
        self.name_lower = normalize_key(self.name)
        self.code_lower = normalize_key(self.code)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {"name_lower", "code_lower"}
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name
