import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("shops", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BalanceAuditLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("previous_balance", models.DecimalField(decimal_places=2, max_digits=12)),
                ("new_balance", models.DecimalField(decimal_places=2, max_digits=12)),
                ("change_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "change_type",
                    models.CharField(
                        choices=[
                            ("collection", "Collection"),
                            ("invoice", "Invoice"),
                            ("invoice_cancel", "Invoice Cancel"),
                            ("adjustment", "Adjustment"),
                            ("reversal", "Reversal"),
                        ],
                        max_length=20,
                    ),
                ),
                ("reference_type", models.CharField(blank=True, max_length=32)),
                ("reference_id", models.CharField(blank=True, max_length=64)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "changed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="balance_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="shops.shop",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["shop", "created_at"], name="ledger_shop_created_idx"),
                    models.Index(fields=["reference_type", "reference_id"], name="ledger_reference_idx"),
                ],
            },
        ),
    ]
