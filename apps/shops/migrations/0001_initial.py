import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("routes", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Shop",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("name_lower", models.CharField(blank=True, db_index=True, default="", max_length=255)),
                ("code", models.CharField(blank=True, default="", max_length=40)),
                ("code_lower", models.CharField(blank=True, db_index=True, default="", max_length=40)),
                ("address", models.CharField(max_length=255)),
                ("phone", models.CharField(blank=True, max_length=50)),
                ("zone", models.CharField(max_length=120)),
                ("current_balance", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("last_collection_date", models.DateTimeField(blank=True, null=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "route",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="shops",
                        to="routes.route",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["zone"], name="shop_zone_idx"),
                    models.Index(fields=["deleted_at"], name="shop_deleted_idx"),
                ],
            },
        ),
    ]
