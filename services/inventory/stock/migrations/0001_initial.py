# Generated manually for initial schema.
from __future__ import annotations

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="InventoryItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_name", models.CharField(max_length=255)),
                ("part_number", models.CharField(max_length=64, unique=True)),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("RPM", "RPM"),
                            ("Utility Panel", "Utility Panel"),
                            ("Handheld", "Handheld"),
                            ("Other", "Other"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "working_group",
                    models.CharField(
                        choices=[
                            ("Smart Click", "Smart Click"),
                            ("F.E.", "Field Engineering"),
                            ("Customs", "Customs"),
                        ],
                        max_length=32,
                    ),
                ),
                ("quantity", models.PositiveIntegerField(default=0)),
                ("barcode", models.CharField(max_length=32, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("last_updated", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["id"]},
        ),
    ]
