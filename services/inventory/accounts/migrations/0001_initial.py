# Generated manually for initial schema.
from __future__ import annotations

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("display_name", models.CharField(max_length=255)),
                (
                    "role",
                    models.CharField(
                        choices=[("user", "User"), ("admin", "Administrator")],
                        default="user",
                        max_length=16,
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
                ("is_approved", models.BooleanField(default=False)),
                ("is_bootstrap_admin", models.BooleanField(default=False, editable=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["created_at", "id"]},
        ),
        migrations.AddConstraint(
            model_name="account",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_bootstrap_admin", True)),
                fields=("is_bootstrap_admin",),
                name="accounts_single_bootstrap_admin",
            ),
        ),
    ]
