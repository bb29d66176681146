"""Database models for the stock ledger."""
from __future__ import annotations

import random
import time
from typing import Optional

from django.db import models

from accounts.models import WORKING_GROUP_CHOICES

BARCODE_PREFIX = "SHV"


def generate_barcode(now_ms: Optional[int] = None) -> str:
    """Build ``SHV`` + last six digits of the millisecond clock + three random digits.

    Distinct in practice but not guaranteed; a clash is reported by the unique
    index on ``barcode``.
    """

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = random.randint(0, 999)
    return f"{BARCODE_PREFIX}{str(now_ms)[-6:]}{suffix:03d}"


class InventoryItem(models.Model):
    """A stocked part tracked by part number and barcode."""

    RPM = "RPM"
    UTILITY_PANEL = "Utility Panel"
    HANDHELD = "Handheld"
    OTHER = "Other"

    CATEGORY_CHOICES = [
        (RPM, "RPM"),
        (UTILITY_PANEL, "Utility Panel"),
        (HANDHELD, "Handheld"),
        (OTHER, "Other"),
    ]

    MUTABLE_FIELDS = ("item_name", "category", "working_group", "quantity")

    item_name = models.CharField(max_length=255)
    part_number = models.CharField(max_length=64, unique=True)
    category = models.CharField(max_length=32, choices=CATEGORY_CHOICES)
    working_group = models.CharField(max_length=32, choices=WORKING_GROUP_CHOICES)
    quantity = models.PositiveIntegerField(default=0)
    barcode = models.CharField(max_length=32, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    last_updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.item_name} ({self.part_number})"

    def deduct(self, quantity: int) -> None:
        self.quantity -= quantity
        self.save(update_fields=["quantity", "last_updated"])
