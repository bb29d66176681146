"""Stock ledger operations: item maintenance, checkout and reporting."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, QuerySet

from inventory_service.exceptions import (
    DuplicateKey,
    InsufficientStock,
    NotFound,
    ValidationError,
)

from .export import build_rows, write_workbook
from .models import InventoryItem, generate_barcode

logger = logging.getLogger(__name__)

SEQUENTIAL = "sequential"
ATOMIC = "atomic"
CHECKOUT_MODES = (SEQUENTIAL, ATOMIC)


def list_items() -> QuerySet[InventoryItem]:
    return InventoryItem.objects.order_by("id")


def get_item(item_id: Any) -> InventoryItem:
    item = InventoryItem.objects.filter(pk=item_id).first()
    if item is None:
        raise NotFound(f"Item {item_id} not found", identifier=item_id)
    return item


def _validate_fields(item: InventoryItem) -> None:
    try:
        item.full_clean(validate_unique=False, validate_constraints=False)
    except DjangoValidationError as exc:
        raise ValidationError(exc.message_dict) from exc


def add_item(
    *,
    item_name: str,
    part_number: str,
    category: str,
    working_group: str,
    quantity: int,
    barcode: Optional[str] = None,
) -> InventoryItem:
    """Create an item, generating a barcode when none is supplied."""

    if InventoryItem.objects.filter(part_number=part_number).exists():
        raise DuplicateKey("Part number already exists", identifier=part_number)

    item = InventoryItem(
        item_name=item_name,
        part_number=part_number,
        category=category,
        working_group=working_group,
        quantity=quantity,
        barcode=barcode or generate_barcode(),
    )
    _validate_fields(item)
    try:
        with transaction.atomic():
            item.save()
    except IntegrityError as exc:
        if InventoryItem.objects.filter(part_number=part_number).exists():
            raise DuplicateKey("Part number already exists", identifier=part_number) from exc
        if InventoryItem.objects.filter(barcode=item.barcode).exists():
            raise DuplicateKey("Barcode already exists", identifier=item.barcode) from exc
        raise

    logger.info("Item %s added as %s with quantity %s", item.pk, item.part_number, item.quantity)
    return item


def update_item(item_id: Any, changes: Mapping[str, Any]) -> InventoryItem:
    """Apply allow-listed field changes; part number and barcode never change."""

    rejected = sorted(set(changes) - set(InventoryItem.MUTABLE_FIELDS))
    if rejected:
        raise ValidationError({field: ["This field cannot be updated."] for field in rejected})

    item = get_item(item_id)
    updated_fields = [field for field in InventoryItem.MUTABLE_FIELDS if field in changes]
    for field in updated_fields:
        setattr(item, field, changes[field])
    _validate_fields(item)
    item.save(update_fields=updated_fields + ["last_updated"])

    logger.info("Item %s updated: %s", item.pk, ", ".join(updated_fields) or "timestamp only")
    return item


def _validated_lines(lines: Sequence[Tuple[Any, Any]]) -> List[Tuple[int, int]]:
    entries: List[Tuple[int, int]] = []
    for index, (item_id, quantity) in enumerate(lines):
        for name, value in (("id", item_id), ("quantity", quantity)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValidationError(
                    {"items": [f"Entry {index}: {name} must be a positive integer."]}
                )
        entries.append((item_id, quantity))
    return entries


def _checkout_entry(
    item_id: int, quantity: int, committed: List[Dict[str, Any]]
) -> Dict[str, Any]:
    with transaction.atomic():
        item = InventoryItem.objects.select_for_update().filter(pk=item_id).first()
        if item is None:
            raise NotFound(
                f"Item {item_id} not found",
                identifier=item_id,
                extra={"completed": list(committed)},
            )
        if item.quantity < quantity:
            raise InsufficientStock(
                f"Insufficient quantity for item {item.item_name}",
                identifier=item.pk,
                extra={"completed": list(committed)},
            )
        item.deduct(quantity)

    logger.info("Checked out %s of item %s, %s remaining", quantity, item.pk, item.quantity)
    return {
        "id": item.pk,
        "item": item.item_name,
        "quantity": quantity,
        "remaining": item.quantity,
    }


def checkout(
    lines: Sequence[Tuple[Any, Any]], *, mode: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Deduct stock for each ``(item_id, quantity)`` pair in order.

    In ``sequential`` mode every entry commits on its own, so a failure leaves
    the earlier entries deducted and the error lists them under ``completed``.
    In ``atomic`` mode a failure rolls the whole request back.
    """

    mode = mode or settings.STOCK_CHECKOUT_MODE
    if mode not in CHECKOUT_MODES:
        raise ValueError(f"Unknown checkout mode: {mode}")
    entries = _validated_lines(lines)

    results: List[Dict[str, Any]] = []
    try:
        if mode == ATOMIC:
            with transaction.atomic():
                for item_id, quantity in entries:
                    results.append(_checkout_entry(item_id, quantity, []))
        else:
            for item_id, quantity in entries:
                results.append(_checkout_entry(item_id, quantity, results))
    except (NotFound, InsufficientStock) as exc:
        logger.warning(
            "Checkout stopped at item %s (%s mode, %s entries committed)",
            exc.identifier,
            mode,
            len(exc.extra.get("completed", [])),
        )
        raise
    return results


def export_snapshot() -> bytes:
    rows = build_rows(list_items())
    content = write_workbook(rows)
    logger.info("Exported %s inventory rows", len(rows))
    return content


def inventory_summary(low_stock_threshold: Optional[int] = None) -> Dict[str, Any]:
    """Totals for the dashboard: item count, low stock count, items per category."""

    if low_stock_threshold is None:
        low_stock_threshold = settings.STOCK_LOW_STOCK_THRESHOLD

    by_category: Dict[str, int] = {value: 0 for value, _ in InventoryItem.CATEGORY_CHOICES}
    for entry in InventoryItem.objects.values("category").order_by().annotate(total=Count("id")):
        category = entry.get("category")
        if category in by_category:
            by_category[category] = int(entry.get("total", 0))

    return {
        "total_items": InventoryItem.objects.count(),
        "low_stock": InventoryItem.objects.filter(quantity__lt=low_stock_threshold).count(),
        "low_stock_threshold": low_stock_threshold,
        "by_category": by_category,
    }
