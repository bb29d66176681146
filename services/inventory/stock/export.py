"""Spreadsheet export of the stock ledger."""
from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any, Callable, Dict, Iterable, List, Tuple

from django.utils import timezone
from openpyxl import Workbook

from .models import InventoryItem

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FILENAME = "inventory.xlsx"
SHEET_TITLE = "Inventory"


def format_export_date(value: datetime) -> str:
    """Render a timestamp the way an en-US locale date string reads (M/D/YYYY)."""

    local = timezone.localtime(value) if timezone.is_aware(value) else value
    return f"{local.month}/{local.day}/{local.year}"


EXPORT_COLUMNS: List[Tuple[str, Callable[[InventoryItem], Any]]] = [
    ("Item Name", lambda item: item.item_name),
    ("Part Number", lambda item: item.part_number),
    ("Category", lambda item: item.category),
    ("Working Group", lambda item: item.working_group),
    ("Quantity", lambda item: item.quantity),
    ("Barcode", lambda item: item.barcode),
    ("Last Updated", lambda item: format_export_date(item.last_updated)),
]


def build_rows(items: Iterable[InventoryItem]) -> List[Dict[str, Any]]:
    return [{header: getter(item) for header, getter in EXPORT_COLUMNS} for item in items]


def write_workbook(rows: Iterable[Dict[str, Any]], sheet_title: str = SHEET_TITLE) -> bytes:
    """Write row mappings to an xlsx workbook, one column per export header."""

    headers = [header for header, _ in EXPORT_COLUMNS]
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_title
    worksheet.append(headers)
    for row in rows:
        worksheet.append([row.get(header) for header in headers])

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
