"""Tests for the stock ledger services and API."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from io import BytesIO
from typing import Any
from unittest import mock

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from openpyxl import load_workbook
from rest_framework.test import APIClient

from accounts.models import CUSTOMS, FIELD_ENGINEERING, SMART_CLICK, Account
from inventory_service.exceptions import (
    DuplicateKey,
    InsufficientStock,
    NotFound,
    ValidationError,
)

from . import services
from .export import EXPORT_COLUMNS, XLSX_CONTENT_TYPE, format_export_date
from .models import InventoryItem, generate_barcode


def _add(name: str, part_number: str, quantity: int, **overrides: Any) -> InventoryItem:
    fields = {
        "item_name": name,
        "part_number": part_number,
        "category": InventoryItem.HANDHELD,
        "working_group": SMART_CLICK,
        "quantity": quantity,
    }
    fields.update(overrides)
    return services.add_item(**fields)


class AddItemTests(TestCase):
    def test_generates_barcode_when_missing(self) -> None:
        item = _add("Widget", "PN-100", 4)

        self.assertTrue(item.barcode.startswith("SHV"))
        self.assertEqual(len(item.barcode), 12)
        self.assertTrue(item.barcode[3:].isdigit())
        self.assertIsNotNone(item.last_updated)

    def test_blank_barcode_is_replaced_by_generated_one(self) -> None:
        with mock.patch("stock.services.generate_barcode", return_value="SHV000123042") as generator:
            item = _add("Widget", "PN-100", 4, barcode="")

        generator.assert_called_once_with()
        self.assertEqual(item.barcode, "SHV000123042")

    def test_barcode_layout(self) -> None:
        with mock.patch("stock.models.random.randint", return_value=7):
            barcode = generate_barcode(now_ms=1700000123456)
        self.assertEqual(barcode, "SHV123456007")

    def test_keeps_supplied_barcode(self) -> None:
        item = _add("Widget", "PN-100", 4, barcode="CUSTOM-1")
        self.assertEqual(item.barcode, "CUSTOM-1")

    def test_duplicate_part_number_is_rejected(self) -> None:
        _add("Widget", "PN-100", 4)
        with self.assertRaises(DuplicateKey) as ctx:
            _add("Gadget", "PN-100", 9, category=InventoryItem.RPM, working_group=CUSTOMS)
        self.assertEqual(ctx.exception.identifier, "PN-100")
        self.assertEqual(InventoryItem.objects.count(), 1)

    def test_barcode_collision_is_reported(self) -> None:
        _add("Widget", "PN-100", 4, barcode="SHV000000001")
        with self.assertRaises(DuplicateKey) as ctx:
            _add("Gadget", "PN-200", 1, barcode="SHV000000001")
        self.assertEqual(ctx.exception.identifier, "SHV000000001")

    def test_rejects_values_outside_enumerations(self) -> None:
        with self.assertRaises(ValidationError):
            _add("Widget", "PN-100", 4, category="Furniture")
        with self.assertRaises(ValidationError):
            _add("Widget", "PN-100", 4, working_group="Sales")
        with self.assertRaises(ValidationError):
            _add("Widget", "PN-100", -1)
        self.assertFalse(InventoryItem.objects.exists())

    def test_list_items_keeps_insertion_order(self) -> None:
        names = ["Zeta", "Alpha", "Mid"]
        for index, name in enumerate(names):
            _add(name, f"PN-{index}", 1)
        self.assertEqual([item.item_name for item in services.list_items()], names)


class UpdateItemTests(TestCase):
    def setUp(self) -> None:
        self.item = _add("Widget", "PN-100", 4)

    def test_updates_allowed_fields_and_refreshes_timestamp(self) -> None:
        later = timezone.now() + timedelta(hours=2)
        with mock.patch("django.utils.timezone.now", return_value=later):
            item = services.update_item(
                self.item.pk,
                {"item_name": "Widget Mk2", "quantity": 0, "working_group": FIELD_ENGINEERING},
            )

        item.refresh_from_db()
        self.assertEqual(item.item_name, "Widget Mk2")
        self.assertEqual(item.quantity, 0)
        self.assertEqual(item.working_group, FIELD_ENGINEERING)
        self.assertEqual(item.last_updated, later)

    def test_identifiers_are_immutable(self) -> None:
        for changes in ({"part_number": "PN-999"}, {"barcode": "X"}, {"quantity": 3, "barcode": "X"}):
            with self.assertRaises(ValidationError):
                services.update_item(self.item.pk, changes)

        self.item.refresh_from_db()
        self.assertEqual(self.item.part_number, "PN-100")
        self.assertEqual(self.item.quantity, 4)

    def test_rejects_negative_quantity(self) -> None:
        with self.assertRaises(ValidationError):
            services.update_item(self.item.pk, {"quantity": -2})

    def test_unknown_item(self) -> None:
        with self.assertRaises(NotFound):
            services.update_item(9999, {"quantity": 1})


class CheckoutTests(TestCase):
    def setUp(self) -> None:
        self.widget = _add("Widget", "PN-100", 5)
        self.gadget = _add("Gadget", "PN-200", 10, category=InventoryItem.RPM)

    def _quantity(self, item: InventoryItem) -> int:
        item.refresh_from_db()
        return item.quantity

    def test_deducts_each_entry_in_order(self) -> None:
        results = services.checkout([(self.gadget.pk, 4), (self.widget.pk, 5)])

        self.assertEqual(
            results,
            [
                {"id": self.gadget.pk, "item": "Gadget", "quantity": 4, "remaining": 6},
                {"id": self.widget.pk, "item": "Widget", "quantity": 5, "remaining": 0},
            ],
        )
        self.assertEqual(self._quantity(self.gadget), 6)
        self.assertEqual(self._quantity(self.widget), 0)

    def test_refreshes_last_updated(self) -> None:
        later = timezone.now() + timedelta(minutes=5)
        with mock.patch("django.utils.timezone.now", return_value=later):
            services.checkout([(self.widget.pk, 1)])
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.last_updated, later)

    def test_insufficient_stock_leaves_quantity_untouched(self) -> None:
        self.widget.quantity = 3
        self.widget.save()

        with self.assertRaises(InsufficientStock) as ctx:
            services.checkout([(self.widget.pk, 5)])

        self.assertEqual(ctx.exception.identifier, self.widget.pk)
        self.assertIn("Widget", str(ctx.exception.detail))
        self.assertEqual(self._quantity(self.widget), 3)

    def test_sequential_mode_keeps_earlier_entries(self) -> None:
        with self.assertRaises(InsufficientStock) as ctx:
            services.checkout([(self.widget.pk, 2), (self.gadget.pk, 999)])

        self.assertEqual(ctx.exception.identifier, self.gadget.pk)
        self.assertEqual(
            ctx.exception.extra["completed"],
            [{"id": self.widget.pk, "item": "Widget", "quantity": 2, "remaining": 3}],
        )
        self.assertEqual(self._quantity(self.widget), 3)
        self.assertEqual(self._quantity(self.gadget), 10)

    @override_settings(STOCK_CHECKOUT_MODE="atomic")
    def test_atomic_mode_rolls_back_everything(self) -> None:
        with self.assertRaises(InsufficientStock) as ctx:
            services.checkout([(self.widget.pk, 2), (self.gadget.pk, 999)])

        self.assertEqual(ctx.exception.extra["completed"], [])
        self.assertEqual(self._quantity(self.widget), 5)
        self.assertEqual(self._quantity(self.gadget), 10)

    def test_missing_item_stops_checkout(self) -> None:
        with self.assertRaises(NotFound) as ctx:
            services.checkout([(self.widget.pk, 1), (9999, 1), (self.gadget.pk, 1)])

        self.assertEqual(ctx.exception.identifier, 9999)
        self.assertEqual(self._quantity(self.widget), 4)
        self.assertEqual(self._quantity(self.gadget), 10)

    def test_repeated_item_is_checked_against_current_stock(self) -> None:
        with self.assertRaises(InsufficientStock):
            services.checkout([(self.widget.pk, 3), (self.widget.pk, 3)])
        self.assertEqual(self._quantity(self.widget), 2)

    def test_invalid_quantity_commits_nothing(self) -> None:
        for bad in (0, -1, True, "2"):
            with self.assertRaises(ValidationError):
                services.checkout([(self.widget.pk, 1), (self.gadget.pk, bad)])
        self.assertEqual(self._quantity(self.widget), 5)

    def test_quantities_never_increase(self) -> None:
        before = {item.pk: item.quantity for item in InventoryItem.objects.all()}
        for lines in ([(self.widget.pk, 1)], [(self.gadget.pk, 3), (self.widget.pk, 1)]):
            services.checkout(lines)
        for item in InventoryItem.objects.all():
            self.assertLessEqual(item.quantity, before[item.pk])

    def test_unknown_mode_is_a_programming_error(self) -> None:
        with self.assertRaises(ValueError):
            services.checkout([(self.widget.pk, 1)], mode="eventual")


class ReportingTests(TestCase):
    def setUp(self) -> None:
        self.items = [
            _add("Widget", "PN-100", 3),
            _add("Gadget", "PN-200", 12, category=InventoryItem.RPM, working_group=CUSTOMS),
            _add("Panel", "PN-300", 0, category=InventoryItem.UTILITY_PANEL),
        ]

    def test_export_matches_listing(self) -> None:
        workbook = load_workbook(BytesIO(services.export_snapshot()))
        rows = list(workbook["Inventory"].iter_rows(values_only=True))

        self.assertEqual(list(rows[0]), [header for header, _ in EXPORT_COLUMNS])
        listed = list(services.list_items())
        self.assertEqual(len(rows) - 1, len(listed))
        for row, item in zip(rows[1:], listed):
            self.assertEqual(
                list(row),
                [
                    item.item_name,
                    item.part_number,
                    item.category,
                    item.working_group,
                    item.quantity,
                    item.barcode,
                    format_export_date(item.last_updated),
                ],
            )

    def test_export_of_empty_ledger_has_only_headers(self) -> None:
        InventoryItem.objects.all().delete()
        workbook = load_workbook(BytesIO(services.export_snapshot()))
        self.assertEqual(workbook["Inventory"].max_row, 1)

    def test_export_date_format(self) -> None:
        moment = datetime(2024, 3, 5, 14, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(format_export_date(moment), "3/5/2024")

    def test_summary(self) -> None:
        summary = services.inventory_summary()

        self.assertEqual(summary["total_items"], 3)
        self.assertEqual(summary["low_stock"], 2)
        self.assertEqual(
            summary["by_category"],
            {"RPM": 1, "Utility Panel": 1, "Handheld": 1, "Other": 0},
        )

    def test_summary_threshold_override(self) -> None:
        self.assertEqual(services.inventory_summary(low_stock_threshold=1)["low_stock"], 1)


@override_settings(PASSWORD_HASHERS=["django.contrib.auth.hashers.MD5PasswordHasher"])
class InventoryApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.account = Account.objects.create_account(
            "tech@example.com",
            "Quartz-Lantern-42",
            display_name="Tech",
            working_group=SMART_CLICK,
            is_approved=True,
        )
        self.client.force_authenticate(user=self.account)
        self.payload = {
            "item_name": "Widget",
            "part_number": "PN-100",
            "category": "Handheld",
            "working_group": "Smart Click",
            "quantity": 5,
        }

    def test_requires_authentication(self) -> None:
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse("item-list"))
        self.assertEqual(response.status_code, 401)

    def test_create_and_list_items(self) -> None:
        response = self.client.post(reverse("item-list"), self.payload, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["barcode"].startswith("SHV"))

        response = self.client.get(reverse("item-list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["part_number"], "PN-100")

    def test_duplicate_part_number(self) -> None:
        self.client.post(reverse("item-list"), self.payload, format="json")
        response = self.client.post(
            reverse("item-list"), dict(self.payload, item_name="Other"), format="json"
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "duplicate_key")
        self.assertEqual(response.data["id"], "PN-100")

    def test_create_validates_payload(self) -> None:
        response = self.client.post(
            reverse("item-list"), dict(self.payload, category="Furniture", quantity=-1), format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(set(response.data["errors"]), {"category", "quantity"})

    def test_search_by_barcode_or_part_number(self) -> None:
        _add("Widget", "PN-100", 5, barcode="SHV111111111")
        _add("Gadget", "AB-200", 5)

        response = self.client.get(reverse("item-list"), {"search": "shv111111111"})
        self.assertEqual([entry["item_name"] for entry in response.data], ["Widget"])
        response = self.client.get(reverse("item-list"), {"search": "ab-2"})
        self.assertEqual([entry["item_name"] for entry in response.data], ["Gadget"])

    def test_retrieve_missing_item(self) -> None:
        response = self.client.get(reverse("item-detail", args=[4040]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")

    def test_patch_and_put_update_mutable_fields(self) -> None:
        item = _add("Widget", "PN-100", 5)
        response = self.client.patch(
            reverse("item-detail", args=[item.pk]), {"quantity": 11}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["quantity"], 11)

        response = self.client.put(
            reverse("item-detail", args=[item.pk]), {"item_name": "Widget XL"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["item_name"], "Widget XL")
        self.assertEqual(response.data["quantity"], 11)

    def test_update_rejects_identifier_changes(self) -> None:
        item = _add("Widget", "PN-100", 5)
        response = self.client.patch(
            reverse("item-detail", args=[item.pk]),
            {"part_number": "PN-999", "quantity": 1},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("part_number", response.data["errors"])
        item.refresh_from_db()
        self.assertEqual(item.quantity, 5)

    def test_checkout_success(self) -> None:
        widget = _add("Widget", "PN-100", 5)
        response = self.client.post(
            reverse("item-checkout"),
            {"items": [{"id": widget.pk, "quantity": 2}]},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["message"], "Checkout successful")
        self.assertEqual(response.data["results"][0]["remaining"], 3)

    def test_checkout_partial_failure_reports_committed_lines(self) -> None:
        widget = _add("Widget", "PN-100", 5)
        gadget = _add("Gadget", "PN-200", 10)
        response = self.client.post(
            reverse("item-checkout"),
            {"items": [{"id": widget.pk, "quantity": 2}, {"id": gadget.pk, "quantity": 999}]},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "insufficient_stock")
        self.assertEqual(response.data["id"], gadget.pk)
        self.assertEqual(response.data["completed"][0]["remaining"], 3)
        widget.refresh_from_db()
        self.assertEqual(widget.quantity, 3)

    def test_checkout_rejects_zero_quantity(self) -> None:
        widget = _add("Widget", "PN-100", 5)
        response = self.client.post(
            reverse("item-checkout"),
            {"items": [{"id": widget.pk, "quantity": 0}]},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "validation_error")

    def test_export_download(self) -> None:
        _add("Widget", "PN-100", 5)
        response = self.client.get(reverse("item-export"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], XLSX_CONTENT_TYPE)
        self.assertEqual(response["Content-Disposition"], "attachment; filename=inventory.xlsx")
        rows = list(load_workbook(BytesIO(response.content)).active.iter_rows(values_only=True))
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][1], "PN-100")

    def test_export_ignores_accept_header(self) -> None:
        _add("Widget", "PN-100", 5)
        response = self.client.get(reverse("item-export"), HTTP_ACCEPT=XLSX_CONTENT_TYPE)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], XLSX_CONTENT_TYPE)

    def test_export_requires_authentication(self) -> None:
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse("item-export"), HTTP_ACCEPT=XLSX_CONTENT_TYPE)

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "not_authenticated")

    def test_summary_endpoint(self) -> None:
        _add("Widget", "PN-100", 2)
        response = self.client.get(reverse("item-summary"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["low_stock"], 1)
        self.assertEqual(response.data["by_category"]["Handheld"], 1)
