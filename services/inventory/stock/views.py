"""API views for the stock ledger."""
from __future__ import annotations

from django.http import HttpResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import SearchFilter
from rest_framework.negotiation import BaseContentNegotiation
from rest_framework.request import Request
from rest_framework.response import Response

from . import services
from .export import EXPORT_FILENAME, XLSX_CONTENT_TYPE
from .serializers import (
    CheckoutRequestSerializer,
    InventoryItemCreateSerializer,
    InventoryItemSerializer,
    InventoryItemUpdateSerializer,
)


class IgnoreClientContentNegotiation(BaseContentNegotiation):
    """Always use the first renderer; the export is a file whatever the client asks for."""

    def select_parser(self, request, parsers):
        return parsers[0]

    def select_renderer(self, request, renderers, format_suffix=None):
        return (renderers[0], renderers[0].media_type)


class InventoryItemViewSet(
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = InventoryItemSerializer
    filter_backends = [SearchFilter]
    search_fields = ["item_name", "part_number", "barcode"]
    lookup_value_regex = r"\d+"

    def get_queryset(self):  # type: ignore[override]
        return services.list_items()

    def retrieve(self, request: Request, *args, **kwargs):  # type: ignore[override]
        item = services.get_item(int(kwargs["pk"]))
        return Response(self.get_serializer(item).data)

    def create(self, request: Request, *args, **kwargs):  # type: ignore[override]
        payload_serializer = InventoryItemCreateSerializer(data=request.data)
        payload_serializer.is_valid(raise_exception=True)
        item = services.add_item(**payload_serializer.validated_data)
        return Response(self.get_serializer(item).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs):  # type: ignore[override]
        payload_serializer = InventoryItemUpdateSerializer(data=request.data)
        payload_serializer.is_valid(raise_exception=True)
        item = services.update_item(int(kwargs["pk"]), payload_serializer.validated_data)
        return Response(self.get_serializer(item).data)

    def partial_update(self, request: Request, *args, **kwargs):  # type: ignore[override]
        return self.update(request, *args, **kwargs)

    @action(detail=False, methods=["post"], url_path="checkout")
    def checkout(self, request: Request) -> Response:
        """Deduct stock for every requested line, in order."""

        payload_serializer = CheckoutRequestSerializer(data=request.data)
        payload_serializer.is_valid(raise_exception=True)
        lines = [
            (line["id"], line["quantity"])
            for line in payload_serializer.validated_data["items"]
        ]
        results = services.checkout(lines)
        return Response({"message": "Checkout successful", "results": results})

    @action(
        detail=False,
        methods=["get"],
        url_path="export",
        content_negotiation_class=IgnoreClientContentNegotiation,
    )
    def export(self, request: Request) -> HttpResponse:
        response = HttpResponse(services.export_snapshot(), content_type=XLSX_CONTENT_TYPE)
        response["Content-Disposition"] = f"attachment; filename={EXPORT_FILENAME}"
        return response

    @action(detail=False, methods=["get"], url_path="summary")
    def summary(self, request: Request) -> Response:
        return Response(services.inventory_summary())
