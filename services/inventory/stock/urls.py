"""Route registration for stock ledger endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import InventoryItemViewSet

router = SimpleRouter()
router.register("inventory", InventoryItemViewSet, basename="item")

urlpatterns = [
    path("", include(router.urls)),
]
