"""Route registration for account endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AccountViewSet, health, login, register

router = DefaultRouter()
router.register("accounts", AccountViewSet, basename="account")

urlpatterns = [
    path("healthz/", health, name="inventory-health"),
    path("auth/register/", register, name="auth-register"),
    path("auth/login/", login, name="auth-login"),
    path("", include(router.urls)),
]
