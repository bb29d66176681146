"""URL configuration for the inventory service."""
from django.urls import include, path

urlpatterns = [
    path("api/", include("accounts.urls")),
    path("api/", include("stock.urls")),
]
