"""ASGI config for the inventory service."""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "inventory_service.settings")

application = get_asgi_application()
