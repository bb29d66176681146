"""WSGI config for the inventory service."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "inventory_service.settings")

application = get_wsgi_application()
