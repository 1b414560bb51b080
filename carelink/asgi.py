"""
ASGI config for the carelink project.

Notifications are pulled by clients (``/api/notifications``), so only the
plain HTTP application is exposed here.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "carelink.settings")

application = get_asgi_application()
