"""
ASGI config for the medcenter project.

Only plain HTTP is served; the API has no websocket routes.
"""
import os

from django.core.asgi import get_asgi_application  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "medcenter.settings")

application = get_asgi_application()
