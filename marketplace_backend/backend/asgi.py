# backend/asgi.py
"""
PATH: backend/asgi.py

ASGI entrypoint for the marketplace finance API.

The engine itself is synchronous (ORM transactions + row locks); ASGI is
only offered for servers that prefer it. Falls back to dev settings when
DJANGO_SETTINGS_MODULE is not provided by the environment.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_asgi_application()
