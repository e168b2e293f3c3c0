# backend/wsgi.py
"""
PATH: backend/wsgi.py

WSGI entrypoint for the marketplace finance API (gunicorn / uwsgi).

Deployments MUST export DJANGO_SETTINGS_MODULE=backend.settings.prod;
prod settings refuse to boot without SECRET_KEY, ALLOWED_HOSTS and a
PostgreSQL DATABASE_URL.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_wsgi_application()
