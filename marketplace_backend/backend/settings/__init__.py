# backend/settings/__init__.py
"""
PATH: backend/settings/__init__.py

Settings modules for the marketplace finance backend:
- backend.settings.base  shared configuration (apps, DRF, logging, rate fallbacks)
- backend.settings.dev   local development and the test suite
- backend.settings.prod  production (fail-closed)

Nothing is imported here; pick one through DJANGO_SETTINGS_MODULE.
"""
