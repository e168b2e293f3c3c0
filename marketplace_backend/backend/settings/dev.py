# backend/settings/dev.py
"""
PATH: backend/settings/dev.py

DEVELOPMENT + TEST SETTINGS

- SQLite unless DATABASE_URL points elsewhere
- "testserver" allowed so APIClient requests resolve
- Browsable API enabled next to JSON
- Fast password hashing while the test suite runs
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import REST_FRAMEWORK, TESTING, env

DEBUG = True

ALLOWED_HOSTS = env.list(
    "ALLOWED_HOSTS", default=["localhost", "127.0.0.1", "testserver"]
)

CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS", default=["http://localhost:5173"])
CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS", default=["http://localhost:5173"])

REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = (
    "rest_framework.renderers.JSONRenderer",
    "rest_framework.renderers.BrowsableAPIRenderer",
)

if TESTING:
    PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
