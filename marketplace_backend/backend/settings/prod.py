# backend/settings/prod.py
"""
PATH: backend/settings/prod.py

PRODUCTION SETTINGS (fail-closed)

- DEBUG forced off
- SECRET_KEY, ALLOWED_HOSTS, DATABASE_URL, CORS/CSRF origins must be set
- PostgreSQL only: settlement and refund serialization relies on
  SELECT ... FOR UPDATE, which SQLite ignores
- Marketplace rate fallbacks must parse as non-negative percentages
- HTTPS behind a TLS-terminating proxy, hardened cookies and headers
- WhiteNoise serves collected static files (admin + API docs)
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F403
from .base import (
    BASE_DIR,
    MARKETPLACE_DEFAULT_COMMISSION_RATE,
    MARKETPLACE_DEFAULT_VAT_RATE,
    MIDDLEWARE,
    env,
)


def _required(name: str, value):
    if not value:
        raise ImproperlyConfigured(f"{name} must be set in production.")
    return value


def _no_local_or_plain_http(name: str, origins: list[str]) -> list[str]:
    for origin in _required(name, origins):
        if "localhost" in origin or "127.0.0.1" in origin:
            raise ImproperlyConfigured(f"Remove local origins from {name} in production.")
        if origin.startswith("http://"):
            raise ImproperlyConfigured(f"{name} must use https:// origins in production.")
    return origins


def _percentage(name: str, raw) -> str:
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise ImproperlyConfigured(f"{name} must be a number (got {raw!r}).") from exc
    if not value.is_finite() or value < 0 or value > 100:
        raise ImproperlyConfigured(f"{name} must be between 0 and 100 (got {raw!r}).")
    return raw


# ----------------------------
# Core
# ----------------------------
DEBUG = False

SECRET_KEY = (env("SECRET_KEY", default="") or "").strip()
if SECRET_KEY in ("", "dev-insecure-change-me"):
    raise ImproperlyConfigured("SECRET_KEY must be set to a strong value in production.")

ALLOWED_HOSTS = _required("ALLOWED_HOSTS", env.list("ALLOWED_HOSTS", default=[]))

# ----------------------------
# Database (PostgreSQL only)
# ----------------------------
_database_url = _required("DATABASE_URL", (env("DATABASE_URL", default="") or "").strip())
if _database_url.startswith("sqlite"):
    raise ImproperlyConfigured(
        "SQLite cannot hold row locks; production needs a PostgreSQL DATABASE_URL."
    )

DATABASES = {"default": env.db("DATABASE_URL")}
DATABASES["default"]["CONN_MAX_AGE"] = env.int("DB_CONN_MAX_AGE", default=60)

# ----------------------------
# Rate fallbacks
# ----------------------------
MARKETPLACE_DEFAULT_VAT_RATE = _percentage(
    "MARKETPLACE_DEFAULT_VAT_RATE", MARKETPLACE_DEFAULT_VAT_RATE
)
MARKETPLACE_DEFAULT_COMMISSION_RATE = _percentage(
    "MARKETPLACE_DEFAULT_COMMISSION_RATE", MARKETPLACE_DEFAULT_COMMISSION_RATE
)

# ----------------------------
# Static files (WhiteNoise)
# ----------------------------
STATIC_ROOT = env("STATIC_ROOT", default=str(BASE_DIR / "staticfiles"))

MIDDLEWARE.insert(1, "whitenoise.middleware.WhiteNoiseMiddleware")
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# ----------------------------
# HTTPS
# ----------------------------
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=3600)
SECURE_HSTS_INCLUDE_SUBDOMAINS = env.bool("SECURE_HSTS_INCLUDE_SUBDOMAINS", default=True)
SECURE_HSTS_PRELOAD = env.bool("SECURE_HSTS_PRELOAD", default=False)

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_HTTPONLY = True
CSRF_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
CSRF_COOKIE_SAMESITE = "Lax"

SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_REFERRER_POLICY = "same-origin"
SECURE_CROSS_ORIGIN_OPENER_POLICY = "same-origin"
X_FRAME_OPTIONS = "DENY"

# ----------------------------
# CORS / CSRF
# ----------------------------
CORS_ALLOWED_ORIGINS = _no_local_or_plain_http(
    "CORS_ALLOWED_ORIGINS", env.list("CORS_ALLOWED_ORIGINS", default=[])
)
CSRF_TRUSTED_ORIGINS = _no_local_or_plain_http(
    "CSRF_TRUSTED_ORIGINS", env.list("CSRF_TRUSTED_ORIGINS", default=[])
)

# JWT bearer tokens only; no cross-site cookies
CORS_ALLOW_CREDENTIALS = False
