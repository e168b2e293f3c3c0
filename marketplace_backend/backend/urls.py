# backend/urls.py
"""
PROJECT URLS

Everything API-facing is mounted under /api/:
- orders/        checkout snapshots, lifecycle, breakdowns, refunds, summary
- settlements/   outstanding dues, payouts, recipient statements
- accounting/    journal entries, accounts, trial balance
- auth/jwt/      SimpleJWT token pair + refresh
- schema/, docs/ drf-spectacular OpenAPI + Swagger UI
- health/        liveness + readiness (database reachable, one active chart)

The admin lives at settings.ADMIN_PATH (default "admin/").
"""

from __future__ import annotations

from django.conf import settings
from django.contrib import admin
from django.db import DatabaseError, connection
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.utils import extend_schema
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from accounting.models.chart import ChartOfAccounts

MODULES = {
    "orders": "/api/orders/",
    "settlements": "/api/settlements/",
    "accounting": "/api/accounting/",
}


@extend_schema(responses={200: dict})
@api_view(["GET"])
@permission_classes([AllowAny])
def api_root(request):
    return Response(
        {
            "service": "marketplace-finance",
            "modules": MODULES,
            "auth": {
                "jwt_create": "/api/auth/jwt/create/",
                "jwt_refresh": "/api/auth/jwt/refresh/",
            },
            "docs": {"swagger": "/api/docs/", "schema": "/api/schema/"},
        }
    )


@extend_schema(responses={200: dict, 503: dict})
@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """
    ok       -> database answers and exactly one chart of accounts is active
    degraded -> database answers but postings would bootstrap or fail
    down     -> database unreachable (503)
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        active_charts = ChartOfAccounts.objects.filter(is_active=True).count()
    except DatabaseError as exc:
        return Response({"status": "down", "db": "down", "error": str(exc)}, status=503)

    ledger = "ready" if active_charts == 1 else f"{active_charts} active charts"
    return Response(
        {
            "status": "ok" if active_charts == 1 else "degraded",
            "db": "ok",
            "ledger": ledger,
        }
    )


ADMIN_PATH = getattr(settings, "ADMIN_PATH", "admin/").strip("/") + "/"

api_urlpatterns = [
    path("", api_root, name="api-root"),
    path("health/", health_check, name="health-check"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("auth/jwt/create/", TokenObtainPairView.as_view(), name="jwt-create"),
    path("auth/jwt/refresh/", TokenRefreshView.as_view(), name="jwt-refresh"),
    path("orders/", include("orders.api.urls")),
    path("settlements/", include("settlements.api.urls")),
    path("accounting/", include("accounting.api.urls")),
]

urlpatterns = [
    path(ADMIN_PATH, admin.site.urls),
    path("", RedirectView.as_view(url="/api/docs/", permanent=False), name="root"),
    path("api/", include(api_urlpatterns)),
]
