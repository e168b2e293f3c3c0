# settlements/api/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from settlements.api.views import OutstandingDueView, RecipientStatementView, SettlementViewSet

router = DefaultRouter()
router.register(r"", SettlementViewSet, basename="settlement")

urlpatterns = [
    # explicit routes BEFORE router URLs
    path("outstanding/", OutstandingDueView.as_view(), name="settlements-outstanding"),
    path("statement/", RecipientStatementView.as_view(), name="settlements-statement"),
    path("", include(router.urls)),
]
