# accounting/api/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from accounting.api.views import AccountListView, JournalEntryViewSet, TrialBalanceView

router = DefaultRouter()
router.register("journal-entries", JournalEntryViewSet, basename="journal-entry")

urlpatterns = [
    path("accounts/", AccountListView.as_view(), name="accounting-accounts"),
    path("trial-balance/", TrialBalanceView.as_view(), name="trial-balance"),
    path("", include(router.urls)),
]
