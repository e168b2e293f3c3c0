# accounting/api/views.py

"""
======================================================
PATH: accounting/api/views.py
======================================================
ACCOUNTING API (READ-ONLY)

Mounted at /api/accounting/:
- journal-entries/   ?reference_type=order|settlement|refund&reference_id=
- accounts/          accounts of the active chart
- trial-balance/     ?as_of=<ISO datetime>

The journal is written only by the posting rules; nothing here mutates it.
All three endpoints need accounting.view_journalentry (accounts/ takes
accounting.view_account as an alternative).
======================================================
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.exceptions import PermissionDenied
from rest_framework.generics import ListAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import ReadOnlyModelViewSet

from accounting.api.serializers import (
    AccountSerializer,
    JournalEntrySerializer,
    TrialBalanceQuerySerializer,
)
from accounting.services.account_resolver import get_active_chart
from accounting.services.balance_service import get_trial_balance
from accounting.services.journal_entry_service import list_journal_entries

VIEW_JOURNAL = "accounting.view_journalentry"


def _require_any_perm(user, *perms: str):
    if not any(user.has_perm(p) for p in perms):
        raise PermissionDenied("You do not have permission to view the ledger.")


@extend_schema(tags=["accounting"])
class JournalEntryViewSet(ReadOnlyModelViewSet):
    serializer_class = JournalEntrySerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["reference_type", "reference_id", "entry_number"]

    def get_queryset(self):
        _require_any_perm(self.request.user, VIEW_JOURNAL)
        return list_journal_entries()


@extend_schema(tags=["accounting"])
class AccountListView(ListAPIView):
    serializer_class = AccountSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        _require_any_perm(self.request.user, "accounting.view_account", VIEW_JOURNAL)
        return (
            get_active_chart()
            .accounts.filter(is_active=True)
            .select_related("parent")
            .order_by("code")
        )


class TrialBalanceView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["accounting"],
        parameters=[
            OpenApiParameter(
                name="as_of",
                type=str,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Only entries posted at or before this instant.",
            ),
        ],
        responses={200: dict},
    )
    def get(self, request):
        _require_any_perm(request.user, VIEW_JOURNAL)

        query = TrialBalanceQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        chart = get_active_chart()
        report = get_trial_balance(chart, as_of=query.validated_data.get("as_of"))
        report["chart"] = {"id": chart.id, "code": chart.code, "name": chart.name}
        return Response(report)
