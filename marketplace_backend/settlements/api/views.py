# settlements/api/views.py

"""
======================================================
PATH: settlements/api/views.py
======================================================
SETTLEMENTS API

Endpoints (mounted at /api/settlements/):
- GET  /, <uuid>/     -> settlement history (django-filter)
- POST /              -> pay out (part of) a recipient's outstanding due
- GET  outstanding/   -> ?recipient_type=&recipient_id=
- GET  statement/     -> ?recipient_type=&recipient_id=

Outstanding due and statements are pure reads (never cached).
======================================================
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.api.errors import HANDLED_ERRORS, domain_error_response
from settlements.api.serializers import (
    RecipientQuerySerializer,
    SettlementCommandSerializer,
    SettlementSerializer,
)
from settlements.models import Settlement
from settlements.services.settlement_ledger import (
    create_settlement,
    outstanding_due,
    recipient_statement,
)


def _require_perm(request, perm: str, message: str):
    if not request.user.has_perm(perm):
        raise PermissionDenied(message)


@extend_schema(tags=["settlements"])
class SettlementViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = SettlementSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["recipient_type", "recipient_id", "status", "payment_method"]

    def get_queryset(self):
        _require_perm(
            self.request,
            "settlements.view_settlement",
            "You do not have permission to view settlements.",
        )
        return Settlement.objects.prefetch_related("items", "items__order").order_by("-created_at")

    @extend_schema(request=SettlementCommandSerializer, responses={201: SettlementSerializer})
    def create(self, request, *args, **kwargs):
        _require_perm(
            request,
            "settlements.add_settlement",
            "You do not have permission to create settlements.",
        )

        command = SettlementCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        data = command.validated_data

        try:
            settlement = create_settlement(
                recipient_type=data["recipient_type"],
                recipient_id=data["recipient_id"],
                amount=data["amount"],
                payment_method=data.get("payment_method"),
                payment_reference=data["payment_reference"],
                notes=data.get("notes", ""),
                settled_by=request.user,
            )
        except HANDLED_ERRORS as exc:
            return domain_error_response(exc)

        settlement = Settlement.objects.prefetch_related("items").get(pk=settlement.pk)
        return Response(SettlementSerializer(settlement).data, status=status.HTTP_201_CREATED)


class OutstandingDueView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["settlements"], parameters=[RecipientQuerySerializer], responses={200: dict})
    def get(self, request):
        _require_perm(
            request,
            "settlements.view_settlement",
            "You do not have permission to view settlements.",
        )
        query = RecipientQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        try:
            due = outstanding_due(params["recipient_type"], params["recipient_id"])
        except HANDLED_ERRORS as exc:
            return domain_error_response(exc)

        return Response(
            {
                "recipient_type": params["recipient_type"],
                "recipient_id": params["recipient_id"],
                "outstanding_due": due,
            },
            status=status.HTTP_200_OK,
        )


class RecipientStatementView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["settlements"], parameters=[RecipientQuerySerializer], responses={200: dict})
    def get(self, request):
        _require_perm(
            request,
            "settlements.view_settlement",
            "You do not have permission to view settlements.",
        )
        query = RecipientQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        try:
            data = recipient_statement(params["recipient_type"], params["recipient_id"])
        except HANDLED_ERRORS as exc:
            return domain_error_response(exc)

        return Response(data, status=status.HTTP_200_OK)
