# orders/api/views.py

"""
======================================================
PATH: orders/api/views.py
======================================================
ORDERS API

Endpoints (mounted at /api/orders/):
- POST checkout/                      -> snapshot a cart into an order
- GET  /, <uuid>/                     -> order list / detail (django-filter)
- GET  <uuid>/breakdown/              -> per-order VAT / commission breakdown
- POST <uuid>/transition/             -> lifecycle step
- POST items/<uuid>/refund/           -> refund one line (full | partial)
- GET  refunds/                       -> refund audit trail
- GET  summary/                       -> platform totals

Security:
- IsAuthenticated + Django model permissions (authorization is external
  to the financial engine; these are the hooks it exposes).

Errors:
- Domain errors map to {"error": {"code", "message"}} (see orders/api/errors.py)
======================================================
"""

from __future__ import annotations

from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.api.errors import HANDLED_ERRORS, domain_error_response
from orders.api.serializers import (
    CheckoutCommandSerializer,
    OrderRefundSerializer,
    OrderSerializer,
    RefundCommandSerializer,
    SummaryQuerySerializer,
    TransitionCommandSerializer,
)
from orders.models import Order, OrderItemDetail, OrderRefund
from orders.services.order_lifecycle import transition_order_status
from orders.services.order_snapshot_service import create_order_with_snapshot
from orders.services.refund_service import refund_line
from orders.services.reporting import get_order_breakdown, summarize_orders


def _require_perm(request, perm: str, message: str):
    if not request.user.has_perm(perm):
        raise PermissionDenied(message)


def _actor(request) -> str:
    return getattr(request.user, "username", "") or ""


# ======================================================
# CHECKOUT
# ======================================================


class CheckoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["orders"],
        request=CheckoutCommandSerializer,
        responses={201: OrderSerializer},
    )
    def post(self, request):
        _require_perm(request, "orders.add_order", "You do not have permission to place orders.")

        serializer = CheckoutCommandSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order, _items = create_order_with_snapshot(
                store_id=data["store_id"],
                customer_id=data["customer_id"],
                cart_lines=data["items"],
                delivery_fee=data["delivery_fee"],
                checkout_reference=data.get("checkout_reference") or None,
                payment_method=data.get("payment_method") or "cash",
                created_by=_actor(request),
            )
        except HANDLED_ERRORS as exc:
            return domain_error_response(exc)

        order = Order.objects.prefetch_related("items").get(pk=order.pk)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


# ======================================================
# ORDERS (READ + LIFECYCLE)
# ======================================================


@extend_schema(tags=["orders"])
class OrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["status", "store_id", "customer_id", "courier_id", "is_fully_refunded"]

    def get_queryset(self):
        _require_perm(self.request, "orders.view_order", "You do not have permission to view orders.")
        return Order.objects.prefetch_related("items").order_by("-created_at")

    @action(detail=True, methods=["get"], url_path="breakdown")
    def breakdown(self, request, pk=None):
        order = self.get_object()
        return Response(get_order_breakdown(order), status=status.HTTP_200_OK)

    @extend_schema(request=TransitionCommandSerializer, responses=OrderSerializer)
    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request, pk=None):
        _require_perm(request, "orders.change_order", "You do not have permission to update orders.")
        order = self.get_object()

        serializer = TransitionCommandSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = transition_order_status(
                order=order,
                target_status=serializer.validated_data["status"],
                courier_id=serializer.validated_data.get("courier_id"),
            )
        except HANDLED_ERRORS as exc:
            return domain_error_response(exc)

        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


# ======================================================
# REFUNDS
# ======================================================


class OrderItemRefundView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["orders"],
        request=RefundCommandSerializer,
        responses={201: OrderRefundSerializer},
    )
    def post(self, request, item_id):
        _require_perm(request, "orders.add_orderrefund", "You do not have permission to refund orders.")
        item = get_object_or_404(OrderItemDetail, pk=item_id)

        serializer = RefundCommandSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            refund = refund_line(
                order_item_detail_id=item.pk,
                scope=data["scope"],
                partial_amount=data.get("amount"),
                refund_reference=data.get("refund_reference"),
                reason=data.get("reason"),
                processed_by=request.user,
            )
        except HANDLED_ERRORS as exc:
            return domain_error_response(exc)

        return Response(OrderRefundSerializer(refund).data, status=status.HTTP_201_CREATED)


@extend_schema(tags=["orders"])
class OrderRefundViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = OrderRefundSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["order", "order_item_detail", "refund_type"]

    def get_queryset(self):
        _require_perm(
            self.request, "orders.view_orderrefund", "You do not have permission to view refunds."
        )
        return OrderRefund.objects.order_by("-processed_at")


# ======================================================
# SUMMARY
# ======================================================


class OrderSummaryView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["orders"], parameters=[SummaryQuerySerializer], responses={200: dict})
    def get(self, request):
        _require_perm(request, "orders.view_order", "You do not have permission to view orders.")

        query = SummaryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        data = summarize_orders(
            store_id=params.get("store_id") or None,
            date_from=params.get("date_from"),
            date_to=params.get("date_to"),
        )
        return Response(data, status=status.HTTP_200_OK)
