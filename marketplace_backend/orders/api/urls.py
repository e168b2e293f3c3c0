# orders/api/urls.py

"""
ORDERS API URLS

Rules:
- Explicit non-PK routes (checkout, summary, items/..., refunds) MUST be
  registered BEFORE router URLs, otherwise the router treats them as a <pk>.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from orders.api.views import (
    CheckoutView,
    OrderItemRefundView,
    OrderRefundViewSet,
    OrderSummaryView,
    OrderViewSet,
)

router = DefaultRouter()
router.register(r"refunds", OrderRefundViewSet, basename="order-refund")
router.register(r"", OrderViewSet, basename="order")

urlpatterns = [
    path("checkout/", CheckoutView.as_view(), name="orders-checkout"),
    path("summary/", OrderSummaryView.as_view(), name="orders-summary"),
    path("items/<uuid:item_id>/refund/", OrderItemRefundView.as_view(), name="orders-item-refund"),
    path("", include(router.urls)),
]
