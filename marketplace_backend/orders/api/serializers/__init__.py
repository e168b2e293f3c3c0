# orders/api/serializers/__init__.py

from orders.api.serializers.commands import (
    CartLineInputSerializer,
    CheckoutCommandSerializer,
    RefundCommandSerializer,
    SummaryQuerySerializer,
    TransitionCommandSerializer,
)
from orders.api.serializers.order import (
    OrderItemDetailSerializer,
    OrderRefundSerializer,
    OrderSerializer,
)

__all__ = [
    "CartLineInputSerializer",
    "CheckoutCommandSerializer",
    "RefundCommandSerializer",
    "SummaryQuerySerializer",
    "TransitionCommandSerializer",
    "OrderItemDetailSerializer",
    "OrderRefundSerializer",
    "OrderSerializer",
]
