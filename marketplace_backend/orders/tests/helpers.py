# orders/tests/helpers.py

from __future__ import annotations

from orders.models import Order
from orders.services.order_lifecycle import transition_order_status
from orders.services.order_snapshot_service import create_order_with_snapshot
from orders.services.rate_provider import RateSnapshot

# VAT 15%, commission 10%, delivery taxed at the product rate
STANDARD_RATES = RateSnapshot.build("15", "10")

WIDGET_LINE = {
    "product_id": "prod-widget",
    "product_name": "Widget",
    "unit_price_inc_vat": "115.00",
    "quantity": 1,
}

DELIVERY_PATH = (
    Order.STATUS_ACCEPTED,
    Order.STATUS_PREPARING,
    Order.STATUS_READY,
    Order.STATUS_ASSIGNED,
    Order.STATUS_PICKED_UP,
    Order.STATUS_ON_THE_WAY,
    Order.STATUS_DELIVERED,
)


def place_order(
    *,
    lines=None,
    delivery_fee="11.50",
    store_id="store-1",
    customer_id="customer-1",
    rates=STANDARD_RATES,
    **kwargs,
):
    return create_order_with_snapshot(
        store_id=store_id,
        customer_id=customer_id,
        cart_lines=lines if lines is not None else [dict(WIDGET_LINE)],
        delivery_fee=delivery_fee,
        rates=rates,
        **kwargs,
    )


def deliver(order: Order, *, courier_id: str = "courier-1") -> Order:
    for status in DELIVERY_PATH:
        order = transition_order_status(
            order=order,
            target_status=status,
            courier_id=courier_id if status == Order.STATUS_ASSIGNED else None,
        )
    return order


def place_delivered_order(*, courier_id: str = "courier-1", **kwargs):
    order, items = place_order(**kwargs)
    return deliver(order, courier_id=courier_id), items
