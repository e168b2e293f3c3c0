"""
ORDER LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for Order entities.

DESIGN PRINCIPLES:
- Financial snapshot fields are never touched here
- The settlement ledger only READS status == delivered
- Single source of truth for transitions
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from orders.models import Order
from orders.services.exceptions import InvalidOrderTransitionError

logger = logging.getLogger(__name__)

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Order.STATUS_DELIVERED,
    Order.STATUS_CANCELLED,
    Order.STATUS_FAILED,
}

ALLOWED_TRANSITIONS = {
    Order.STATUS_NEW: {
        Order.STATUS_ACCEPTED,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_ACCEPTED: {
        Order.STATUS_PREPARING,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_PREPARING: {
        Order.STATUS_READY,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_READY: {
        Order.STATUS_ASSIGNED,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_ASSIGNED: {
        Order.STATUS_PICKED_UP,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_PICKED_UP: {
        Order.STATUS_ON_THE_WAY,
        Order.STATUS_FAILED,
    },
    Order.STATUS_ON_THE_WAY: {
        Order.STATUS_DELIVERED,
        Order.STATUS_FAILED,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, order: Order, target_status: str):
    if not can_transition(
        from_status=order.status,
        to_status=target_status,
    ):
        raise InvalidOrderTransitionError(
            f"Order {order.order_number} cannot transition from "
            f"'{order.status}' to '{target_status}'"
        )


@transaction.atomic
def transition_order_status(*, order: Order, target_status: str, courier_id=None) -> Order:
    """
    Move an order one step along its lifecycle (row-locked).

    - assigned_to_courier requires a courier id
    - delivered stamps delivered_at
    """
    locked = Order.objects.select_for_update().get(pk=order.pk)
    target_status = (target_status or "").strip().lower()

    validate_transition(order=locked, target_status=target_status)

    update_fields = ["status", "updated_at"]

    if target_status == Order.STATUS_ASSIGNED:
        courier_id = str(courier_id or "").strip()
        if not courier_id:
            raise InvalidOrderTransitionError(
                "courier_id is required to assign an order to a courier"
            )
        locked.courier_id = courier_id
        update_fields.append("courier_id")

    if target_status == Order.STATUS_DELIVERED:
        locked.delivered_at = timezone.now()
        update_fields.append("delivered_at")

    previous_status = locked.status
    locked.status = target_status
    locked.save(update_fields=update_fields)

    logger.info(
        "Order status changed",
        extra={
            "order_id": str(locked.id),
            "from_status": previous_status,
            "to_status": target_status,
        },
    )
    return locked
