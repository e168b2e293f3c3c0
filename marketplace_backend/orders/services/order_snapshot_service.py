# orders/services/order_snapshot_service.py

"""
======================================================
PATH: orders/services/order_snapshot_service.py
======================================================
ORDER FINANCIAL SNAPSHOT STORE (APPLICATION SERVICE)

Purpose:
- Decompose a tax-inclusive cart at checkout and persist the result as
  an immutable Order + one OrderItemDetail per cart line.
- Post the order-capture journal entry in the SAME transaction.

Hard rules:
- Rates are snapshotted onto the order and every line; nothing is ever
  recomputed from live configuration afterwards.
- Atomic: order row, item rows and journal entry commit together or not
  at all. Any database failure surfaces as PersistenceFailure and the
  checkout must not consider the order placed.
- Idempotent per checkout_reference: a retried checkout returns the
  order that was already committed.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction

from accounting.services.posting import post_order_capture
from orders.models import Order, OrderItemDetail
from orders.services.exceptions import InvalidAmountError, PersistenceFailure
from orders.services.rate_provider import RateProvider, RateSnapshot, SettingsRateProvider
from orders.services.vat_calculator import OrderBreakdown, calculate_order_breakdown

logger = logging.getLogger(__name__)


def _normalize_payment_method(method: str | None) -> str:
    m = (method or "cash").strip().lower()
    return m or "cash"


def _require_id(value, label: str) -> str:
    value = str(value or "").strip()
    if not value:
        raise InvalidAmountError(f"{label} is required")
    return value


def _existing_snapshot(checkout_reference: str | None):
    if not checkout_reference:
        return None
    order = Order.objects.filter(checkout_reference=checkout_reference).first()
    if order is None:
        return None
    return order, list(order.items.all())


def resolve_rates(*, rate_provider: RateProvider | None = None, rates=None) -> RateSnapshot:
    if rates is not None:
        if isinstance(rates, RateSnapshot):
            return rates
        if isinstance(rates, dict):
            return RateSnapshot.build(
                rates.get("vat_rate"),
                rates.get("commission_rate"),
                rates.get("delivery_vat_rate"),
            )
        raise InvalidAmountError("rates must be a RateSnapshot or a dict")
    return (rate_provider or SettingsRateProvider()).current_rates()


@transaction.atomic
def _persist_snapshot(
    *,
    breakdown: OrderBreakdown,
    store_id: str,
    customer_id: str,
    payment_method: str,
    checkout_reference: str | None,
    created_by: str | None,
) -> tuple[Order, list[OrderItemDetail]]:
    order = Order.objects.create(
        checkout_reference=checkout_reference,
        store_id=store_id,
        customer_id=customer_id,
        payment_method=payment_method,
        vat_rate=breakdown.vat_rate,
        delivery_vat_rate=breakdown.delivery_vat_rate,
        commission_rate=breakdown.commission_rate,
        subtotal_inc_vat=breakdown.subtotal_inc_vat,
        subtotal_ex_vat=breakdown.subtotal_ex_vat,
        vat_on_products=breakdown.vat_on_products,
        delivery_fee=breakdown.delivery_fee,
        delivery_fee_ex_vat=breakdown.delivery_fee_ex_vat,
        vat_on_delivery=breakdown.vat_on_delivery,
        commission_total=breakdown.commission_total,
        commission_ex_vat=breakdown.commission_ex_vat,
        commission_vat=breakdown.commission_vat,
        merchant_payout=breakdown.merchant_payout,
        order_total=breakdown.order_total,
    )

    items = [
        OrderItemDetail.objects.create(
            order=order,
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=line.quantity,
            unit_price_inc_vat=line.unit_price_inc_vat,
            unit_price_ex_vat=line.unit_price_ex_vat,
            vat_rate=line.vat_rate,
            commission_rate=line.commission_rate,
            line_subtotal_ex_vat=line.line_subtotal_ex_vat,
            line_vat_amount=line.line_vat_amount,
            line_total=line.line_total,
            commission_ex_vat=line.commission_ex_vat,
            commission_vat=line.commission_vat,
            commission_total=line.commission_total,
            merchant_payout=line.merchant_payout,
        )
        for line in breakdown.lines
    ]

    journal_entry = post_order_capture(order=order, created_by=created_by)
    if journal_entry is not None:
        order.journal_entry = journal_entry
        order.save(update_fields=["journal_entry", "updated_at"])

    return order, items


def create_order_with_snapshot(
    *,
    store_id,
    customer_id,
    cart_lines,
    delivery_fee,
    rate_provider: RateProvider | None = None,
    rates=None,
    checkout_reference: str | None = None,
    payment_method: str = "cash",
    created_by: str | None = None,
) -> tuple[Order, list[OrderItemDetail]]:
    """
    Checkout entry point.

    cart_lines: [{"unit_price_inc_vat", "quantity", "product_id"?, "product_name"?}, ...]
    delivery_fee: VAT-inclusive delivery fee
    """
    store_id = _require_id(store_id, "store_id")
    customer_id = _require_id(customer_id, "customer_id")
    checkout_reference = str(checkout_reference or "").strip() or None

    if not cart_lines:
        raise InvalidAmountError("Cart is empty")

    existing = _existing_snapshot(checkout_reference)
    if existing is not None:
        logger.info(
            "Checkout replay returned existing order",
            extra={"checkout_reference": checkout_reference, "order_id": str(existing[0].id)},
        )
        return existing

    snapshot = resolve_rates(rate_provider=rate_provider, rates=rates)

    # Pure: raises InvalidAmountError / InvalidRateError before any write
    breakdown = calculate_order_breakdown(cart_lines, delivery_fee, snapshot)

    try:
        order, items = _persist_snapshot(
            breakdown=breakdown,
            store_id=store_id,
            customer_id=customer_id,
            payment_method=_normalize_payment_method(payment_method),
            checkout_reference=checkout_reference,
            created_by=created_by,
        )
    except IntegrityError as exc:
        # Concurrent replay of the same checkout won the race
        existing = _existing_snapshot(checkout_reference)
        if existing is not None:
            return existing
        logger.exception(
            "Order snapshot rolled back",
            extra={"store_id": store_id, "checkout_reference": checkout_reference},
        )
        raise PersistenceFailure("Order could not be completed, please retry") from exc
    except (DatabaseError, ValidationError) as exc:
        logger.exception(
            "Order snapshot rolled back",
            extra={"store_id": store_id, "checkout_reference": checkout_reference},
        )
        raise PersistenceFailure("Order could not be completed, please retry") from exc

    logger.info(
        "Order snapshot committed",
        extra={
            "order_id": str(order.id),
            "order_number": order.order_number,
            "store_id": store_id,
            "order_total": str(order.order_total),
            "line_count": len(items),
        },
    )
    return order, items
