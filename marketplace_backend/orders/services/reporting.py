"""
PATH: orders/services/reporting.py

ORDER FINANCE REPORTING (READ-ONLY PROJECTIONS)

Used by the accounting dashboard:
- per-order VAT / commission breakdown (lines + refunds)
- platform totals over a date range, optionally for one store

Pure reads: nothing here mutates state.
"""

from __future__ import annotations

from decimal import Decimal

from django.db.models import Count, Sum

from orders.models import Order

ZERO = Decimal("0.00")

EXCLUDED_STATUSES = (Order.STATUS_CANCELLED, Order.STATUS_FAILED)


def _line_dict(item) -> dict:
    return {
        "id": str(item.id),
        "product_id": item.product_id,
        "product_name": item.product_name,
        "quantity": item.quantity,
        "unit_price_inc_vat": item.unit_price_inc_vat,
        "unit_price_ex_vat": item.unit_price_ex_vat,
        "vat_rate": item.vat_rate,
        "commission_rate": item.commission_rate,
        "line_subtotal_ex_vat": item.line_subtotal_ex_vat,
        "line_vat_amount": item.line_vat_amount,
        "line_total": item.line_total,
        "commission_ex_vat": item.commission_ex_vat,
        "commission_vat": item.commission_vat,
        "commission_total": item.commission_total,
        "merchant_payout": item.merchant_payout,
        "refunded_amount": item.refunded_amount,
        "refund_status": item.refund_status,
    }


def _refund_dict(refund) -> dict:
    return {
        "id": str(refund.id),
        "refund_number": refund.refund_number,
        "order_item_detail": str(refund.order_item_detail_id),
        "refund_type": refund.refund_type,
        "refund_amount": refund.refund_amount,
        "reversed_subtotal_ex_vat": refund.reversed_subtotal_ex_vat,
        "reversed_vat_amount": refund.reversed_vat_amount,
        "reversed_commission_total": refund.reversed_commission_total,
        "reversed_merchant_payout": refund.reversed_merchant_payout,
        "reversed_delivery_fee": refund.reversed_delivery_fee,
        "processed_at": refund.processed_at,
    }


def get_order_breakdown(order: Order) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": order.status,
        "rates": {
            "vat_rate": order.vat_rate,
            "delivery_vat_rate": order.delivery_vat_rate,
            "commission_rate": order.commission_rate,
        },
        "products": {
            "subtotal_inc_vat": order.subtotal_inc_vat,
            "subtotal_ex_vat": order.subtotal_ex_vat,
            "vat_on_products": order.vat_on_products,
        },
        "delivery": {
            "delivery_fee": order.delivery_fee,
            "delivery_fee_ex_vat": order.delivery_fee_ex_vat,
            "vat_on_delivery": order.vat_on_delivery,
        },
        "commission": {
            "commission_ex_vat": order.commission_ex_vat,
            "commission_vat": order.commission_vat,
            "commission_total": order.commission_total,
        },
        "merchant_payout": order.merchant_payout,
        "order_total": order.order_total,
        "refunds": {
            "refunded_total": order.refunded_total,
            "refunded_merchant_payout": order.refunded_merchant_payout,
            "refunded_commission_total": order.refunded_commission_total,
            "refunded_delivery_fee": order.refunded_delivery_fee,
            "is_fully_refunded": order.is_fully_refunded,
            "net_merchant_payout": order.net_merchant_payout,
            "events": [_refund_dict(r) for r in order.refunds.all()],
        },
        "lines": [_line_dict(item) for item in order.items.all()],
    }


def summarize_orders(*, store_id=None, date_from=None, date_to=None) -> dict:
    """
    Platform totals. date_from / date_to filter on created_at (inclusive dates).

    vat_on_delivery does not reconcile against VAT Payable (2100): the
    journal credits the courier the gross delivery fee (2010), so 2100
    carries vat_on_products only.
    """
    qs = Order.objects.exclude(status__in=EXCLUDED_STATUSES)
    if store_id:
        qs = qs.filter(store_id=str(store_id).strip())
    if date_from:
        qs = qs.filter(created_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(created_at__date__lte=date_to)

    agg = qs.aggregate(
        order_count=Count("id"),
        gross_revenue=Sum("order_total"),
        subtotal_ex_vat=Sum("subtotal_ex_vat"),
        vat_on_products=Sum("vat_on_products"),
        delivery_fees=Sum("delivery_fee"),
        vat_on_delivery=Sum("vat_on_delivery"),
        commission_ex_vat=Sum("commission_ex_vat"),
        commission_vat=Sum("commission_vat"),
        commission_total=Sum("commission_total"),
        merchant_payouts=Sum("merchant_payout"),
        refunded_products=Sum("refunded_total"),
        refunded_delivery=Sum("refunded_delivery_fee"),
        refunded_merchant_payouts=Sum("refunded_merchant_payout"),
        refunded_commission=Sum("refunded_commission_total"),
    )

    totals = {k: (v if v is not None else ZERO) for k, v in agg.items() if k != "order_count"}
    refunds_total = totals["refunded_products"] + totals["refunded_delivery"]

    return {
        "filters": {
            "store_id": store_id,
            "date_from": date_from,
            "date_to": date_to,
        },
        "order_count": agg["order_count"] or 0,
        **totals,
        "refunds_total": refunds_total,
        "net_revenue": totals["gross_revenue"] - refunds_total,
        "net_commission": totals["commission_total"] - totals["refunded_commission"],
        "net_merchant_payouts": totals["merchant_payouts"] - totals["refunded_merchant_payouts"],
    }
