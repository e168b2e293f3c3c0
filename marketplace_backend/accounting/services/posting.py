# accounting/services/posting.py

"""
======================================================
PATH: accounting/services/posting.py
======================================================
POSTING ADAPTER

Build postings and call record_entry (the engine).

This module should remain a thin adapter:
- It DOES NOT do workflows (order/settlement/refund services do).
- It DOES map business events -> accounting postings.
- It ALWAYS calls record_entry (engine) for immutability + idempotency.

Entry shapes:
- ORDER CAPTURE
    Debit:  Cash/Bank (order_total)
    Credit: Merchant Payables (merchant_payout)
    Credit: Courier Payables (delivery_fee)
    Credit: Commission Revenue (commission_ex_vat)
    Credit: VAT Payable (vat_on_products)
- SETTLEMENT PAYOUT
    Debit:  Merchant or Courier Payables (amount)
    Credit: Cash/Bank (amount)
- REFUND
    Exact mirror of the capture entry for the reversed figures
    (plus the delivery fee when the refund completes a full-order refund).

Zero-amount postings are dropped (the engine rejects them).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from accounting.models.journal import JournalEntry
from accounting.services.account_resolver import (
    get_commission_revenue_account,
    get_courier_payable_account,
    get_merchant_payable_account,
    get_settlement_account_for_method,
    get_vat_payable_account,
)
from accounting.services.journal_entry_service import record_entry

TWOPLACES = Decimal("0.01")


def _money(v) -> Decimal:
    if v is None or v == "":
        return Decimal("0.00")
    return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _drop_zero_lines(postings: list[dict]) -> list[dict]:
    return [
        p
        for p in postings
        if _money(p.get("debit")) > 0 or _money(p.get("credit")) > 0
    ]


def _payable_account_for_recipient(recipient_type: str):
    if recipient_type == "courier":
        return get_courier_payable_account()
    return get_merchant_payable_account()


def post_order_capture(*, order, created_by: str | None = None) -> JournalEntry | None:
    """
    Record the payment capture for a freshly snapshotted order.

    Returns None for an all-zero order (nothing moved).
    """
    postings = _drop_zero_lines(
        [
            {
                "account": get_settlement_account_for_method(order.payment_method),
                "debit": _money(order.order_total),
                "description": "Customer payment captured",
            },
            {
                "account": get_merchant_payable_account(),
                "credit": _money(order.merchant_payout),
                "description": f"Merchant payout due (store {order.store_id})",
            },
            # Gross fee, delivery VAT included: the courier accounts for it
            {
                "account": get_courier_payable_account(),
                "credit": _money(order.delivery_fee),
                "description": "Delivery fee due to courier",
            },
            {
                "account": get_commission_revenue_account(),
                "credit": _money(order.commission_ex_vat),
                "description": "Platform commission (ex-VAT)",
            },
            {
                "account": get_vat_payable_account(),
                "credit": _money(order.vat_on_products),
                "description": "VAT on products",
            },
        ]
    )
    if not postings:
        return None

    return record_entry(
        reference_type=JournalEntry.REFERENCE_ORDER,
        reference_id=str(order.id),
        lines=postings,
        description=f"Order {order.order_number} payment capture",
        posted_at=order.created_at,
        created_by=created_by,
    )


def post_settlement_payout(*, settlement, created_by: str | None = None) -> JournalEntry:
    amount = _money(settlement.total_amount)
    return record_entry(
        reference_type=JournalEntry.REFERENCE_SETTLEMENT,
        reference_id=str(settlement.id),
        lines=[
            {
                "account": _payable_account_for_recipient(settlement.recipient_type),
                "debit": amount,
                "description": (
                    f"Payout to {settlement.recipient_type} {settlement.recipient_id}"
                ),
            },
            {
                "account": get_settlement_account_for_method(settlement.payment_method),
                "credit": amount,
                "description": f"Paid via {settlement.payment_method or 'cash'}",
            },
        ],
        description=f"Settlement {settlement.settlement_number}",
        posted_at=settlement.settled_at,
        created_by=created_by,
    )


def post_refund_reversal(*, refund, created_by: str | None = None) -> JournalEntry | None:
    """
    Mirror the capture entry for the portion being refunded.
    """
    order = refund.order
    refunded_cash = _money(refund.refund_amount) + _money(refund.reversed_delivery_fee)

    postings = _drop_zero_lines(
        [
            {
                "account": get_merchant_payable_account(),
                "debit": _money(refund.reversed_merchant_payout),
                "description": "Merchant payout reversed",
            },
            {
                "account": get_courier_payable_account(),
                "debit": _money(refund.reversed_delivery_fee),
                "description": "Delivery fee reversed",
            },
            {
                "account": get_commission_revenue_account(),
                "debit": _money(refund.reversed_commission_ex_vat),
                "description": "Platform commission reversed",
            },
            {
                "account": get_vat_payable_account(),
                "debit": _money(refund.reversed_vat_amount),
                "description": "VAT on products reversed",
            },
            {
                "account": get_settlement_account_for_method(order.payment_method),
                "credit": refunded_cash,
                "description": "Refund paid to customer",
            },
        ]
    )
    if not postings:
        return None

    return record_entry(
        reference_type=JournalEntry.REFERENCE_REFUND,
        reference_id=str(refund.id),
        lines=postings,
        description=f"Refund {refund.refund_number} for order {order.order_number}",
        posted_at=refund.processed_at,
        created_by=created_by,
    )
