# settlements/services/settlement_ledger.py

"""
======================================================
PATH: settlements/services/settlement_ledger.py
======================================================
SETTLEMENT LEDGER (APPLICATION SERVICE)

Purpose:
- Aggregate what each recipient has earned from DELIVERED orders
- Net out completed settlements -> outstanding due
- Be the only writer of Settlement / SettlementItem rows
- Record refund adjustments for orders that were already paid out

Outstanding due (re-aggregated on every call, never cached):
    merchant: sum(merchant_payout - refunded_merchant_payout) over delivered orders of the store
    courier:  sum(delivery_fee - refunded_delivery_fee) over delivered orders of the courier
              (refunded_delivery_fee is only set once an order is fully refunded)
    minus:    sum(total_amount) of completed settlements for the recipient

Concurrency:
- create_settlement locks the recipient's PayoutRecipient row, then
  re-reads the due inside the same transaction; two settlements for one
  recipient can never both pass the overpayment check.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import DecimalField, ExpressionWrapper, F, Sum, Value
from django.db.models.functions import Coalesce

from accounting.services.posting import post_settlement_payout
from orders.models import Order
from orders.services.exceptions import InvalidAmountError, PersistenceFailure
from orders.services.vat_calculator import round_money, to_money
from settlements.models import (
    RECIPIENT_COURIER,
    RECIPIENT_MERCHANT,
    PayoutRecipient,
    Settlement,
    SettlementItem,
)
from settlements.services.exceptions import (
    DuplicateSettlementError,
    OverpaymentError,
    SettlementError,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
MONEY = DecimalField(max_digits=14, decimal_places=2)

VALID_RECIPIENT_TYPES = {RECIPIENT_MERCHANT, RECIPIENT_COURIER}


def _normalize_recipient(recipient_type, recipient_id) -> tuple[str, str]:
    recipient_type = str(recipient_type or "").strip().lower()
    if recipient_type not in VALID_RECIPIENT_TYPES:
        raise SettlementError(f"Invalid recipient_type: {recipient_type!r}")
    recipient_id = str(recipient_id or "").strip()
    if not recipient_id:
        raise SettlementError("recipient_id is required")
    return recipient_type, recipient_id


def _sum(qs, expression) -> Decimal:
    total = qs.aggregate(total=Coalesce(Sum(expression), Value(ZERO), output_field=MONEY))["total"]
    return round_money(total or ZERO)


# ============================================================
# READ PROJECTIONS
# ============================================================


def delivered_orders(recipient_type: str, recipient_id: str):
    qs = Order.objects.filter(status=Order.STATUS_DELIVERED)
    if recipient_type == RECIPIENT_MERCHANT:
        return qs.filter(store_id=recipient_id)
    return qs.filter(courier_id=recipient_id)


def _net_earning_expression(recipient_type: str):
    if recipient_type == RECIPIENT_MERCHANT:
        return ExpressionWrapper(
            F("merchant_payout") - F("refunded_merchant_payout"), output_field=MONEY
        )
    return ExpressionWrapper(F("delivery_fee") - F("refunded_delivery_fee"), output_field=MONEY)


def _order_net_amount(order: Order, recipient_type: str) -> Decimal:
    if recipient_type == RECIPIENT_MERCHANT:
        return Decimal(order.merchant_payout) - Decimal(order.refunded_merchant_payout)
    return Decimal(order.delivery_fee) - Decimal(order.refunded_delivery_fee)


def earned_total(recipient_type: str, recipient_id: str) -> Decimal:
    return _sum(
        delivered_orders(recipient_type, recipient_id),
        _net_earning_expression(recipient_type),
    )


def settled_total(recipient_type: str, recipient_id: str) -> Decimal:
    return _sum(
        Settlement.objects.filter(
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            status=Settlement.STATUS_COMPLETED,
        ),
        "total_amount",
    )


def outstanding_due(recipient_type, recipient_id) -> Decimal:
    """
    Pure read: earned from delivered orders minus completed settlements.
    """
    recipient_type, recipient_id = _normalize_recipient(recipient_type, recipient_id)
    return earned_total(recipient_type, recipient_id) - settled_total(
        recipient_type, recipient_id
    )


def pending_adjustments(recipient_type, recipient_id):
    """
    Refund adjustments not yet netted against a settlement.
    """
    recipient_type, recipient_id = _normalize_recipient(recipient_type, recipient_id)
    return SettlementItem.objects.filter(
        recipient_type=recipient_type,
        recipient_id=recipient_id,
        item_type=SettlementItem.TYPE_ADJUSTMENT,
        settlement__isnull=True,
    ).order_by("created_at")


def uncovered_orders(recipient_type: str, recipient_id: str):
    """
    Delivered orders with something still owed that no completed payout item covers yet.
    """
    covered = SettlementItem.objects.filter(
        recipient_type=recipient_type,
        item_type=SettlementItem.TYPE_PAYOUT,
        settlement__status=Settlement.STATUS_COMPLETED,
    ).values("order_id")

    return (
        delivered_orders(recipient_type, recipient_id)
        .exclude(id__in=covered)
        .annotate(net_due=_net_earning_expression(recipient_type))
        .filter(net_due__gt=0)
        .order_by("delivered_at", "created_at")
    )


def recipient_statement(recipient_type, recipient_id) -> dict:
    recipient_type, recipient_id = _normalize_recipient(recipient_type, recipient_id)
    orders = delivered_orders(recipient_type, recipient_id)

    if recipient_type == RECIPIENT_MERCHANT:
        gross = _sum(orders, "merchant_payout")
        refunded = _sum(orders, "refunded_merchant_payout")
    else:
        gross = _sum(orders, "delivery_fee")
        refunded = _sum(orders, "refunded_delivery_fee")

    settled = settled_total(recipient_type, recipient_id)
    adjustments = pending_adjustments(recipient_type, recipient_id)

    return {
        "recipient_type": recipient_type,
        "recipient_id": recipient_id,
        "delivered_orders": orders.count(),
        "gross_earned": gross,
        "refunded": refunded,
        "net_earned": gross - refunded,
        "settled": settled,
        "settlement_count": Settlement.objects.filter(
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            status=Settlement.STATUS_COMPLETED,
        ).count(),
        "pending_adjustments": _sum(adjustments, "net_amount"),
        "pending_adjustment_count": adjustments.count(),
        "outstanding_due": gross - refunded - settled,
    }


# ============================================================
# WRITE PATHS
# ============================================================


def _payout_item_for(order: Order, recipient_type: str, recipient_id: str) -> SettlementItem:
    if recipient_type == RECIPIENT_MERCHANT:
        return SettlementItem(
            item_type=SettlementItem.TYPE_PAYOUT,
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            order=order,
            order_total=order.subtotal_inc_vat - order.refunded_total,
            tax_amount=order.vat_on_products,
            platform_commission=order.commission_total - order.refunded_commission_total,
            commission_vat=order.commission_vat,
            net_amount=_order_net_amount(order, recipient_type),
        )
    return SettlementItem(
        item_type=SettlementItem.TYPE_PAYOUT,
        recipient_type=recipient_type,
        recipient_id=recipient_id,
        order=order,
        order_total=order.delivery_fee,
        tax_amount=order.vat_on_delivery,
        net_amount=_order_net_amount(order, recipient_type),
    )


@transaction.atomic
def _persist_settlement(
    *,
    recipient_type: str,
    recipient_id: str,
    amount: Decimal,
    payment_method: str,
    payment_reference: str,
    notes: str,
    settled_by: str,
) -> Settlement:
    PayoutRecipient.objects.get_or_create(
        recipient_type=recipient_type, recipient_id=recipient_id
    )
    # Serializes settlements per recipient until commit
    PayoutRecipient.objects.select_for_update().get(
        recipient_type=recipient_type, recipient_id=recipient_id
    )

    if Settlement.objects.filter(
        recipient_type=recipient_type,
        recipient_id=recipient_id,
        payment_reference=payment_reference,
    ).exists():
        raise DuplicateSettlementError(
            f"Payment reference '{payment_reference}' was already settled for "
            f"{recipient_type} {recipient_id}"
        )

    due = outstanding_due(recipient_type, recipient_id)
    if amount > due:
        raise OverpaymentError(
            f"Requested amount {amount} exceeds outstanding due {due} "
            f"for {recipient_type} {recipient_id}"
        )

    adjustments = list(pending_adjustments(recipient_type, recipient_id))
    adjustment_total = sum((adj.net_amount for adj in adjustments), ZERO)

    # Cover the oldest orders whose net payout fits in amount (+ refund clawbacks)
    budget = amount - adjustment_total
    items: list[SettlementItem] = []
    for order in uncovered_orders(recipient_type, recipient_id):
        net = _order_net_amount(order, recipient_type)
        if net > budget:
            break
        items.append(_payout_item_for(order, recipient_type, recipient_id))
        budget -= net

    settlement = Settlement.objects.create(
        recipient_type=recipient_type,
        recipient_id=recipient_id,
        total_amount=amount,
        total_commission_collected=sum(
            (i.platform_commission for i in items), ZERO
        ) + sum((adj.platform_commission for adj in adjustments), ZERO),
        total_vat_on_commission=sum((i.commission_vat for i in items), ZERO)
        + sum((adj.commission_vat for adj in adjustments), ZERO),
        payment_method=payment_method,
        payment_reference=payment_reference,
        status=Settlement.STATUS_COMPLETED,
        notes=notes,
        settled_by=settled_by,
    )

    for item in items:
        item.settlement = settlement
        item.save()

    for adj in adjustments:
        adj.settlement = settlement
        adj.save(update_fields=["settlement"])

    journal_entry = post_settlement_payout(settlement=settlement, created_by=settled_by)
    settlement.journal_entry = journal_entry
    settlement.save(update_fields=["journal_entry"])

    return settlement


def create_settlement(
    *,
    recipient_type,
    recipient_id,
    amount,
    payment_method,
    payment_reference: str,
    notes: str = "",
    settled_by=None,
) -> Settlement:
    """
    Pay out (part of) a recipient's outstanding due.

    payment_reference (bank or cash voucher reference) is required and
    unique per recipient, so a retried payout is rejected instead of being
    paid twice.

    Raises:
    - InvalidAmountError: amount <= 0, not a number, or finer than cents
    - SettlementError: missing payment_reference
    - OverpaymentError: amount > outstanding due
    - DuplicateSettlementError: payment_reference already used for this recipient
    - PersistenceFailure: the write was rolled back
    """
    recipient_type, recipient_id = _normalize_recipient(recipient_type, recipient_id)

    amount = to_money(amount, label="amount", exact=True)
    if amount <= ZERO:
        raise InvalidAmountError("Settlement amount must be greater than zero")

    payment_reference = (payment_reference or "").strip()
    if not payment_reference:
        raise SettlementError("payment_reference is required to record a settlement")

    payment_method = (payment_method or "").strip().lower() or "bank_transfer"
    settled_by = str(getattr(settled_by, "username", settled_by) or "").strip()

    try:
        settlement = _persist_settlement(
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            amount=amount,
            payment_method=payment_method,
            payment_reference=payment_reference,
            notes=(notes or "").strip(),
            settled_by=settled_by,
        )
    except IntegrityError as exc:
        if Settlement.objects.filter(
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            payment_reference=payment_reference,
        ).exists():
            raise DuplicateSettlementError(
                f"Payment reference '{payment_reference}' was already settled for "
                f"{recipient_type} {recipient_id}"
            ) from exc
        logger.exception(
            "Settlement rolled back",
            extra={"recipient_type": recipient_type, "recipient_id": recipient_id},
        )
        raise PersistenceFailure("Settlement could not be recorded, please retry") from exc
    except DatabaseError as exc:
        logger.exception(
            "Settlement rolled back",
            extra={"recipient_type": recipient_type, "recipient_id": recipient_id},
        )
        raise PersistenceFailure("Settlement could not be recorded, please retry") from exc

    logger.info(
        "Settlement completed",
        extra={
            "settlement_number": settlement.settlement_number,
            "recipient_type": recipient_type,
            "recipient_id": recipient_id,
            "amount": str(amount),
        },
    )
    return settlement


def record_refund_adjustment(*, refund) -> list[SettlementItem]:
    """
    Called by the refund engine inside its transaction.

    Orders not yet paid out need nothing: their refund counters already
    lower the outstanding due. Orders already covered by a completed
    payout item get a negative adjustment that is attached to the
    recipient's next settlement (completed settlements stay untouched).
    """
    order = refund.order
    created: list[SettlementItem] = []

    targets = (
        (RECIPIENT_MERCHANT, order.store_id, Decimal(refund.reversed_merchant_payout)),
        (RECIPIENT_COURIER, order.courier_id, Decimal(refund.reversed_delivery_fee)),
    )

    for recipient_type, recipient_id, amount in targets:
        if not recipient_id or amount <= ZERO:
            continue

        already_paid = SettlementItem.objects.filter(
            order=order,
            recipient_type=recipient_type,
            item_type=SettlementItem.TYPE_PAYOUT,
            settlement__status=Settlement.STATUS_COMPLETED,
        ).exists()
        if not already_paid:
            continue

        is_merchant = recipient_type == RECIPIENT_MERCHANT
        item = SettlementItem.objects.create(
            item_type=SettlementItem.TYPE_ADJUSTMENT,
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            order=order,
            refund=refund,
            order_total=-(Decimal(refund.refund_amount) if is_merchant else amount),
            tax_amount=-(Decimal(refund.reversed_vat_amount) if is_merchant else ZERO),
            platform_commission=-(
                Decimal(refund.reversed_commission_total) if is_merchant else ZERO
            ),
            commission_vat=-(Decimal(refund.reversed_commission_vat) if is_merchant else ZERO),
            net_amount=-amount,
        )
        created.append(item)

        logger.info(
            "Settlement adjustment recorded",
            extra={
                "refund_number": refund.refund_number,
                "recipient_type": recipient_type,
                "recipient_id": recipient_id,
                "net_amount": str(item.net_amount),
            },
        )

    return created
