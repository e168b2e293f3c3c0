# orders/services/refund_service.py

"""
======================================================
PATH: orders/services/refund_service.py
======================================================
REFUND REVERSAL ENGINE (DOMAIN-CONTROLLED)

Purpose:
- Refund one OrderItemDetail, fully or partially, with an immutable
  OrderRefund audit row.
- Reverse the line's VAT / commission / merchant payout using the rates
  SNAPSHOTTED on the line (never current configuration).
- Post the reversing journal entry and, for orders already paid out,
  a settlement adjustment.

Line state machine:
    unrefunded -> partially_refunded -> fully_refunded
    unrefunded ------------------------> fully_refunded

Rules:
- A fully refunded line rejects further refunds (AlreadyRefundedError)
- Cumulative refunded amount never exceeds line_total (OverRefundError)
- Partial figures are bounded by what remains unreversed on the line;
  the refund that exhausts the line reverses exactly the remainder
- When the last line of an order becomes fully refunded, the delivery
  fee is reversed too (the courier is no longer owed it)
- A refund_reference is a retry key: the same key on the same line
  replays the first refund instead of applying a second one
- Row locks: the line first, then its order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from accounting.services.posting import post_refund_reversal
from orders.models import Order, OrderItemDetail, OrderRefund
from orders.services.exceptions import (
    AlreadyRefundedError,
    InvalidAmountError,
    OverRefundError,
    PersistenceFailure,
    RefundReferenceConflictError,
)
from orders.services.vat_calculator import compute_commission, decompose_inclusive, to_money
from settlements.services.settlement_ledger import record_refund_adjustment

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

SCOPE_FULL = OrderRefund.TYPE_FULL
SCOPE_PARTIAL = OrderRefund.TYPE_PARTIAL


@dataclass(frozen=True)
class ReversalFigures:
    amount: Decimal
    subtotal_ex_vat: Decimal
    vat_amount: Decimal
    commission_ex_vat: Decimal
    commission_vat: Decimal
    merchant_payout: Decimal

    @property
    def commission_total(self) -> Decimal:
        return self.commission_ex_vat + self.commission_vat


def remaining_figures(item: OrderItemDetail) -> ReversalFigures:
    """
    What is still unreversed on the line (original minus all prior refunds).
    """
    totals = item.refunds.aggregate(
        amount=Sum("refund_amount"),
        ex_vat=Sum("reversed_subtotal_ex_vat"),
        vat=Sum("reversed_vat_amount"),
        commission_ex_vat=Sum("reversed_commission_ex_vat"),
        commission_vat=Sum("reversed_commission_vat"),
        payout=Sum("reversed_merchant_payout"),
    )
    return ReversalFigures(
        amount=item.line_total - (totals["amount"] or ZERO),
        subtotal_ex_vat=item.line_subtotal_ex_vat - (totals["ex_vat"] or ZERO),
        vat_amount=item.line_vat_amount - (totals["vat"] or ZERO),
        commission_ex_vat=item.commission_ex_vat - (totals["commission_ex_vat"] or ZERO),
        commission_vat=item.commission_vat - (totals["commission_vat"] or ZERO),
        merchant_payout=item.merchant_payout - (totals["payout"] or ZERO),
    )


def derive_partial_reversal(
    item: OrderItemDetail, amount: Decimal, remaining: ReversalFigures
) -> ReversalFigures:
    """
    Proportional split of a VAT-inclusive refund amount using the line's
    own snapshotted rates, clamped to the unreversed remainder.
    """
    if amount == remaining.amount:
        return remaining

    derived_ex, _ = decompose_inclusive(amount, item.vat_rate)
    ex_vat = min(max(derived_ex, amount - remaining.vat_amount), remaining.subtotal_ex_vat)
    vat = amount - ex_vat

    derived_comm_ex, derived_comm_vat, _ = compute_commission(
        ex_vat, item.commission_rate, item.vat_rate
    )
    commission_ex_vat = min(derived_comm_ex, remaining.commission_ex_vat, ex_vat)
    payout = ex_vat - commission_ex_vat
    if payout > remaining.merchant_payout:
        payout = remaining.merchant_payout
        commission_ex_vat = ex_vat - payout

    return ReversalFigures(
        amount=amount,
        subtotal_ex_vat=ex_vat,
        vat_amount=vat,
        commission_ex_vat=commission_ex_vat,
        commission_vat=min(derived_comm_vat, remaining.commission_vat),
        merchant_payout=payout,
    )


def _order_fully_refunded(order: Order) -> bool:
    return not order.items.filter(line_total__gt=0, is_refunded=False).exists()


def _parse_partial_amount(partial_amount) -> Decimal:
    amount = to_money(partial_amount, label="partial_amount", exact=True)
    if amount <= ZERO:
        raise InvalidAmountError("Partial refund amount must be greater than zero")
    return amount


def _existing_refund(order_item_detail_id, refund_reference: str):
    if not refund_reference:
        return None
    return OrderRefund.objects.filter(
        order_item_detail_id=order_item_detail_id, refund_reference=refund_reference
    ).first()


def _replay(existing: OrderRefund, *, scope: str, amount: Decimal | None) -> OrderRefund:
    """
    A retried request returns the refund it already produced. Reusing the
    key for a different refund is rejected rather than applied.
    """
    if existing.refund_type != scope or (amount is not None and existing.refund_amount != amount):
        raise RefundReferenceConflictError(
            f"refund_reference '{existing.refund_reference}' was already used on order item "
            f"{existing.order_item_detail_id} for a {existing.refund_type} refund of "
            f"{existing.refund_amount}"
        )
    logger.info(
        "Refund replay returned existing refund",
        extra={
            "refund_number": existing.refund_number,
            "refund_reference": existing.refund_reference,
        },
    )
    return existing


@transaction.atomic
def _apply_refund(
    *,
    order_item_detail_id,
    scope: str,
    amount: Decimal | None,
    refund_reference: str,
    reason: str,
    processed_by: str,
) -> OrderRefund:
    item = OrderItemDetail.objects.select_for_update().get(pk=order_item_detail_id)

    # Checked under the line lock, before the state checks: the retry of the
    # refund that emptied the line must replay, not fail as already refunded
    existing = _existing_refund(item.id, refund_reference)
    if existing is not None:
        return _replay(existing, scope=scope, amount=amount)

    if item.is_refunded:
        raise AlreadyRefundedError(f"Order item {item.id} has already been fully refunded")

    remaining = remaining_figures(item)
    if remaining.amount <= ZERO:
        raise InvalidAmountError(f"Order item {item.id} has nothing left to refund")

    if scope == SCOPE_FULL:
        figures = remaining
    else:
        if amount > remaining.amount:
            raise OverRefundError(
                f"Refund of {amount} exceeds the refundable remainder {remaining.amount} "
                f"(line total {item.line_total})"
            )
        figures = derive_partial_reversal(item, amount, remaining)

    now = timezone.now()
    order = Order.objects.select_for_update().get(pk=item.order_id)

    # ---- line bookkeeping ----
    item.refunded_amount = item.refunded_amount + figures.amount
    update_fields = ["refunded_amount", "is_refunded"]
    if item.refunded_amount >= item.line_total:
        item.refunded_at = now
        update_fields.append("refunded_at")
    item.save(update_fields=update_fields)

    # ---- order counters ----
    order.refunded_total = order.refunded_total + figures.amount
    order.refunded_merchant_payout = order.refunded_merchant_payout + figures.merchant_payout
    order.refunded_commission_total = (
        order.refunded_commission_total + figures.commission_total
    )
    reversed_delivery_fee = ZERO
    if _order_fully_refunded(order):
        reversed_delivery_fee = order.delivery_fee - order.refunded_delivery_fee
        order.refunded_delivery_fee = order.delivery_fee
        order.is_fully_refunded = True
    order.save(
        update_fields=[
            "refunded_total",
            "refunded_merchant_payout",
            "refunded_commission_total",
            "refunded_delivery_fee",
            "is_fully_refunded",
            "updated_at",
        ]
    )

    refund = OrderRefund.objects.create(
        order=order,
        order_item_detail=item,
        refund_type=scope,
        refund_amount=figures.amount,
        original_line_total=item.line_total,
        original_subtotal_ex_vat=item.line_subtotal_ex_vat,
        original_vat_amount=item.line_vat_amount,
        original_commission_ex_vat=item.commission_ex_vat,
        original_commission_vat=item.commission_vat,
        original_commission_total=item.commission_total,
        original_merchant_payout=item.merchant_payout,
        reversed_subtotal_ex_vat=figures.subtotal_ex_vat,
        reversed_vat_amount=figures.vat_amount,
        reversed_commission_ex_vat=figures.commission_ex_vat,
        reversed_commission_vat=figures.commission_vat,
        reversed_commission_total=figures.commission_total,
        reversed_merchant_payout=figures.merchant_payout,
        reversed_delivery_fee=reversed_delivery_fee,
        refund_reference=refund_reference,
        reason=reason,
        processed_by=processed_by,
        processed_at=now,
    )

    journal_entry = post_refund_reversal(refund=refund, created_by=processed_by)
    if journal_entry is not None:
        refund.journal_entry = journal_entry
        refund.save(update_fields=["journal_entry"])

    record_refund_adjustment(refund=refund)
    return refund


def refund_line(
    *,
    order_item_detail_id,
    scope: str,
    partial_amount=None,
    refund_reference: str | None = None,
    reason: str | None = None,
    processed_by=None,
) -> OrderRefund:
    """
    Refund one order line.

    scope: "full" (reverse whatever remains on the line) or
           "partial" (partial_amount, VAT inclusive, at most 2 decimals)

    refund_reference: retry key. A second call with the same key on the
    same line returns the first refund; reusing it for a different scope
    or amount raises RefundReferenceConflictError.

    Raises AlreadyRefundedError, OverRefundError, InvalidAmountError,
    RefundReferenceConflictError, OrderItemDetail.DoesNotExist,
    PersistenceFailure.
    """
    scope = (scope or "").strip().lower()
    if scope not in (SCOPE_FULL, SCOPE_PARTIAL):
        raise InvalidAmountError(f"Invalid refund scope: {scope!r}")

    amount = _parse_partial_amount(partial_amount) if scope == SCOPE_PARTIAL else None
    refund_reference = (refund_reference or "").strip()

    processed_by = str(getattr(processed_by, "username", processed_by) or "").strip()

    try:
        refund = _apply_refund(
            order_item_detail_id=order_item_detail_id,
            scope=scope,
            amount=amount,
            refund_reference=refund_reference,
            reason=(reason or "").strip(),
            processed_by=processed_by,
        )
    except IntegrityError as exc:
        # Lost a race against a concurrent request carrying the same key
        existing = _existing_refund(order_item_detail_id, refund_reference)
        if existing is not None:
            return _replay(existing, scope=scope, amount=amount)
        # Lost the race for the single full refund a line may have
        if scope == SCOPE_FULL and OrderRefund.objects.filter(
            order_item_detail_id=order_item_detail_id,
            refund_type=SCOPE_FULL,
        ).exists():
            raise AlreadyRefundedError(
                f"Order item {order_item_detail_id} has already been fully refunded"
            ) from exc
        logger.exception(
            "Refund rolled back",
            extra={"order_item_detail_id": str(order_item_detail_id)},
        )
        raise PersistenceFailure("Refund could not be recorded, please retry") from exc
    except (DatabaseError, ValidationError) as exc:
        logger.exception(
            "Refund rolled back",
            extra={"order_item_detail_id": str(order_item_detail_id)},
        )
        raise PersistenceFailure("Refund could not be recorded, please retry") from exc

    logger.info(
        "Refund processed",
        extra={
            "refund_number": refund.refund_number,
            "order_id": str(refund.order_id),
            "refund_type": refund.refund_type,
            "refund_amount": str(refund.refund_amount),
            "reversed_delivery_fee": str(refund.reversed_delivery_fee),
        },
    )
    return refund
