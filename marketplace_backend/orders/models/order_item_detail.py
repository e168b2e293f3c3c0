# orders/models/order_item_detail.py

"""
======================================================
PATH: orders/models/order_item_detail.py
======================================================
ORDER ITEM DETAIL (PER-LINE FINANCIAL SNAPSHOT)

Audit trail of one cart line at order-creation time.

Design guarantees:
- Numeric snapshot fields are never edited in place.
- The only mutations are refund bookkeeping:
    • refunded_amount grows (never beyond line_total)
    • is_refunded flips to True once refunded_amount reaches line_total
    • refunded_at is stamped when the line becomes fully refunded
- Corrections live in OrderRefund rows.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from .order import ZERO, Order, _money_field, _rate_field


class OrderItemDetail(models.Model):
    REFUND_UNREFUNDED = "unrefunded"
    REFUND_PARTIAL = "partially_refunded"
    REFUND_FULL = "fully_refunded"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name="items",
    )

    product_id = models.CharField(max_length=64, blank=True, default="")
    product_name = models.CharField(max_length=255, blank=True, default="")

    quantity = models.PositiveIntegerField()

    unit_price_inc_vat = _money_field()
    unit_price_ex_vat = _money_field()

    vat_rate = _rate_field()
    commission_rate = _rate_field()

    line_subtotal_ex_vat = _money_field()
    line_vat_amount = _money_field()
    line_total = _money_field(help_text="Tax-inclusive line total (what the customer paid)")

    commission_ex_vat = _money_field()
    commission_vat = _money_field()
    commission_total = _money_field()

    merchant_payout = _money_field()

    refunded_amount = _money_field(help_text="Cumulative tax-inclusive amount refunded")
    is_refunded = models.BooleanField(default=False)
    refunded_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order"], name="idx_item_order"),
        ]

    SNAPSHOT_FIELDS = (
        "order_id",
        "product_id",
        "product_name",
        "quantity",
        "unit_price_inc_vat",
        "unit_price_ex_vat",
        "vat_rate",
        "commission_rate",
        "line_subtotal_ex_vat",
        "line_vat_amount",
        "line_total",
        "commission_ex_vat",
        "commission_vat",
        "commission_total",
        "merchant_payout",
    )

    def __str__(self):
        return f"{self.product_name or self.product_id} x{self.quantity} | {self.line_total}"

    # --------------------------------------------------
    # READ HELPERS
    # --------------------------------------------------

    @property
    def remaining_refundable(self) -> Decimal:
        return Decimal(self.line_total) - Decimal(self.refunded_amount)

    @property
    def refund_status(self) -> str:
        if self.is_refunded:
            return self.REFUND_FULL
        if Decimal(self.refunded_amount) > ZERO:
            return self.REFUND_PARTIAL
        return self.REFUND_UNREFUNDED

    # --------------------------------------------------
    # IMMUTABILITY
    # --------------------------------------------------

    def _validate_immutable(self, previous: "OrderItemDetail"):
        for field in self.SNAPSHOT_FIELDS:
            if getattr(self, field) != getattr(previous, field):
                raise ValidationError(
                    f"OrderItemDetail snapshot is immutable. Field '{field}' cannot be changed."
                )

        if self.refunded_amount < previous.refunded_amount:
            raise ValidationError("refunded_amount can only grow")
        if previous.is_refunded and not self.is_refunded:
            raise ValidationError("A refunded line cannot be un-refunded")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = OrderItemDetail.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        if self.refunded_amount > self.line_total:
            raise ValidationError("refunded_amount cannot exceed line_total")

        self.is_refunded = self.line_total > ZERO and self.refunded_amount >= self.line_total
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("OrderItemDetail records are immutable and cannot be deleted")
