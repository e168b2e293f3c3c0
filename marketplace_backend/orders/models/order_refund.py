# orders/models/order_refund.py

"""
======================================================
PATH: orders/models/order_refund.py
======================================================
ORDER REFUND (REVERSAL LEDGER)

Purpose:
- Immutable, append-only record of one refund against one OrderItemDetail.
- Carries the ORIGINAL line figures and the REVERSED portion, so the
  refund math can be audited without recomputing anything.

Design guarantees:
- Append-only (no deletes; the only update allowed is attaching the
  reversing journal entry once)
- At most one FULL refund per line (DB constraint)
- A non-empty refund_reference is unique per line (retry key)
- Multiple partial refunds per line are allowed; over-refunding is
  prevented at service layer
"""

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .order import ZERO, Order, _money_field
from .order_item_detail import OrderItemDetail


def generate_refund_number() -> str:
    return f"RF-{timezone.now():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class OrderRefund(models.Model):
    TYPE_FULL = "full"
    TYPE_PARTIAL = "partial"

    TYPE_CHOICES = [
        (TYPE_FULL, "Full"),
        (TYPE_PARTIAL, "Partial"),
    ]

    STATUS_PROCESSED = "processed"

    STATUS_CHOICES = [
        (STATUS_PROCESSED, "Processed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    refund_number = models.CharField(max_length=40, unique=True, blank=True)

    order = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name="refunds",
    )

    order_item_detail = models.ForeignKey(
        OrderItemDetail,
        on_delete=models.PROTECT,
        related_name="refunds",
    )

    refund_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    status = models.CharField(
        max_length=16, choices=STATUS_CHOICES, default=STATUS_PROCESSED
    )

    refund_amount = _money_field(help_text="Tax-inclusive amount returned to the customer for the line")

    # Original (pre-refund) line figures
    original_line_total = _money_field()
    original_subtotal_ex_vat = _money_field()
    original_vat_amount = _money_field()
    original_commission_ex_vat = _money_field()
    original_commission_vat = _money_field()
    original_commission_total = _money_field()
    original_merchant_payout = _money_field()

    # Reversed portion
    reversed_subtotal_ex_vat = _money_field()
    reversed_vat_amount = _money_field()
    reversed_commission_ex_vat = _money_field()
    reversed_commission_vat = _money_field()
    reversed_commission_total = _money_field()
    reversed_merchant_payout = _money_field()
    reversed_delivery_fee = _money_field(
        help_text="Delivery fee returned when this refund completes a full-order refund"
    )

    refund_reference = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Client-supplied key; a retried request with the same key replays this refund",
    )
    reason = models.TextField(blank=True, default="")
    processed_by = models.CharField(max_length=150, blank=True, default="")
    processed_at = models.DateTimeField(default=timezone.now)

    journal_entry = models.ForeignKey(
        "accounting.JournalEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["processed_at"]
        indexes = [
            models.Index(fields=["order", "processed_at"], name="idx_refund_order"),
            models.Index(fields=["order_item_detail", "processed_at"], name="idx_refund_item"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["order_item_detail"],
                condition=Q(refund_type="full"),
                name="uniq_full_refund_per_line",
            ),
            models.UniqueConstraint(
                fields=["order_item_detail", "refund_reference"],
                condition=~Q(refund_reference=""),
                name="uniq_refund_reference_per_line",
            ),
        ]

    def __str__(self):
        return f"{self.refund_number} | {self.refund_type} | {self.refund_amount}"

    @property
    def total_returned(self):
        return self.refund_amount + self.reversed_delivery_fee

    def _validate_bounds(self):
        pairs = (
            ("reversed_subtotal_ex_vat", "original_subtotal_ex_vat"),
            ("reversed_vat_amount", "original_vat_amount"),
            ("reversed_commission_ex_vat", "original_commission_ex_vat"),
            ("reversed_commission_vat", "original_commission_vat"),
            ("reversed_commission_total", "original_commission_total"),
            ("reversed_merchant_payout", "original_merchant_payout"),
            ("refund_amount", "original_line_total"),
        )
        for reversed_field, original_field in pairs:
            reversed_value = getattr(self, reversed_field)
            if reversed_value < ZERO or reversed_value > getattr(self, original_field):
                raise ValidationError(
                    {reversed_field: f"{reversed_field} must be within 0..{original_field}"}
                )

        if self.refund_amount <= ZERO:
            raise ValidationError({"refund_amount": "refund_amount must be greater than zero"})
        if self.reversed_subtotal_ex_vat + self.reversed_vat_amount != self.refund_amount:
            raise ValidationError("Reversed ex-VAT + VAT must equal the refund amount")

    def save(self, *args, **kwargs):
        if self._state.adding:
            self._validate_bounds()
            if not self.refund_number:
                self.refund_number = generate_refund_number()
        else:
            previous = OrderRefund.objects.filter(pk=self.pk).first()
            update_fields = set(kwargs.get("update_fields") or ())
            if (
                previous is None
                or previous.journal_entry_id is not None
                or update_fields != {"journal_entry"}
            ):
                raise ValidationError("OrderRefund records are immutable once processed")

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("OrderRefund records cannot be deleted")
