# settlements/models/settlement_item.py

"""
======================================================
PATH: settlements/models/settlement_item.py
======================================================
SETTLEMENT ITEM (LINE-LEVEL PAYOUT BREAKDOWN)

- payout: one delivered order covered by a settlement, with the VAT and
  commission figures behind that portion of the payout
- adjustment: a negative correction produced by a refund on an order
  that was already paid out; settlement stays NULL until it is netted
  against the recipient's next settlement
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from .settlement import RECIPIENT_TYPES, Settlement

ZERO = Decimal("0.00")


def _money_field(**kwargs):
    return models.DecimalField(max_digits=14, decimal_places=2, default=ZERO, **kwargs)


class SettlementItem(models.Model):
    TYPE_PAYOUT = "payout"
    TYPE_ADJUSTMENT = "adjustment"

    TYPE_CHOICES = [
        (TYPE_PAYOUT, "Payout"),
        (TYPE_ADJUSTMENT, "Adjustment"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    settlement = models.ForeignKey(
        Settlement,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="items",
    )

    item_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_PAYOUT)

    recipient_type = models.CharField(max_length=16, choices=RECIPIENT_TYPES)
    recipient_id = models.CharField(max_length=64)

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="settlement_items",
    )

    refund = models.ForeignKey(
        "orders.OrderRefund",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="settlement_adjustments",
    )

    order_total = _money_field()
    tax_amount = _money_field()
    platform_commission = _money_field()
    commission_vat = _money_field()
    net_amount = _money_field(help_text="Amount this item contributes to the payout")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["recipient_type", "recipient_id", "item_type"],
                name="idx_sitem_recipient",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "recipient_type"],
                condition=Q(item_type="payout"),
                name="uniq_payout_item_per_order",
            ),
        ]

    def __str__(self):
        return f"{self.item_type} | {self.recipient_type}:{self.recipient_id} | {self.net_amount}"

    def save(self, *args, **kwargs):
        if self.item_type == self.TYPE_ADJUSTMENT and self.net_amount > ZERO:
            raise ValidationError("Adjustment items must carry a negative or zero net_amount")

        if not self._state.adding:
            previous = SettlementItem.objects.filter(pk=self.pk).first()
            update_fields = set(kwargs.get("update_fields") or ())
            # Only a pending adjustment may be attached to a settlement, once.
            if (
                previous is None
                or previous.settlement_id is not None
                or previous.item_type != self.TYPE_ADJUSTMENT
                or update_fields != {"settlement"}
            ):
                raise ValidationError("SettlementItem records are immutable")

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("SettlementItem records cannot be deleted")
