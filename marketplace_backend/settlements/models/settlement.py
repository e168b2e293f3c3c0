# settlements/models/settlement.py

"""
======================================================
PATH: settlements/models/settlement.py
======================================================
SETTLEMENT (PAYOUT EVENT)

One payout to one recipient (merchant store or courier).

GUARANTEES:
- Immutable once completed (the payout journal entry may be attached once)
- payment_reference is unique per recipient (the ledger requires one)
- Only settlements.services.settlement_ledger creates rows
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

ZERO = Decimal("0.00")

RECIPIENT_MERCHANT = "merchant"
RECIPIENT_COURIER = "courier"

RECIPIENT_TYPES = [
    (RECIPIENT_MERCHANT, "Merchant"),
    (RECIPIENT_COURIER, "Courier"),
]


def generate_settlement_number() -> str:
    return f"STL-{timezone.now():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class PayoutRecipient(models.Model):
    """
    One row per (recipient_type, recipient_id).

    Locked with select_for_update so settlements for the same recipient
    are serialized.
    """

    recipient_type = models.CharField(max_length=16, choices=RECIPIENT_TYPES)
    recipient_id = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["recipient_type", "recipient_id"],
                name="uniq_payout_recipient",
            ),
        ]

    def __str__(self):
        return f"{self.recipient_type}:{self.recipient_id}"


class Settlement(models.Model):
    STATUS_PENDING = "pending"
    STATUS_COMPLETED = "completed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_COMPLETED, "Completed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    settlement_number = models.CharField(max_length=40, unique=True, blank=True)

    recipient_type = models.CharField(max_length=16, choices=RECIPIENT_TYPES)
    recipient_id = models.CharField(max_length=64)

    total_amount = models.DecimalField(max_digits=14, decimal_places=2)
    total_commission_collected = models.DecimalField(
        max_digits=14, decimal_places=2, default=ZERO
    )
    total_vat_on_commission = models.DecimalField(
        max_digits=14, decimal_places=2, default=ZERO
    )

    payment_method = models.CharField(max_length=32, default="bank_transfer")
    payment_reference = models.CharField(max_length=100, blank=True, default="")

    status = models.CharField(
        max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING
    )

    notes = models.TextField(blank=True, default="")
    settled_by = models.CharField(max_length=150, blank=True, default="")
    settled_at = models.DateTimeField(null=True, blank=True)

    journal_entry = models.ForeignKey(
        "accounting.JournalEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient_type", "recipient_id", "status"],
                name="idx_settlement_recipient",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["recipient_type", "recipient_id", "payment_reference"],
                condition=~Q(payment_reference=""),
                name="uniq_settlement_payment_reference",
            ),
            models.CheckConstraint(
                condition=Q(total_amount__gt=0),
                name="chk_settlement_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.settlement_number} | {self.recipient_type}:{self.recipient_id} | {self.total_amount}"

    @property
    def is_completed(self) -> bool:
        return self.status == self.STATUS_COMPLETED

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = Settlement.objects.filter(pk=self.pk).first()
            if previous is not None and previous.status == self.STATUS_COMPLETED:
                update_fields = set(kwargs.get("update_fields") or ())
                if previous.journal_entry_id is not None or update_fields != {"journal_entry"}:
                    raise ValidationError("Completed settlements are immutable")

        if not self.settlement_number:
            self.settlement_number = generate_settlement_number()

        if self.status == self.STATUS_COMPLETED and not self.settled_at:
            self.settled_at = timezone.now()

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Settlements cannot be deleted")
