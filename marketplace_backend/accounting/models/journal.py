# accounting/models/journal.py

"""
======================================================
PATH: accounting/models/journal.py
======================================================
JOURNAL ENTRY MODEL

Represents a single accounting transaction (journal header).

Guarantees:
- Immutable once created (no updates, no deletes)
- Idempotency via (reference_type, reference_id) uniqueness
- total_debit == total_credit (enforced by the journal engine and a DB check)
- posted_at is the accounting effective date
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


def generate_entry_number() -> str:
    return f"JE-{timezone.now():%Y%m%d}-{uuid.uuid4().hex[:10].upper()}"


class JournalEntry(models.Model):
    REFERENCE_ORDER = "order"
    REFERENCE_SETTLEMENT = "settlement"
    REFERENCE_REFUND = "refund"

    REFERENCE_TYPES = [
        (REFERENCE_ORDER, "Order payment capture"),
        (REFERENCE_SETTLEMENT, "Settlement payout"),
        (REFERENCE_REFUND, "Refund reversal"),
    ]

    entry_number = models.CharField(max_length=40, unique=True, editable=False)

    reference_type = models.CharField(max_length=20, choices=REFERENCE_TYPES)
    reference_id = models.CharField(max_length=64)

    description = models.TextField(blank=True, default="")

    total_debit = models.DecimalField(max_digits=14, decimal_places=2)
    total_credit = models.DecimalField(max_digits=14, decimal_places=2)

    posted_at = models.DateTimeField(
        default=timezone.now,
        help_text="Accounting effective date",
    )

    created_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-posted_at", "-created_at"]
        indexes = [
            models.Index(fields=["posted_at"], name="idx_journal_posted_at"),
            models.Index(fields=["reference_type", "reference_id"], name="idx_journal_reference"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["reference_type", "reference_id"],
                name="uniq_journal_reference",
            ),
            models.CheckConstraint(
                condition=Q(total_debit=F("total_credit")),
                name="chk_journal_balanced",
            ),
        ]
        verbose_name = "Journal Entry"
        verbose_name_plural = "Journal Entries"

    def __str__(self):
        return f"{self.entry_number} ({self.reference_type}:{self.reference_id})"

    @property
    def is_balanced(self) -> bool:
        return Decimal(self.total_debit) == Decimal(self.total_credit)

    def clean(self):
        self.reference_id = str(self.reference_id or "").strip()
        if not self.reference_id:
            raise ValidationError("Journal entry reference_id is required")

        self.description = (self.description or "").strip()

        if self.posted_at and timezone.is_naive(self.posted_at):
            self.posted_at = timezone.make_aware(
                self.posted_at, timezone.get_current_timezone()
            )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("JournalEntry records are immutable once created")

        if not self.entry_number:
            self.entry_number = generate_entry_number()

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("JournalEntry records are immutable and cannot be deleted")
