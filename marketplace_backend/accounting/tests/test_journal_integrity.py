# accounting/tests/test_journal_integrity.py

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from accounting.models.account import Account
from accounting.models.chart import ChartOfAccounts
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.services.account_resolver import (
    clear_active_chart_cache,
    get_bank_account,
    get_cash_account,
    get_merchant_payable_account,
)
from accounting.services.exceptions import (
    IdempotencyError,
    JournalEntryCreationError,
    UnbalancedEntryError,
)
from accounting.services.journal_entry_service import record_entry


class JournalEntryIntegrityTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()
        self.cash = get_cash_account()
        self.payable = get_merchant_payable_account()

    def _record(self, *, reference_id=None, debit="100.00", credit="100.00"):
        return record_entry(
            reference_type=JournalEntry.REFERENCE_ORDER,
            reference_id=reference_id or str(uuid.uuid4()),
            lines=[
                {"account": self.cash, "debit": debit},
                {"account": self.payable, "credit": credit},
            ],
            description="test entry",
        )

    # ------------------------------------------------------------
    # BALANCE
    # ------------------------------------------------------------

    def test_balanced_entry_is_recorded_with_lines(self):
        je = self._record()

        self.assertTrue(je.is_balanced)
        self.assertEqual(je.total_debit, Decimal("100.00"))
        self.assertEqual(je.lines.count(), 2)

    def test_unbalanced_entry_is_rejected_and_nothing_persists(self):
        with self.assertRaises(UnbalancedEntryError):
            self._record(debit="100.00", credit="99.99")

        self.assertEqual(JournalEntry.objects.count(), 0)
        self.assertEqual(JournalEntryLine.objects.count(), 0)

    def test_line_with_both_sides_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            record_entry(
                reference_type=JournalEntry.REFERENCE_ORDER,
                reference_id="x-1",
                lines=[
                    {"account": self.cash, "debit": "10.00", "credit": "10.00"},
                ],
            )

    def test_negative_and_empty_lines_are_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            record_entry(
                reference_type=JournalEntry.REFERENCE_ORDER,
                reference_id="x-2",
                lines=[
                    {"account": self.cash, "debit": "-10.00"},
                    {"account": self.payable, "credit": "-10.00"},
                ],
            )
        with self.assertRaises(JournalEntryCreationError):
            record_entry(
                reference_type=JournalEntry.REFERENCE_ORDER,
                reference_id="x-3",
                lines=[],
            )

    def test_unknown_reference_type_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            record_entry(
                reference_type="sale",
                reference_id="x-4",
                lines=[
                    {"account": self.cash, "debit": "1.00"},
                    {"account": self.payable, "credit": "1.00"},
                ],
            )

    def test_cross_chart_entry_is_rejected(self):
        other_chart = ChartOfAccounts.objects.create(
            name="Other Chart", code="other", is_active=False
        )
        foreign = Account.objects.create(
            chart=other_chart,
            code="2000",
            name="Foreign Payable",
            account_type=Account.LIABILITY,
        )

        with self.assertRaises(JournalEntryCreationError):
            record_entry(
                reference_type=JournalEntry.REFERENCE_ORDER,
                reference_id="x-5",
                lines=[
                    {"account": self.cash, "debit": "5.00"},
                    {"account": foreign, "credit": "5.00"},
                ],
            )

    # ------------------------------------------------------------
    # IDEMPOTENCY
    # ------------------------------------------------------------

    def test_same_reference_cannot_be_posted_twice(self):
        ref = str(uuid.uuid4())
        self._record(reference_id=ref)

        with self.assertRaises(IdempotencyError):
            self._record(reference_id=ref)

        self.assertEqual(
            JournalEntry.objects.filter(reference_id=ref).count(), 1
        )

    # ------------------------------------------------------------
    # IMMUTABILITY
    # ------------------------------------------------------------

    def test_entry_and_lines_cannot_be_changed_or_deleted(self):
        je = self._record()
        line = je.lines.first()

        je.description = "edited"
        with self.assertRaises(ValidationError):
            je.save()
        with self.assertRaises(ValidationError):
            je.delete()

        line.description = "edited"
        with self.assertRaises(ValidationError):
            line.save()
        with self.assertRaises(ValidationError):
            line.delete()

    def test_money_values_are_quantized(self):
        bank = get_bank_account()
        je = record_entry(
            reference_type=JournalEntry.REFERENCE_SETTLEMENT,
            reference_id="stl-1",
            lines=[
                {"account": self.payable, "debit": "10.005"},
                {"account": bank, "credit": "10.005"},
            ],
        )
        self.assertEqual(je.total_debit, Decimal("10.01"))
