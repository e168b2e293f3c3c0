# settlements/tests/test_settlement_ledger.py

from __future__ import annotations

import threading
import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature

from accounting.models.journal import JournalEntry
from accounting.services.account_resolver import clear_active_chart_cache
from orders.services.exceptions import InvalidAmountError
from orders.services.refund_service import refund_line
from orders.tests.helpers import place_delivered_order, place_order
from settlements.models import Settlement, SettlementItem
from settlements.services.exceptions import (
    DuplicateSettlementError,
    OverpaymentError,
    SettlementError,
)
from settlements.services.settlement_ledger import (
    create_settlement,
    outstanding_due,
    pending_adjustments,
    recipient_statement,
)


def _settle(amount, *, recipient_type="merchant", recipient_id="store-1", **kwargs):
    kwargs.setdefault("payment_method", "bank_transfer")
    kwargs.setdefault("payment_reference", f"BANK-{uuid.uuid4().hex[:8].upper()}")
    return create_settlement(
        recipient_type=recipient_type,
        recipient_id=recipient_id,
        amount=amount,
        **kwargs,
    )


class OutstandingDueTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()

    def test_only_delivered_orders_count(self):
        place_delivered_order()
        place_order(customer_id="customer-2")

        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("90.00"))
        self.assertEqual(outstanding_due("courier", "courier-1"), Decimal("11.50"))

    def test_unknown_recipient_owes_nothing(self):
        self.assertEqual(outstanding_due("merchant", "store-404"), Decimal("0.00"))

    def test_invalid_recipient_type_is_rejected(self):
        with self.assertRaises(SettlementError):
            outstanding_due("customer", "customer-1")
        with self.assertRaises(SettlementError):
            outstanding_due("merchant", "")


class CreateSettlementTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()
        self.first, _ = place_delivered_order()
        self.second, _ = place_delivered_order(customer_id="customer-2")

    def test_overpayment_is_rejected_and_exact_due_is_settled(self):
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("180.00"))

        with self.assertRaises(OverpaymentError):
            _settle("200.00")
        self.assertFalse(Settlement.objects.exists())

        settlement = _settle("180.00", payment_reference="BANK-001", settled_by="finance")

        self.assertEqual(settlement.status, Settlement.STATUS_COMPLETED)
        self.assertEqual(settlement.total_amount, Decimal("180.00"))
        self.assertEqual(settlement.settled_by, "finance")
        self.assertTrue(settlement.settlement_number.startswith("STL-"))
        self.assertIsNotNone(settlement.journal_entry_id)
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("0.00"))

    def test_items_cover_oldest_orders_first(self):
        settlement = _settle("90.00")

        items = list(settlement.items.all())
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].order_id, self.first.id)
        self.assertEqual(items[0].item_type, SettlementItem.TYPE_PAYOUT)
        self.assertEqual(items[0].net_amount, Decimal("90.00"))
        self.assertEqual(items[0].platform_commission, Decimal("11.50"))
        self.assertEqual(settlement.total_commission_collected, Decimal("11.50"))
        self.assertEqual(settlement.total_vat_on_commission, Decimal("1.50"))

        settlement = _settle("90.00")
        self.assertEqual(settlement.items.get().order_id, self.second.id)

    def test_partial_payment_records_no_items(self):
        settlement = _settle("50.00")

        self.assertEqual(settlement.items.count(), 0)
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("130.00"))

    def test_non_positive_amount_is_rejected(self):
        for bad in ("0", "0.00", "-1"):
            with self.assertRaises(InvalidAmountError):
                _settle(bad)
        self.assertFalse(Settlement.objects.exists())

    def test_duplicate_payment_reference_is_rejected(self):
        _settle("50.00", payment_reference="BANK-009")

        with self.assertRaises(DuplicateSettlementError):
            _settle("50.00", payment_reference="BANK-009")

        self.assertEqual(Settlement.objects.count(), 1)
        self.assertEqual(
            JournalEntry.objects.filter(
                reference_type=JournalEntry.REFERENCE_SETTLEMENT
            ).count(),
            1,
        )

    def test_payout_without_reference_is_rejected(self):
        for missing in ("", "   ", None):
            with self.assertRaises(SettlementError):
                _settle("90.00", payment_reference=missing)
        self.assertFalse(Settlement.objects.exists())

    def test_retried_payout_is_paid_once(self):
        _settle("90.00", payment_reference="BANK-RETRY")

        with self.assertRaises(DuplicateSettlementError):
            _settle("90.00", payment_reference="BANK-RETRY")

        self.assertEqual(Settlement.objects.count(), 1)
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("90.00"))

    def test_sub_cent_amount_is_rejected_not_rounded(self):
        with self.assertRaises(InvalidAmountError):
            _settle("180.004")
        self.assertFalse(Settlement.objects.exists())

    def test_courier_settlement_uses_delivery_fees(self):
        settlement = _settle("23.00", recipient_type="courier", recipient_id="courier-1")

        self.assertEqual(settlement.items.count(), 2)
        self.assertEqual(outstanding_due("courier", "courier-1"), Decimal("0.00"))
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("180.00"))

    def test_completed_settlement_is_immutable(self):
        settlement = _settle("90.00")

        settlement.notes = "edited"
        with self.assertRaises(ValidationError):
            settlement.save()
        with self.assertRaises(ValidationError):
            settlement.delete()
        with self.assertRaises(ValidationError):
            settlement.items.first().delete()


class RefundAdjustmentTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()
        self.order, items = place_delivered_order()
        self.item = items[0]

    def test_refund_before_payout_only_lowers_due(self):
        refund_line(order_item_detail_id=self.item.id, scope="partial", partial_amount="23.00")

        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("72.00"))
        self.assertFalse(pending_adjustments("merchant", "store-1").exists())

    def test_refund_after_payout_creates_adjustment_for_next_settlement(self):
        _settle("90.00")
        refund_line(order_item_detail_id=self.item.id, scope="partial", partial_amount="23.00")

        adjustment = pending_adjustments("merchant", "store-1").get()
        self.assertEqual(adjustment.item_type, SettlementItem.TYPE_ADJUSTMENT)
        self.assertEqual(adjustment.net_amount, Decimal("-18.00"))
        self.assertIsNone(adjustment.settlement_id)
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("-18.00"))

        place_delivered_order(customer_id="customer-2")
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("72.00"))

        settlement = _settle("72.00")
        kinds = sorted(settlement.items.values_list("item_type", flat=True))
        self.assertEqual(kinds, [SettlementItem.TYPE_ADJUSTMENT, SettlementItem.TYPE_PAYOUT])
        self.assertFalse(pending_adjustments("merchant", "store-1").exists())
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("0.00"))

    def test_full_refund_after_courier_payout_adjusts_courier(self):
        _settle("11.50", recipient_type="courier", recipient_id="courier-1")
        refund_line(order_item_detail_id=self.item.id, scope="full")

        adjustment = pending_adjustments("courier", "courier-1").get()
        self.assertEqual(adjustment.net_amount, Decimal("-11.50"))
        self.assertFalse(pending_adjustments("merchant", "store-1").exists())

    def test_statement_reconciles(self):
        place_delivered_order(customer_id="customer-2")
        _settle("90.00", payment_reference="BANK-100")
        refund_line(order_item_detail_id=self.item.id, scope="partial", partial_amount="23.00")

        statement = recipient_statement("merchant", "store-1")
        self.assertEqual(statement["delivered_orders"], 2)
        self.assertEqual(statement["gross_earned"], Decimal("180.00"))
        self.assertEqual(statement["refunded"], Decimal("18.00"))
        self.assertEqual(statement["settled"], Decimal("90.00"))
        self.assertEqual(statement["settlement_count"], 1)
        self.assertEqual(statement["pending_adjustments"], Decimal("-18.00"))
        self.assertEqual(statement["outstanding_due"], Decimal("72.00"))
        self.assertEqual(
            statement["outstanding_due"], outstanding_due("merchant", "store-1")
        )


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentSettlementTests(TransactionTestCase):
    def setUp(self):
        clear_active_chart_cache()
        place_delivered_order()
        place_delivered_order(customer_id="customer-2")

    def tearDown(self):
        clear_active_chart_cache()

    def test_two_payouts_of_the_full_due_settle_once(self):
        barrier = threading.Barrier(2)
        outcomes = []

        def worker(reference):
            try:
                barrier.wait()
                outcomes.append(_settle("180.00", payment_reference=reference))
            except Exception as exc:
                outcomes.append(exc)
            finally:
                connection.close()

        threads = [
            threading.Thread(target=worker, args=(reference,))
            for reference in ("BANK-A", "BANK-B")
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        settled = [o for o in outcomes if isinstance(o, Settlement)]
        rejected = [o for o in outcomes if isinstance(o, OverpaymentError)]
        self.assertEqual(len(settled), 1, outcomes)
        self.assertEqual(len(rejected), 1, outcomes)
        self.assertEqual(Settlement.objects.count(), 1)
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("0.00"))
