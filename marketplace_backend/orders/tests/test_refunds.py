# orders/tests/test_refunds.py

from __future__ import annotations

import threading
import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature

from accounting.models.journal import JournalEntry
from accounting.services.account_resolver import clear_active_chart_cache
from orders.models import OrderItemDetail, OrderRefund
from orders.services.exceptions import (
    AlreadyRefundedError,
    InvalidAmountError,
    OverRefundError,
    RefundReferenceConflictError,
)
from orders.services.refund_service import refund_line
from orders.tests.helpers import WIDGET_LINE, place_delivered_order, place_order
from settlements.services.settlement_ledger import outstanding_due


def _refund(item, scope="full", amount=None, **kwargs):
    return refund_line(
        order_item_detail_id=item.id,
        scope=scope,
        partial_amount=amount,
        **kwargs,
    )


class FullRefundTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()

    def test_full_refund_reverses_snapshot_figures_exactly(self):
        place_delivered_order()
        order, items = place_delivered_order(customer_id="customer-2")
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("180.00"))

        refund = _refund(items[0], reason="damaged", processed_by="support-1")

        self.assertEqual(refund.refund_type, OrderRefund.TYPE_FULL)
        self.assertEqual(refund.refund_amount, Decimal("115.00"))
        self.assertEqual(refund.reversed_subtotal_ex_vat, Decimal("100.00"))
        self.assertEqual(refund.reversed_vat_amount, Decimal("15.00"))
        self.assertEqual(refund.reversed_commission_total, Decimal("11.50"))
        self.assertEqual(refund.reversed_merchant_payout, Decimal("90.00"))
        self.assertEqual(refund.processed_by, "support-1")
        self.assertIsNotNone(refund.journal_entry_id)

        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("90.00"))

        item = OrderItemDetail.objects.get(pk=items[0].pk)
        self.assertTrue(item.is_refunded)
        self.assertEqual(item.refund_status, OrderItemDetail.REFUND_FULL)
        self.assertIsNotNone(item.refunded_at)

    def test_second_refund_is_rejected_without_side_effects(self):
        _, items = place_order()
        _refund(items[0])

        refunds_before = OrderRefund.objects.count()
        entries_before = JournalEntry.objects.count()

        with self.assertRaises(AlreadyRefundedError):
            _refund(items[0])
        with self.assertRaises(AlreadyRefundedError):
            _refund(items[0], scope="partial", amount="1.00")

        self.assertEqual(OrderRefund.objects.count(), refunds_before)
        self.assertEqual(JournalEntry.objects.count(), entries_before)

    def test_refunding_last_line_reverses_delivery_fee(self):
        order, items = place_delivered_order(
            lines=[
                dict(WIDGET_LINE),
                {"product_id": "prod-2", "unit_price_inc_vat": "23.00", "quantity": 1},
            ]
        )

        first = _refund(items[0])
        order.refresh_from_db()
        self.assertEqual(first.reversed_delivery_fee, Decimal("0.00"))
        self.assertFalse(order.is_fully_refunded)
        self.assertEqual(outstanding_due("courier", "courier-1"), Decimal("11.50"))

        second = _refund(items[1])
        order.refresh_from_db()
        self.assertEqual(second.reversed_delivery_fee, Decimal("11.50"))
        self.assertEqual(second.total_returned, Decimal("34.50"))
        self.assertTrue(order.is_fully_refunded)
        self.assertEqual(order.refunded_total, Decimal("138.00"))
        self.assertEqual(order.refunded_delivery_fee, Decimal("11.50"))
        self.assertEqual(outstanding_due("courier", "courier-1"), Decimal("0.00"))
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("0.00"))

    def test_missing_item_raises_does_not_exist(self):
        with self.assertRaises(OrderItemDetail.DoesNotExist):
            refund_line(order_item_detail_id=uuid.uuid4(), scope="full")


class PartialRefundTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()
        self.order, items = place_order()
        self.item = items[0]

    def test_partial_refund_uses_line_rates(self):
        refund = _refund(self.item, scope="partial", amount="23.00")

        self.assertEqual(refund.refund_type, OrderRefund.TYPE_PARTIAL)
        self.assertEqual(refund.reversed_subtotal_ex_vat, Decimal("20.00"))
        self.assertEqual(refund.reversed_vat_amount, Decimal("3.00"))
        self.assertEqual(refund.reversed_commission_ex_vat, Decimal("2.00"))
        self.assertEqual(refund.reversed_commission_vat, Decimal("0.30"))
        self.assertEqual(refund.reversed_merchant_payout, Decimal("18.00"))

        item = OrderItemDetail.objects.get(pk=self.item.pk)
        self.assertFalse(item.is_refunded)
        self.assertEqual(item.refund_status, OrderItemDetail.REFUND_PARTIAL)
        self.assertEqual(item.remaining_refundable, Decimal("92.00"))

    def test_full_refund_after_partial_reverses_only_the_remainder(self):
        _refund(self.item, scope="partial", amount="23.00")
        refund = _refund(self.item)

        self.assertEqual(refund.refund_amount, Decimal("92.00"))
        self.assertEqual(refund.reversed_subtotal_ex_vat, Decimal("80.00"))
        self.assertEqual(refund.reversed_merchant_payout, Decimal("72.00"))
        self.assertEqual(refund.reversed_delivery_fee, Decimal("11.50"))

        self.order.refresh_from_db()
        self.assertEqual(self.order.refunded_total, Decimal("115.00"))
        self.assertEqual(self.order.refunded_merchant_payout, Decimal("90.00"))
        self.assertEqual(self.order.refunded_commission_total, Decimal("11.50"))

    def test_repeated_partials_exhaust_line_exactly(self):
        _, items = place_order(
            lines=[{"product_id": "p-9", "unit_price_inc_vat": "9.99", "quantity": 1}],
            delivery_fee="0",
        )
        item = items[0]

        refunds = [_refund(item, scope="partial", amount="3.33") for _ in range(3)]

        self.assertEqual(
            sum(r.reversed_subtotal_ex_vat for r in refunds), item.line_subtotal_ex_vat
        )
        self.assertEqual(sum(r.reversed_vat_amount for r in refunds), item.line_vat_amount)
        self.assertEqual(
            sum(r.reversed_commission_ex_vat for r in refunds), item.commission_ex_vat
        )
        self.assertEqual(
            sum(r.reversed_commission_vat for r in refunds), item.commission_vat
        )
        self.assertEqual(
            sum(r.reversed_merchant_payout for r in refunds), item.merchant_payout
        )

        item.refresh_from_db()
        self.assertTrue(item.is_refunded)
        with self.assertRaises(AlreadyRefundedError):
            _refund(item, scope="partial", amount="0.01")

    def test_over_refund_is_rejected(self):
        with self.assertRaises(OverRefundError):
            _refund(self.item, scope="partial", amount="115.01")

        _refund(self.item, scope="partial", amount="100.00")
        with self.assertRaises(OverRefundError):
            _refund(self.item, scope="partial", amount="15.01")

        self.assertEqual(OrderRefund.objects.count(), 1)

    def test_non_positive_and_malformed_amounts_are_rejected(self):
        for bad in ("0", "0.00", "-5", "abc", None):
            with self.assertRaises(InvalidAmountError):
                _refund(self.item, scope="partial", amount=bad)

    def test_unknown_scope_is_rejected(self):
        with self.assertRaises(InvalidAmountError):
            _refund(self.item, scope="everything")

    def test_refund_rows_are_immutable(self):
        refund = _refund(self.item, scope="partial", amount="23.00")

        refund.reason = "changed"
        with self.assertRaises(ValidationError):
            refund.save()
        with self.assertRaises(ValidationError):
            refund.delete()

    def test_line_rates_are_used_not_current_configuration(self):
        _, items = place_order(rates={"vat_rate": "20", "commission_rate": "5"})
        refund = _refund(items[0], scope="partial", amount="24.00")

        self.assertEqual(refund.reversed_subtotal_ex_vat, Decimal("20.00"))
        self.assertEqual(refund.reversed_vat_amount, Decimal("4.00"))
        self.assertEqual(refund.reversed_commission_ex_vat, Decimal("1.00"))


class RefundRetryTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()
        self.order, items = place_order()
        self.item = items[0]

    def test_retried_partial_refund_is_applied_once(self):
        first = _refund(self.item, scope="partial", amount="50.00", refund_reference="RR-1")
        retry = _refund(self.item, scope="partial", amount="50.00", refund_reference="RR-1")

        self.assertEqual(retry.pk, first.pk)
        self.assertEqual(OrderRefund.objects.filter(order_item_detail=self.item).count(), 1)
        self.assertEqual(
            JournalEntry.objects.filter(reference_type=JournalEntry.REFERENCE_REFUND).count(), 1
        )

        item = OrderItemDetail.objects.get(pk=self.item.pk)
        self.assertEqual(item.refunded_amount, Decimal("50.00"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.refunded_total, Decimal("50.00"))

    def test_retry_of_the_refund_that_emptied_the_line_replays(self):
        first = _refund(self.item, refund_reference="RR-FULL")
        retry = _refund(self.item, refund_reference="RR-FULL")

        self.assertEqual(retry.pk, first.pk)
        with self.assertRaises(AlreadyRefundedError):
            _refund(self.item)

    def test_reference_reused_for_a_different_refund_is_rejected(self):
        _refund(self.item, scope="partial", amount="50.00", refund_reference="RR-1")

        with self.assertRaises(RefundReferenceConflictError):
            _refund(self.item, scope="partial", amount="20.00", refund_reference="RR-1")
        with self.assertRaises(RefundReferenceConflictError):
            _refund(self.item, refund_reference="RR-1")

        self.assertEqual(OrderRefund.objects.count(), 1)

    def test_same_reference_on_another_line_is_a_new_refund(self):
        _, other_items = place_order(customer_id="customer-2")

        _refund(self.item, scope="partial", amount="10.00", refund_reference="RR-1")
        _refund(other_items[0], scope="partial", amount="10.00", refund_reference="RR-1")

        self.assertEqual(OrderRefund.objects.count(), 2)

    def test_requests_without_reference_are_independent(self):
        _refund(self.item, scope="partial", amount="10.00")
        _refund(self.item, scope="partial", amount="10.00")

        item = OrderItemDetail.objects.get(pk=self.item.pk)
        self.assertEqual(item.refunded_amount, Decimal("20.00"))

    def test_sub_cent_amount_is_rejected_not_rounded(self):
        with self.assertRaises(InvalidAmountError):
            _refund(self.item, scope="partial", amount="10.005")
        self.assertFalse(OrderRefund.objects.exists())


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentRefundTests(TransactionTestCase):
    def setUp(self):
        clear_active_chart_cache()

    def tearDown(self):
        clear_active_chart_cache()

    def _race(self, item, **kwargs):
        barrier = threading.Barrier(2)
        outcomes = []

        def worker():
            try:
                barrier.wait()
                outcomes.append(_refund(item, **kwargs))
            except Exception as exc:
                outcomes.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return outcomes

    def test_two_full_refunds_of_one_line_apply_once(self):
        _, items = place_delivered_order()

        outcomes = self._race(items[0])

        refunds = [o for o in outcomes if isinstance(o, OrderRefund)]
        errors = [o for o in outcomes if isinstance(o, Exception)]
        self.assertEqual(len(refunds), 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], AlreadyRefundedError)
        self.assertEqual(OrderRefund.objects.filter(order_item_detail=items[0]).count(), 1)
        self.assertEqual(outstanding_due("merchant", "store-1"), Decimal("0.00"))

    def test_two_partial_refunds_never_exceed_the_line(self):
        _, items = place_order()

        outcomes = self._race(items[0], scope="partial", amount="100.00")

        self.assertEqual(sum(isinstance(o, OrderRefund) for o in outcomes), 1)
        self.assertEqual(sum(isinstance(o, OverRefundError) for o in outcomes), 1)
        item = OrderItemDetail.objects.get(pk=items[0].pk)
        self.assertEqual(item.refunded_amount, Decimal("100.00"))
