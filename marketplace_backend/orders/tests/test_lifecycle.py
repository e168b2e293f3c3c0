# orders/tests/test_lifecycle.py

from __future__ import annotations

from django.test import TestCase

from accounting.services.account_resolver import clear_active_chart_cache
from orders.models import Order
from orders.services.exceptions import InvalidOrderTransitionError
from orders.services.order_lifecycle import can_transition, transition_order_status
from orders.tests.helpers import deliver, place_order


class TransitionRuleTests(TestCase):
    def test_happy_path_is_allowed(self):
        self.assertTrue(
            can_transition(from_status=Order.STATUS_NEW, to_status=Order.STATUS_ACCEPTED)
        )
        self.assertTrue(
            can_transition(
                from_status=Order.STATUS_ON_THE_WAY, to_status=Order.STATUS_DELIVERED
            )
        )

    def test_skipping_steps_is_not_allowed(self):
        self.assertFalse(
            can_transition(from_status=Order.STATUS_NEW, to_status=Order.STATUS_DELIVERED)
        )

    def test_terminal_states_are_final(self):
        for terminal in (
            Order.STATUS_DELIVERED,
            Order.STATUS_CANCELLED,
            Order.STATUS_FAILED,
        ):
            self.assertFalse(
                can_transition(from_status=terminal, to_status=Order.STATUS_ACCEPTED)
            )


class TransitionServiceTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()
        self.order, _ = place_order()

    def test_full_delivery_path_stamps_delivery(self):
        order = deliver(self.order, courier_id="courier-7")

        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_DELIVERED)
        self.assertEqual(order.courier_id, "courier-7")
        self.assertIsNotNone(order.delivered_at)

    def test_invalid_transition_raises_and_keeps_status(self):
        with self.assertRaises(InvalidOrderTransitionError):
            transition_order_status(order=self.order, target_status=Order.STATUS_DELIVERED)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_NEW)

    def test_assignment_requires_courier(self):
        order = self.order
        for status in (Order.STATUS_ACCEPTED, Order.STATUS_PREPARING, Order.STATUS_READY):
            order = transition_order_status(order=order, target_status=status)

        with self.assertRaises(InvalidOrderTransitionError):
            transition_order_status(order=order, target_status=Order.STATUS_ASSIGNED)

    def test_cancelled_order_cannot_be_delivered(self):
        order = transition_order_status(order=self.order, target_status=Order.STATUS_CANCELLED)

        with self.assertRaises(InvalidOrderTransitionError):
            transition_order_status(order=order, target_status=Order.STATUS_ACCEPTED)

    def test_transition_leaves_financial_snapshot_untouched(self):
        before = Order.objects.get(pk=self.order.pk)
        order = deliver(self.order)

        order.refresh_from_db()
        for field in Order.SNAPSHOT_FIELDS:
            self.assertEqual(getattr(order, field), getattr(before, field))
