# orders/tests/test_api.py

from __future__ import annotations

from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase
from rest_framework.test import APIClient

from accounting.services.account_resolver import clear_active_chart_cache
from orders.models import Order, OrderRefund
from orders.tests.helpers import place_delivered_order, place_order

User = get_user_model()

CHECKOUT_URL = "/api/orders/checkout/"


def _checkout_payload(**overrides):
    payload = {
        "store_id": "store-1",
        "customer_id": "customer-1",
        "payment_method": "card",
        "delivery_fee": "11.50",
        "items": [
            {
                "product_id": "prod-widget",
                "product_name": "Widget",
                "unit_price_inc_vat": "115.00",
                "quantity": 1,
            }
        ],
    }
    payload.update(overrides)
    return payload


def _refund_url(item_id) -> str:
    return f"/api/orders/items/{item_id}/refund/"


class OrdersApiTestBase(TestCase):
    def setUp(self):
        clear_active_chart_cache()
        self.client = APIClient()
        self.admin = User.objects.create_superuser(
            username="ops", email="ops@example.com", password="pass1234"
        )
        self.client.force_authenticate(self.admin)


# ------------------------------------------------------------
# CHECKOUT
# ------------------------------------------------------------


class CheckoutApiTests(OrdersApiTestBase):
    def test_checkout_creates_snapshotted_order(self):
        resp = self.client.post(CHECKOUT_URL, _checkout_payload(), format="json")

        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["order_total"], "126.50")
        self.assertEqual(resp.data["merchant_payout"], "90.00")
        self.assertEqual(len(resp.data["items"]), 1)
        self.assertEqual(Order.objects.count(), 1)

    def test_checkout_rejects_empty_cart(self):
        resp = self.client.post(CHECKOUT_URL, _checkout_payload(items=[]), format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Order.objects.exists())

    def test_checkout_persistence_failure_maps_to_503(self):
        with mock.patch(
            "orders.services.order_snapshot_service.post_order_capture",
            side_effect=DatabaseError("disk full"),
        ):
            resp = self.client.post(CHECKOUT_URL, _checkout_payload(), format="json")

        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.data["error"]["code"], "persistence_failure")
        self.assertFalse(Order.objects.exists())

    def test_checkout_requires_permission(self):
        clerk = User.objects.create_user(username="clerk", password="pass1234")
        self.client.force_authenticate(clerk)

        resp = self.client.post(CHECKOUT_URL, _checkout_payload(), format="json")
        self.assertEqual(resp.status_code, 403)

    def test_checkout_requires_authentication(self):
        self.client.force_authenticate(None)
        resp = self.client.post(CHECKOUT_URL, _checkout_payload(), format="json")
        self.assertEqual(resp.status_code, 401)


# ------------------------------------------------------------
# ORDERS
# ------------------------------------------------------------


class OrderReadApiTests(OrdersApiTestBase):
    def test_breakdown_returns_decimal_figures(self):
        order, _ = place_order()

        resp = self.client.get(f"/api/orders/{order.id}/breakdown/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["products"]["vat_on_products"], Decimal("15.00"))
        self.assertEqual(resp.data["delivery"]["vat_on_delivery"], Decimal("1.50"))
        self.assertEqual(resp.data["commission"]["commission_total"], Decimal("11.50"))

    def test_list_filters_by_store(self):
        place_order()
        place_order(store_id="store-2")

        resp = self.client.get("/api/orders/", {"store_id": "store-2"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 1)

    def test_transition_moves_order_and_rejects_invalid_steps(self):
        order, _ = place_order()

        resp = self.client.post(
            f"/api/orders/{order.id}/transition/",
            {"status": Order.STATUS_ACCEPTED},
            format="json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["status"], Order.STATUS_ACCEPTED)

        resp = self.client.post(
            f"/api/orders/{order.id}/transition/",
            {"status": Order.STATUS_DELIVERED},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["error"]["code"], "invalid_transition")

    def test_summary(self):
        place_order()
        resp = self.client.get("/api/orders/summary/", {"store_id": "store-1"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["order_count"], 1)
        self.assertEqual(resp.data["gross_revenue"], Decimal("126.50"))


# ------------------------------------------------------------
# REFUNDS
# ------------------------------------------------------------


class RefundApiTests(OrdersApiTestBase):
    def setUp(self):
        super().setUp()
        self.order, items = place_delivered_order()
        self.item = items[0]

    def test_full_refund_then_repeat_is_conflict(self):
        resp = self.client.post(
            _refund_url(self.item.id), {"scope": "full", "reason": "damaged"}, format="json"
        )
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["refund_amount"], "115.00")
        self.assertEqual(resp.data["processed_by"], "ops")

        resp = self.client.post(_refund_url(self.item.id), {"scope": "full"}, format="json")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["error"]["code"], "already_refunded")
        self.assertEqual(OrderRefund.objects.count(), 1)

    def test_partial_refund_requires_amount(self):
        resp = self.client.post(_refund_url(self.item.id), {"scope": "partial"}, format="json")
        self.assertEqual(resp.status_code, 400)

    def test_partial_refund_requires_reference(self):
        resp = self.client.post(
            _refund_url(self.item.id), {"scope": "partial", "amount": "10.00"}, format="json"
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("refund_reference", resp.data)
        self.assertFalse(OrderRefund.objects.exists())

    def test_retried_partial_refund_returns_first_refund(self):
        payload = {"scope": "partial", "amount": "50.00", "refund_reference": "RR-7"}

        first = self.client.post(_refund_url(self.item.id), payload, format="json")
        retry = self.client.post(_refund_url(self.item.id), payload, format="json")

        self.assertEqual(first.status_code, 201, first.data)
        self.assertEqual(retry.status_code, 201, retry.data)
        self.assertEqual(retry.data["id"], first.data["id"])
        self.assertEqual(OrderRefund.objects.count(), 1)

        resp = self.client.post(
            _refund_url(self.item.id),
            {"scope": "partial", "amount": "20.00", "refund_reference": "RR-7"},
            format="json",
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["error"]["code"], "refund_reference_conflict")

    def test_sub_cent_amount_is_bad_request(self):
        resp = self.client.post(
            _refund_url(self.item.id),
            {"scope": "partial", "amount": "10.005", "refund_reference": "RR-1"},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(OrderRefund.objects.exists())

    def test_over_refund_is_conflict(self):
        resp = self.client.post(
            _refund_url(self.item.id),
            {"scope": "partial", "amount": "200.00", "refund_reference": "RR-1"},
            format="json",
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["error"]["code"], "over_refund")

    def test_negative_amount_is_bad_request(self):
        resp = self.client.post(
            _refund_url(self.item.id),
            {"scope": "partial", "amount": "-1.00", "refund_reference": "RR-1"},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["error"]["code"], "invalid_amount")

    def test_unknown_item_is_not_found(self):
        resp = self.client.post(
            _refund_url("00000000-0000-0000-0000-000000000000"),
            {"scope": "full"},
            format="json",
        )
        self.assertEqual(resp.status_code, 404)

    def test_refund_list_filters_by_order(self):
        self.client.post(
            _refund_url(self.item.id),
            {"scope": "partial", "amount": "10.00", "refund_reference": "RR-1"},
            format="json",
        )
        resp = self.client.get("/api/orders/refunds/", {"order": str(self.order.id)})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 1)
