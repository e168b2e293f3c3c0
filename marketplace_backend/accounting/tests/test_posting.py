# accounting/tests/test_posting.py

from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient

from accounting.models.account import Account
from accounting.models.chart import ChartOfAccounts
from accounting.models.journal import JournalEntry
from accounting.services.account_resolver import (
    DEFAULT_CHART_CODE,
    clear_active_chart_cache,
    get_active_chart,
    get_commission_revenue_account,
    get_courier_payable_account,
    get_merchant_payable_account,
    get_vat_payable_account,
)
from accounting.services.balance_service import get_account_balance, get_trial_balance
from orders.services.refund_service import refund_line
from orders.services.reporting import summarize_orders
from orders.tests.helpers import place_delivered_order, place_order
from settlements.services.settlement_ledger import create_settlement

User = get_user_model()


def _lines_by_code(entry: JournalEntry) -> dict:
    return {
        line.account.code: (line.debit_amount, line.credit_amount)
        for line in entry.lines.select_related("account")
    }


class OrderCapturePostingTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()

    def test_capture_entry_splits_payment_into_payables_revenue_and_vat(self):
        order, _ = place_order()

        entry = JournalEntry.objects.get(
            reference_type=JournalEntry.REFERENCE_ORDER, reference_id=str(order.id)
        )
        self.assertEqual(order.journal_entry_id, entry.id)
        self.assertEqual(
            _lines_by_code(entry),
            {
                "1000": (Decimal("126.50"), Decimal("0.00")),
                "2000": (Decimal("0.00"), Decimal("90.00")),
                "2010": (Decimal("0.00"), Decimal("11.50")),
                "4000": (Decimal("0.00"), Decimal("10.00")),
                "2100": (Decimal("0.00"), Decimal("15.00")),
            },
        )

    def test_card_payment_moves_through_bank(self):
        order, _ = place_order(payment_method="card")
        entry = JournalEntry.objects.get(reference_id=str(order.id))
        self.assertIn("1010", _lines_by_code(entry))
        self.assertNotIn("1000", _lines_by_code(entry))

    def test_refund_mirrors_capture_and_clears_delivery_when_order_fully_refunded(self):
        order, items = place_order()
        refund = refund_line(order_item_detail_id=items[0].id, scope="full")

        entry = JournalEntry.objects.get(
            reference_type=JournalEntry.REFERENCE_REFUND, reference_id=str(refund.id)
        )
        self.assertEqual(
            _lines_by_code(entry),
            {
                "2000": (Decimal("90.00"), Decimal("0.00")),
                "2010": (Decimal("11.50"), Decimal("0.00")),
                "4000": (Decimal("10.00"), Decimal("0.00")),
                "2100": (Decimal("15.00"), Decimal("0.00")),
                "1000": (Decimal("0.00"), Decimal("126.50")),
            },
        )

        for account in (
            get_merchant_payable_account(),
            get_courier_payable_account(),
            get_vat_payable_account(),
            get_commission_revenue_account(),
        ):
            self.assertEqual(get_account_balance(account), Decimal("0.00"))

    def test_vat_payable_carries_product_vat_only(self):
        place_order()
        place_order()
        summary = summarize_orders()

        self.assertEqual(summary["vat_on_delivery"], Decimal("3.00"))
        self.assertEqual(
            get_account_balance(get_vat_payable_account()), summary["vat_on_products"]
        )
        # Delivery VAT sits inside the gross fee owed to the courier
        self.assertEqual(
            get_account_balance(get_courier_payable_account()), summary["delivery_fees"]
        )
        self.assertNotEqual(
            get_account_balance(get_vat_payable_account()),
            summary["vat_on_products"] + summary["vat_on_delivery"],
        )

    def test_settlement_debits_payable_and_credits_bank(self):
        place_delivered_order()
        settlement = create_settlement(
            recipient_type="merchant",
            recipient_id="store-1",
            amount="90.00",
            payment_method="bank_transfer",
            payment_reference="BANK-001",
        )

        entry = JournalEntry.objects.get(
            reference_type=JournalEntry.REFERENCE_SETTLEMENT,
            reference_id=str(settlement.id),
        )
        self.assertEqual(
            _lines_by_code(entry),
            {
                "2000": (Decimal("90.00"), Decimal("0.00")),
                "1010": (Decimal("0.00"), Decimal("90.00")),
            },
        )
        self.assertEqual(get_account_balance(get_merchant_payable_account()), Decimal("0.00"))

    def test_trial_balance_stays_balanced_across_capture_refund_and_settlement(self):
        place_delivered_order()
        _, items = place_delivered_order(customer_id="customer-2")
        refund_line(order_item_detail_id=items[0].id, scope="partial", partial_amount="23.00")
        create_settlement(
            recipient_type="courier",
            recipient_id="courier-1",
            amount="23.00",
            payment_method="cash",
            payment_reference="CASH-001",
        )

        tb = get_trial_balance(get_active_chart())
        self.assertTrue(tb["is_balanced"])
        self.assertGreater(tb["total_debit"], Decimal("0.00"))


class ChartSeedTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()

    def test_seed_command_is_idempotent(self):
        call_command("seed_marketplace_chart")
        call_command("seed_marketplace_chart")

        chart = ChartOfAccounts.objects.get(code=DEFAULT_CHART_CODE)
        self.assertTrue(chart.is_active)
        self.assertEqual(
            sorted(Account.objects.filter(chart=chart).values_list("code", flat=True)),
            ["1000", "1010", "2000", "2010", "2100", "3000", "4000"],
        )
        self.assertEqual(
            Account.objects.get(chart=chart, code="2010").parent.code, "2000"
        )

    def test_resolver_bootstraps_chart_when_none_is_active(self):
        self.assertFalse(ChartOfAccounts.objects.exists())
        account = get_merchant_payable_account()
        self.assertEqual(account.code, "2000")
        self.assertEqual(account.chart.code, DEFAULT_CHART_CODE)


class AccountingApiTests(TestCase):
    def setUp(self):
        clear_active_chart_cache()
        self.client = APIClient()
        self.admin = User.objects.create_superuser(
            username="finance", email="finance@example.com", password="pass1234"
        )
        self.viewer = User.objects.create_user(username="viewer", password="pass1234")

    def test_trial_balance_requires_permission(self):
        self.client.force_authenticate(self.viewer)
        resp = self.client.get("/api/accounting/trial-balance/")
        self.assertEqual(resp.status_code, 403)

    def test_trial_balance_reports_chart_and_balance(self):
        place_order()
        self.client.force_authenticate(self.admin)

        resp = self.client.get("/api/accounting/trial-balance/")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["is_balanced"])
        self.assertEqual(resp.data["chart"]["code"], DEFAULT_CHART_CODE)
        self.assertEqual(resp.data["total_debit"], Decimal("126.50"))

    def test_trial_balance_rejects_bad_as_of(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.get("/api/accounting/trial-balance/", {"as_of": "yesterday"})
        self.assertEqual(resp.status_code, 400)

    def test_journal_entries_filter_by_reference(self):
        order, _ = place_order()
        place_order(customer_id="customer-2")
        self.client.force_authenticate(self.admin)

        resp = self.client.get(
            "/api/accounting/journal-entries/",
            {"reference_type": "order", "reference_id": str(order.id)},
        )
        self.assertEqual(resp.status_code, 200)
        results = resp.data["results"] if isinstance(resp.data, dict) else resp.data
        self.assertEqual(len(results), 1)
        self.assertEqual(len(results[0]["lines"]), 5)

    def test_accounts_listing_returns_active_chart(self):
        get_active_chart()
        self.client.force_authenticate(self.admin)
        resp = self.client.get("/api/accounting/accounts/")
        self.assertEqual(resp.status_code, 200)
