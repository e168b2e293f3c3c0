"""
======================================================
PATH: orders/migrations/0001_initial.py
======================================================
MIGRATION: ORDER FINANCIAL SNAPSHOT STORE

Creates:
- CommissionSetting / TaxSetting (rate configuration)
- Order (snapshot header + refund counters)
- OrderItemDetail (per-line snapshot)
- OrderRefund (append-only reversal ledger, one FULL refund per line)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14, **kwargs)


def rate():
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("accounting", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="CommissionSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                (
                    "applies_to",
                    models.CharField(
                        db_index=True,
                        default="platform",
                        help_text="platform / tax / payment_gateway or a custom fee type",
                        max_length=50,
                    ),
                ),
                ("percentage", rate()),
                ("fixed_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Commission Setting",
                "verbose_name_plural": "Commission Settings",
                "ordering": ["applies_to", "-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="TaxSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("percentage", rate()),
                ("applies_to_products", models.BooleanField(default=True)),
                ("applies_to_delivery", models.BooleanField(default=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Tax Setting",
                "verbose_name_plural": "Tax Settings",
                "ordering": ["-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_number", models.CharField(blank=True, max_length=40, unique=True)),
                (
                    "checkout_reference",
                    models.CharField(
                        blank=True,
                        help_text="Idempotency key supplied by the checkout flow",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                ("store_id", models.CharField(db_index=True, max_length=64)),
                ("customer_id", models.CharField(db_index=True, max_length=64)),
                ("courier_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                (
                    "payment_method",
                    models.CharField(default="cash", help_text="cash/card/bank_transfer/online", max_length=32),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("new", "New"),
                            ("accepted_by_merchant", "Accepted by merchant"),
                            ("preparing", "Preparing"),
                            ("ready", "Ready"),
                            ("assigned_to_courier", "Assigned to courier"),
                            ("picked_up", "Picked up"),
                            ("on_the_way", "On the way"),
                            ("delivered", "Delivered"),
                            ("cancelled", "Cancelled"),
                            ("failed", "Failed"),
                        ],
                        default="new",
                        max_length=32,
                    ),
                ),
                ("vat_rate", rate()),
                ("delivery_vat_rate", rate()),
                ("commission_rate", rate()),
                ("subtotal_inc_vat", money()),
                ("subtotal_ex_vat", money()),
                ("vat_on_products", money()),
                ("delivery_fee", money(help_text="Delivery fee, VAT inclusive")),
                ("delivery_fee_ex_vat", money()),
                ("vat_on_delivery", money()),
                ("commission_total", money()),
                ("commission_ex_vat", money()),
                ("commission_vat", money()),
                ("merchant_payout", money()),
                ("order_total", money()),
                ("refunded_total", money()),
                ("refunded_merchant_payout", money()),
                ("refunded_commission_total", money()),
                ("refunded_delivery_fee", money()),
                ("is_fully_refunded", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                (
                    "journal_entry",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="accounting.journalentry",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["store_id", "status"], name="idx_order_store_status"),
                    models.Index(fields=["courier_id", "status"], name="idx_order_courier_status"),
                    models.Index(fields=["created_at"], name="idx_order_created_at"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItemDetail",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("product_id", models.CharField(blank=True, default="", max_length=64)),
                ("product_name", models.CharField(blank=True, default="", max_length=255)),
                ("quantity", models.PositiveIntegerField()),
                ("unit_price_inc_vat", money()),
                ("unit_price_ex_vat", money()),
                ("vat_rate", rate()),
                ("commission_rate", rate()),
                ("line_subtotal_ex_vat", money()),
                ("line_vat_amount", money()),
                ("line_total", money(help_text="Tax-inclusive line total (what the customer paid)")),
                ("commission_ex_vat", money()),
                ("commission_vat", money()),
                ("commission_total", money()),
                ("merchant_payout", money()),
                ("refunded_amount", money(help_text="Cumulative tax-inclusive amount refunded")),
                ("is_refunded", models.BooleanField(default=False)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["order"], name="idx_item_order"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderRefund",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("refund_number", models.CharField(blank=True, max_length=40, unique=True)),
                (
                    "refund_type",
                    models.CharField(choices=[("full", "Full"), ("partial", "Partial")], max_length=16),
                ),
                (
                    "status",
                    models.CharField(choices=[("processed", "Processed")], default="processed", max_length=16),
                ),
                ("refund_amount", money(help_text="Tax-inclusive amount returned to the customer for the line")),
                ("original_line_total", money()),
                ("original_subtotal_ex_vat", money()),
                ("original_vat_amount", money()),
                ("original_commission_ex_vat", money()),
                ("original_commission_vat", money()),
                ("original_commission_total", money()),
                ("original_merchant_payout", money()),
                ("reversed_subtotal_ex_vat", money()),
                ("reversed_vat_amount", money()),
                ("reversed_commission_ex_vat", money()),
                ("reversed_commission_vat", money()),
                ("reversed_commission_total", money()),
                ("reversed_merchant_payout", money()),
                (
                    "reversed_delivery_fee",
                    money(help_text="Delivery fee returned when this refund completes a full-order refund"),
                ),
                ("reason", models.TextField(blank=True, default="")),
                ("processed_by", models.CharField(blank=True, default="", max_length=150)),
                ("processed_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "journal_entry",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="accounting.journalentry",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="orders.order",
                    ),
                ),
                (
                    "order_item_detail",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="orders.orderitemdetail",
                    ),
                ),
            ],
            options={
                "ordering": ["processed_at"],
                "indexes": [
                    models.Index(fields=["order", "processed_at"], name="idx_refund_order"),
                    models.Index(fields=["order_item_detail", "processed_at"], name="idx_refund_item"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("refund_type", "full")),
                        fields=("order_item_detail",),
                        name="uniq_full_refund_per_line",
                    ),
                ],
            },
        ),
    ]
