"""
======================================================
PATH: settlements/migrations/0001_initial.py
======================================================
MIGRATION: SETTLEMENT LEDGER

Creates:
- PayoutRecipient (per-recipient lock row)
- Settlement (payout event, unique payment reference per recipient)
- SettlementItem (payout lines + refund adjustments)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion

RECIPIENT_TYPES = [("merchant", "Merchant"), ("courier", "Courier")]


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14, **kwargs)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("accounting", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PayoutRecipient",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("recipient_type", models.CharField(choices=RECIPIENT_TYPES, max_length=16)),
                ("recipient_id", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("recipient_type", "recipient_id"),
                        name="uniq_payout_recipient",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Settlement",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("settlement_number", models.CharField(blank=True, max_length=40, unique=True)),
                ("recipient_type", models.CharField(choices=RECIPIENT_TYPES, max_length=16)),
                ("recipient_id", models.CharField(max_length=64)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("total_commission_collected", money()),
                ("total_vat_on_commission", money()),
                ("payment_method", models.CharField(default="bank_transfer", max_length=32)),
                ("payment_reference", models.CharField(blank=True, default="", max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("completed", "Completed")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("notes", models.TextField(blank=True, default="")),
                ("settled_by", models.CharField(blank=True, default="", max_length=150)),
                ("settled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
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
                    models.Index(
                        fields=["recipient_type", "recipient_id", "status"],
                        name="idx_settlement_recipient",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("payment_reference", ""), _negated=True),
                        fields=("recipient_type", "recipient_id", "payment_reference"),
                        name="uniq_settlement_payment_reference",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gt", 0)),
                        name="chk_settlement_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SettlementItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "item_type",
                    models.CharField(
                        choices=[("payout", "Payout"), ("adjustment", "Adjustment")],
                        default="payout",
                        max_length=16,
                    ),
                ),
                ("recipient_type", models.CharField(choices=RECIPIENT_TYPES, max_length=16)),
                ("recipient_id", models.CharField(max_length=64)),
                ("order_total", money()),
                ("tax_amount", money()),
                ("platform_commission", money()),
                ("commission_vat", money()),
                ("net_amount", money(help_text="Amount this item contributes to the payout")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlement_items",
                        to="orders.order",
                    ),
                ),
                (
                    "refund",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlement_adjustments",
                        to="orders.orderrefund",
                    ),
                ),
                (
                    "settlement",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="items",
                        to="settlements.settlement",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["recipient_type", "recipient_id", "item_type"],
                        name="idx_sitem_recipient",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("item_type", "payout")),
                        fields=("order", "recipient_type"),
                        name="uniq_payout_item_per_order",
                    ),
                ],
            },
        ),
    ]
