"""
======================================================
PATH: accounting/migrations/0001_initial.py
======================================================
MIGRATION: CHART OF ACCOUNTS + DOUBLE-ENTRY JOURNAL

Creates:
- ChartOfAccounts (single active chart)
- Account (per-chart codes, optional parent)
- JournalEntry (balanced, idempotent per reference)
- JournalEntryLine (one side per line)
"""

from __future__ import annotations

from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ChartOfAccounts",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True)),
                (
                    "code",
                    models.SlugField(
                        max_length=64,
                        unique=True,
                        help_text="Lookup key for the resolver and seed command (e.g. marketplace_standard).",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Chart of Accounts",
                "verbose_name_plural": "Charts of Accounts",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=10)),
                ("name", models.CharField(max_length=150)),
                (
                    "account_type",
                    models.CharField(
                        choices=[
                            ("ASSET", "Asset"),
                            ("LIABILITY", "Liability"),
                            ("EQUITY", "Equity"),
                            ("REVENUE", "Revenue"),
                            ("EXPENSE", "Expense"),
                        ],
                        max_length=20,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "chart",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="accounts",
                        to="accounting.chartofaccounts",
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="children",
                        to="accounting.account",
                    ),
                ),
            ],
            options={
                "verbose_name": "Account",
                "verbose_name_plural": "Accounts",
                "ordering": ["code"],
                "indexes": [
                    models.Index(fields=["chart", "code"], name="idx_account_chart_code"),
                    models.Index(fields=["chart", "account_type"], name="idx_account_chart_type"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("chart", "code"), name="uniq_account_chart_code"),
                    models.CheckConstraint(condition=models.Q(("code", ""), _negated=True), name="chk_account_code_not_blank"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "entry_number",
                    models.CharField(
                        editable=False,
                        max_length=40,
                        unique=True,
                    ),
                ),
                (
                    "reference_type",
                    models.CharField(
                        choices=[
                            ("order", "Order payment capture"),
                            ("settlement", "Settlement payout"),
                            ("refund", "Refund reversal"),
                        ],
                        max_length=20,
                    ),
                ),
                ("reference_id", models.CharField(max_length=64)),
                ("description", models.TextField(blank=True, default="")),
                ("total_debit", models.DecimalField(decimal_places=2, max_digits=14)),
                ("total_credit", models.DecimalField(decimal_places=2, max_digits=14)),
                (
                    "posted_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="Accounting effective date",
                    ),
                ),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Journal Entry",
                "verbose_name_plural": "Journal Entries",
                "ordering": ["-posted_at", "-created_at"],
                "indexes": [
                    models.Index(fields=["posted_at"], name="idx_journal_posted_at"),
                    models.Index(fields=["reference_type", "reference_id"], name="idx_journal_reference"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("reference_type", "reference_id"), name="uniq_journal_reference"),
                    models.CheckConstraint(condition=models.Q(("total_debit", models.F("total_credit"))), name="chk_journal_balanced"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntryLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("debit_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("credit_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="journal_lines",
                        to="accounting.account",
                    ),
                ),
                (
                    "journal_entry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lines",
                        to="accounting.journalentry",
                    ),
                ),
            ],
            options={
                "verbose_name": "Journal Entry Line",
                "verbose_name_plural": "Journal Entry Lines",
                "ordering": ["id"],
                "indexes": [
                    models.Index(fields=["account"], name="idx_jline_account"),
                    models.Index(fields=["journal_entry"], name="idx_jline_entry"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(("credit_amount", 0), ("debit_amount__gt", 0))
                            | models.Q(("credit_amount__gt", 0), ("debit_amount", 0))
                        ),
                        name="chk_journal_line_one_side",
                    ),
                ],
            },
        ),
    ]
