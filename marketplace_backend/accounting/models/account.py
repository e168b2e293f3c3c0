# accounting/models/account.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.chart import ChartOfAccounts


class Account(models.Model):
    """
    A ledger account inside one chart, addressed by its code ("2000").

    Sub-accounts (Courier Payables under Merchant Payables) must live in
    the same chart as their parent.
    """

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    ACCOUNT_TYPES = [
        (ASSET, "Asset"),
        (LIABILITY, "Liability"),
        (EQUITY, "Equity"),
        (REVENUE, "Revenue"),
        (EXPENSE, "Expense"),
    ]

    DEBIT = "debit"
    CREDIT = "credit"
    DEBIT_NORMAL_TYPES = frozenset({ASSET, EXPENSE})

    chart = models.ForeignKey(ChartOfAccounts, on_delete=models.PROTECT, related_name="accounts")
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )

    code = models.CharField(max_length=10)
    name = models.CharField(max_length=150)
    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPES)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        verbose_name = "Account"
        verbose_name_plural = "Accounts"
        indexes = [
            models.Index(fields=["chart", "code"], name="idx_account_chart_code"),
            models.Index(fields=["chart", "account_type"], name="idx_account_chart_type"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["chart", "code"], name="uniq_account_chart_code"),
            models.CheckConstraint(condition=~Q(code=""), name="chk_account_code_not_blank"),
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    @property
    def normal_side(self) -> str:
        return self.DEBIT if self.account_type in self.DEBIT_NORMAL_TYPES else self.CREDIT

    def clean(self):
        self.code = (self.code or "").strip()
        self.name = (self.name or "").strip()

        errors = {}
        if not self.code:
            errors["code"] = "Account code is required."
        if not self.name:
            errors["name"] = "Account name is required."
        if self.parent_id and self.parent.chart_id != self.chart_id:
            errors["parent"] = "Parent account belongs to a different chart."
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
