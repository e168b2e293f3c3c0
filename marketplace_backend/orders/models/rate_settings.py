# orders/models/rate_settings.py

"""
======================================================
PATH: orders/models/rate_settings.py
======================================================
RATE CONFIGURATION (COMMISSION + TAX)

Mutable configuration rows read by the rate provider at checkout.
Orders snapshot the values they used, so editing these rows never
changes historical orders.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


def _validate_percentage(value):
    if value is None:
        raise ValidationError({"percentage": "percentage is required"})
    if Decimal(value) < 0:
        raise ValidationError({"percentage": "percentage cannot be negative"})
    if Decimal(value) > 100:
        raise ValidationError({"percentage": "percentage cannot exceed 100"})


class CommissionSetting(models.Model):
    APPLIES_PLATFORM = "platform"
    APPLIES_TAX = "tax"
    APPLIES_PAYMENT_GATEWAY = "payment_gateway"

    name = models.CharField(max_length=100)

    applies_to = models.CharField(
        max_length=50,
        db_index=True,
        default=APPLIES_PLATFORM,
        help_text="platform / tax / payment_gateway or a custom fee type",
    )

    percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )
    fixed_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["applies_to", "-updated_at"]
        verbose_name = "Commission Setting"
        verbose_name_plural = "Commission Settings"

    def __str__(self):
        return f"{self.name} ({self.applies_to}) {self.percentage}%"

    def clean(self):
        self.name = (self.name or "").strip()
        self.applies_to = (self.applies_to or "").strip().lower()
        if not self.name:
            raise ValidationError({"name": "name is required"})
        if not self.applies_to:
            raise ValidationError({"applies_to": "applies_to is required"})
        _validate_percentage(self.percentage)
        if self.fixed_amount is not None and self.fixed_amount < 0:
            raise ValidationError({"fixed_amount": "fixed_amount cannot be negative"})


class TaxSetting(models.Model):
    name = models.CharField(max_length=100)

    percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )

    applies_to_products = models.BooleanField(default=True)
    applies_to_delivery = models.BooleanField(default=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]
        verbose_name = "Tax Setting"
        verbose_name_plural = "Tax Settings"

    def __str__(self):
        return f"{self.name} {self.percentage}%"

    def clean(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError({"name": "name is required"})
        _validate_percentage(self.percentage)
