# orders/models/order.py

"""
======================================================
PATH: orders/models/order.py
======================================================
ORDER (FINANCIAL SNAPSHOT HEADER)

One purchase from one store by one customer.

GUARANTEES:
- Snapshot figures (rates + decomposition) are written once at checkout
  and can never change afterwards.
- Mutated only by status transitions and by the refund engine, which
  bumps the refund counters (never the original figures).
- Never deleted.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

ZERO = Decimal("0.00")


def _money_field(**kwargs):
    return models.DecimalField(max_digits=14, decimal_places=2, default=ZERO, **kwargs)


def _rate_field(**kwargs):
    return models.DecimalField(max_digits=5, decimal_places=2, default=ZERO, **kwargs)


def generate_order_number() -> str:
    return f"ORD-{timezone.now():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class Order(models.Model):
    STATUS_NEW = "new"
    STATUS_ACCEPTED = "accepted_by_merchant"
    STATUS_PREPARING = "preparing"
    STATUS_READY = "ready"
    STATUS_ASSIGNED = "assigned_to_courier"
    STATUS_PICKED_UP = "picked_up"
    STATUS_ON_THE_WAY = "on_the_way"
    STATUS_DELIVERED = "delivered"
    STATUS_CANCELLED = "cancelled"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_NEW, "New"),
        (STATUS_ACCEPTED, "Accepted by merchant"),
        (STATUS_PREPARING, "Preparing"),
        (STATUS_READY, "Ready"),
        (STATUS_ASSIGNED, "Assigned to courier"),
        (STATUS_PICKED_UP, "Picked up"),
        (STATUS_ON_THE_WAY, "On the way"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order_number = models.CharField(max_length=40, unique=True, blank=True)

    checkout_reference = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        help_text="Idempotency key supplied by the checkout flow",
    )

    store_id = models.CharField(max_length=64, db_index=True)
    customer_id = models.CharField(max_length=64, db_index=True)
    courier_id = models.CharField(max_length=64, blank=True, default="", db_index=True)

    payment_method = models.CharField(
        max_length=32,
        default="cash",
        help_text="cash/card/bank_transfer/online",
    )

    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_NEW)

    # Rate snapshot (percentages)
    vat_rate = _rate_field()
    delivery_vat_rate = _rate_field()
    commission_rate = _rate_field()

    # Decomposition snapshot
    subtotal_inc_vat = _money_field()
    subtotal_ex_vat = _money_field()
    vat_on_products = _money_field()
    delivery_fee = _money_field(help_text="Delivery fee, VAT inclusive")
    delivery_fee_ex_vat = _money_field()
    vat_on_delivery = _money_field()
    commission_total = _money_field()
    commission_ex_vat = _money_field()
    commission_vat = _money_field()
    merchant_payout = _money_field()
    order_total = _money_field()

    # Refund counters (maintained by the refund engine only)
    refunded_total = _money_field()
    refunded_merchant_payout = _money_field()
    refunded_commission_total = _money_field()
    refunded_delivery_fee = _money_field()
    is_fully_refunded = models.BooleanField(default=False)

    journal_entry = models.ForeignKey(
        "accounting.JournalEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["store_id", "status"], name="idx_order_store_status"),
            models.Index(fields=["courier_id", "status"], name="idx_order_courier_status"),
            models.Index(fields=["created_at"], name="idx_order_created_at"),
        ]

    SNAPSHOT_FIELDS = (
        "store_id",
        "customer_id",
        "payment_method",
        "vat_rate",
        "delivery_vat_rate",
        "commission_rate",
        "subtotal_inc_vat",
        "subtotal_ex_vat",
        "vat_on_products",
        "delivery_fee",
        "delivery_fee_ex_vat",
        "vat_on_delivery",
        "commission_total",
        "commission_ex_vat",
        "commission_vat",
        "merchant_payout",
        "order_total",
        "created_at",
    )

    def __str__(self):
        return f"{self.order_number} | {self.order_total}"

    # --------------------------------------------------
    # READ HELPERS
    # --------------------------------------------------

    @property
    def net_merchant_payout(self) -> Decimal:
        return Decimal(self.merchant_payout) - Decimal(self.refunded_merchant_payout)

    @property
    def is_delivered(self) -> bool:
        return self.status == self.STATUS_DELIVERED

    # --------------------------------------------------
    # INVARIANTS + IMMUTABILITY
    # --------------------------------------------------

    def _validate_invariants(self):
        checks = (
            ("subtotal_inc_vat", self.subtotal_ex_vat + self.vat_on_products),
            ("delivery_fee", self.delivery_fee_ex_vat + self.vat_on_delivery),
            ("commission_total", self.commission_ex_vat + self.commission_vat),
            ("merchant_payout", self.subtotal_ex_vat - self.commission_ex_vat),
            ("order_total", self.subtotal_inc_vat + self.delivery_fee),
        )
        for field, expected in checks:
            if Decimal(getattr(self, field)) != Decimal(expected):
                raise ValidationError(
                    {field: f"{field} does not reconcile (expected {expected})"}
                )

    def _validate_immutable(self, previous: "Order"):
        for field in self.SNAPSHOT_FIELDS:
            if getattr(self, field) != getattr(previous, field):
                raise ValidationError(
                    f"Order snapshot is immutable. Field '{field}' cannot be changed."
                )

        if self.refunded_total < previous.refunded_total:
            raise ValidationError("Refund counters can only grow")
        if previous.is_fully_refunded and not self.is_fully_refunded:
            raise ValidationError("A fully refunded order cannot be un-refunded")

    def save(self, *args, **kwargs):
        if self._state.adding:
            self._validate_invariants()
        else:
            previous = Order.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        if not self.order_number:
            self.order_number = generate_order_number()

        if self.refunded_total > self.subtotal_inc_vat:
            raise ValidationError("Refunded total cannot exceed the order subtotal")

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Orders are financial records and cannot be deleted")
