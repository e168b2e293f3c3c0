# orders/services/rate_provider.py

"""
======================================================
PATH: orders/services/rate_provider.py
======================================================
RATE PROVIDER

Supplies the VAT and commission percentages in force at checkout.

Rules:
- The engine depends on the RateProvider interface only, never on
  configuration rows directly, so it can run with fixed rates in tests.
- SettingsRateProvider reads CommissionSetting / TaxSetting and falls
  back to settings.MARKETPLACE_DEFAULT_* (logged) when rows are missing.
  Checkout never fails because configuration is missing.
- Negative rates are a configuration error (InvalidRateError).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings

from orders.models import CommissionSetting, TaxSetting
from orders.services.exceptions import ConfigurationMissing, InvalidRateError

logger = logging.getLogger(__name__)

DEFAULT_VAT_RATE = Decimal("15.00")
DEFAULT_COMMISSION_RATE = Decimal("10.00")


def to_rate(value, *, label: str = "rate") -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        raise InvalidRateError(f"{label} is required")
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidRateError(f"Invalid {label}: {value!r}") from exc
    if not rate.is_finite():
        raise InvalidRateError(f"Invalid {label}: {value!r}")
    if rate < 0:
        raise InvalidRateError(f"{label} cannot be negative (got {rate})")
    return rate


@dataclass(frozen=True)
class RateSnapshot:
    """
    Percentages captured at checkout and copied onto the order.
    """

    vat_rate: Decimal
    commission_rate: Decimal
    delivery_vat_rate: Decimal

    @classmethod
    def build(cls, vat_rate, commission_rate, delivery_vat_rate=None) -> "RateSnapshot":
        vat = to_rate(vat_rate, label="vat_rate")
        return cls(
            vat_rate=vat,
            commission_rate=to_rate(commission_rate, label="commission_rate"),
            delivery_vat_rate=(
                vat
                if delivery_vat_rate is None
                else to_rate(delivery_vat_rate, label="delivery_vat_rate")
            ),
        )


class RateProvider:
    """
    Interface: current_rates() -> RateSnapshot
    """

    def current_rates(self) -> RateSnapshot:
        raise NotImplementedError


class FixedRateProvider(RateProvider):
    def __init__(self, vat_rate, commission_rate, delivery_vat_rate=None):
        self._snapshot = RateSnapshot.build(vat_rate, commission_rate, delivery_vat_rate)

    def current_rates(self) -> RateSnapshot:
        return self._snapshot


class SettingsRateProvider(RateProvider):
    """
    Reads the active configuration rows.

    - commission: newest active CommissionSetting(applies_to="platform")
    - VAT: newest active TaxSetting that applies to products
    - delivery VAT: same TaxSetting if it applies to delivery, else 0
    """

    def _default_vat_rate(self) -> Decimal:
        return to_rate(
            getattr(settings, "MARKETPLACE_DEFAULT_VAT_RATE", DEFAULT_VAT_RATE),
            label="MARKETPLACE_DEFAULT_VAT_RATE",
        )

    def _default_commission_rate(self) -> Decimal:
        return to_rate(
            getattr(settings, "MARKETPLACE_DEFAULT_COMMISSION_RATE", DEFAULT_COMMISSION_RATE),
            label="MARKETPLACE_DEFAULT_COMMISSION_RATE",
        )

    def _load_commission(self) -> Decimal:
        row = (
            CommissionSetting.objects.filter(
                applies_to=CommissionSetting.APPLIES_PLATFORM, is_active=True
            )
            .order_by("-updated_at", "-id")
            .first()
        )
        if row is None:
            raise ConfigurationMissing("No active platform commission setting")
        return to_rate(row.percentage, label=f"commission setting '{row.name}'")

    def _load_tax(self) -> tuple[Decimal, Decimal]:
        row = (
            TaxSetting.objects.filter(is_active=True, applies_to_products=True)
            .order_by("-updated_at", "-id")
            .first()
        )
        if row is None:
            raise ConfigurationMissing("No active tax setting")
        vat = to_rate(row.percentage, label=f"tax setting '{row.name}'")
        delivery_vat = vat if row.applies_to_delivery else Decimal("0.00")
        return vat, delivery_vat

    def current_rates(self) -> RateSnapshot:
        try:
            commission = self._load_commission()
        except ConfigurationMissing as exc:
            commission = self._default_commission_rate()
            logger.warning(
                "Commission configuration missing, using default",
                extra={"reason": str(exc), "commission_rate": str(commission)},
            )

        try:
            vat, delivery_vat = self._load_tax()
        except ConfigurationMissing as exc:
            vat = self._default_vat_rate()
            delivery_vat = vat
            logger.warning(
                "Tax configuration missing, using default",
                extra={"reason": str(exc), "vat_rate": str(vat)},
            )

        return RateSnapshot(
            vat_rate=vat,
            commission_rate=commission,
            delivery_vat_rate=delivery_vat,
        )
