# orders/services/vat_calculator.py

"""
======================================================
PATH: orders/services/vat_calculator.py
======================================================
VAT / COMMISSION DECOMPOSITION CALCULATOR (PURE)

Turns tax-inclusive cart lines + a tax-inclusive delivery fee into a
fully decomposed breakdown.

Rules:
- All prices are VAT inclusive: ex_vat = inc / (1 + rate/100)
- Every monetary value is rounded half-up to 0.01 at LINE level;
  aggregates are sums of rounded lines (never rounded once at the end)
- line_total is the tax-inclusive input; VAT is the remainder
  (line_total - ex_vat), so ex + VAT == inc holds to the cent
- Commission is charged on the ex-VAT base:
    commission_ex_vat = ex_vat * commission_rate/100
    commission_vat    = commission_ex_vat * vat_rate/100
    merchant_payout   = ex_vat - commission_ex_vat
- Delivery fee is decomposed as a single quantity-1 line (no commission)

No database access, no side effects.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from orders.services.exceptions import InvalidAmountError
from orders.services.rate_provider import RateSnapshot, to_rate

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def round_money(value) -> Decimal:
    return Decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def to_money(value, *, label: str = "amount", exact: bool = False) -> Decimal:
    """
    Parse a non-negative money value and round it to cents.

    exact=True rejects sub-cent input instead of rounding it; used where an
    operator types the amount (refunds, settlements).
    """
    if value is None or value == "" or isinstance(value, bool):
        raise InvalidAmountError(f"{label} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmountError(f"Invalid {label}: {value!r}") from exc
    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid {label}: {value!r}")
    if amount < 0:
        raise InvalidAmountError(f"{label} cannot be negative")
    if exact and amount != round_money(amount):
        raise InvalidAmountError(f"{label} has more than 2 decimal places: {value!r}")
    return round_money(amount)


def _to_quantity(value) -> int:
    if value is None or isinstance(value, bool):
        raise InvalidAmountError("quantity is required")
    try:
        qty = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmountError(f"Invalid quantity: {value!r}") from exc
    if not qty.is_finite() or qty != qty.to_integral_value():
        raise InvalidAmountError(f"quantity must be a whole number (got {value!r})")
    if qty < 0:
        raise InvalidAmountError("quantity cannot be negative")
    return int(qty)


# ============================================================
# PRIMITIVES
# ============================================================


def decompose_inclusive(amount_inc_vat, vat_rate) -> tuple[Decimal, Decimal]:
    """
    Split a VAT-inclusive amount into (ex_vat, vat).

    The denominator is 1 + rate/100 >= 1 for every accepted rate.
    """
    gross = to_money(amount_inc_vat)
    rate = to_rate(vat_rate, label="vat_rate")
    ex_vat = round_money(gross / (Decimal("1") + rate / HUNDRED))
    return ex_vat, gross - ex_vat


def compute_commission(ex_vat, commission_rate, vat_rate) -> tuple[Decimal, Decimal, Decimal]:
    """
    Returns (commission_ex_vat, commission_vat, commission_total).
    """
    base = to_money(ex_vat, label="ex_vat")
    c_rate = to_rate(commission_rate, label="commission_rate")
    v_rate = to_rate(vat_rate, label="vat_rate")

    commission_ex_vat = round_money(base * c_rate / HUNDRED)
    commission_vat = round_money(commission_ex_vat * v_rate / HUNDRED)
    return commission_ex_vat, commission_vat, commission_ex_vat + commission_vat


# ============================================================
# RESULT SHAPES
# ============================================================


@dataclass(frozen=True)
class LineBreakdown:
    product_id: str
    product_name: str
    quantity: int
    unit_price_inc_vat: Decimal
    unit_price_ex_vat: Decimal
    vat_rate: Decimal
    commission_rate: Decimal
    line_subtotal_ex_vat: Decimal
    line_vat_amount: Decimal
    line_total: Decimal
    commission_ex_vat: Decimal
    commission_vat: Decimal
    commission_total: Decimal
    merchant_payout: Decimal


@dataclass(frozen=True)
class OrderBreakdown:
    vat_rate: Decimal
    delivery_vat_rate: Decimal
    commission_rate: Decimal
    subtotal_inc_vat: Decimal
    subtotal_ex_vat: Decimal
    vat_on_products: Decimal
    delivery_fee: Decimal
    delivery_fee_ex_vat: Decimal
    vat_on_delivery: Decimal
    commission_ex_vat: Decimal
    commission_vat: Decimal
    commission_total: Decimal
    merchant_payout: Decimal
    order_total: Decimal
    lines: tuple = field(default_factory=tuple)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["lines"] = [asdict(line) for line in self.lines]
        return data


# ============================================================
# CALCULATOR
# ============================================================


def _line_value(cart_line, key, default=None):
    if isinstance(cart_line, dict):
        return cart_line.get(key, default)
    return getattr(cart_line, key, default)


def calculate_line(cart_line, rates: RateSnapshot) -> LineBreakdown:
    """
    cart_line: {"unit_price_inc_vat", "quantity", "product_id"?, "product_name"?}
    """
    unit_inc = to_money(
        _line_value(cart_line, "unit_price_inc_vat"), label="unit_price_inc_vat"
    )
    quantity = _to_quantity(_line_value(cart_line, "quantity"))

    line_total = round_money(unit_inc * quantity)
    unit_ex, _ = decompose_inclusive(unit_inc, rates.vat_rate)
    line_ex, line_vat = decompose_inclusive(line_total, rates.vat_rate)
    commission_ex_vat, commission_vat, commission_total = compute_commission(
        line_ex, rates.commission_rate, rates.vat_rate
    )

    return LineBreakdown(
        product_id=str(_line_value(cart_line, "product_id", "") or ""),
        product_name=str(_line_value(cart_line, "product_name", "") or ""),
        quantity=quantity,
        unit_price_inc_vat=unit_inc,
        unit_price_ex_vat=unit_ex,
        vat_rate=rates.vat_rate,
        commission_rate=rates.commission_rate,
        line_subtotal_ex_vat=line_ex,
        line_vat_amount=line_vat,
        line_total=line_total,
        commission_ex_vat=commission_ex_vat,
        commission_vat=commission_vat,
        commission_total=commission_total,
        merchant_payout=line_ex - commission_ex_vat,
    )


def calculate_order_breakdown(cart_lines, delivery_fee, rates: RateSnapshot) -> OrderBreakdown:
    lines = tuple(calculate_line(line, rates) for line in (cart_lines or []))

    fee = to_money(delivery_fee if delivery_fee is not None else ZERO, label="delivery_fee")
    fee_ex_vat, fee_vat = decompose_inclusive(fee, rates.delivery_vat_rate)

    subtotal_inc_vat = sum((ln.line_total for ln in lines), ZERO)
    subtotal_ex_vat = sum((ln.line_subtotal_ex_vat for ln in lines), ZERO)
    vat_on_products = sum((ln.line_vat_amount for ln in lines), ZERO)
    commission_ex_vat = sum((ln.commission_ex_vat for ln in lines), ZERO)
    commission_vat = sum((ln.commission_vat for ln in lines), ZERO)
    merchant_payout = sum((ln.merchant_payout for ln in lines), ZERO)

    return OrderBreakdown(
        vat_rate=rates.vat_rate,
        delivery_vat_rate=rates.delivery_vat_rate,
        commission_rate=rates.commission_rate,
        subtotal_inc_vat=subtotal_inc_vat,
        subtotal_ex_vat=subtotal_ex_vat,
        vat_on_products=vat_on_products,
        delivery_fee=fee,
        delivery_fee_ex_vat=fee_ex_vat,
        vat_on_delivery=fee_vat,
        commission_ex_vat=commission_ex_vat,
        commission_vat=commission_vat,
        commission_total=commission_ex_vat + commission_vat,
        merchant_payout=merchant_payout,
        order_total=subtotal_inc_vat + fee,
        lines=lines,
    )
