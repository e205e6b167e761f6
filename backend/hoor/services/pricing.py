# Overview: Pure cart arithmetic shared by checkout, purchase receipt and exchanges.

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from ..errors import ValidationError

"""
Cart math (authoritative)

- line_total = qty * unit_price - line_discount
- subtotal = sum(line_total)
- discount_amount = subtotal * pct / 100 in percent mode, else the flat amount
- tax_amount = (subtotal - discount_amount) * rate when tax is enabled, else 0
- total = subtotal - discount_amount + tax_amount

All money is integer cents; percent and tax are rounded to the nearest cent
(half-up). No database access here.
"""

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class CartLine:
    qty: int
    unit_price_cents: int
    line_discount_cents: int = 0

    @property
    def line_total_cents(self) -> int:
        return self.qty * self.unit_price_cents - self.line_discount_cents


@dataclass(frozen=True)
class CartDiscount:
    """
    Cart-level discount. Percent mode follows the subtotal; flat mode is
    sticky until changed. Both fields persist across a mode switch.
    """
    amount_cents: int = 0
    percent: float = 0
    is_percent: bool = False


@dataclass(frozen=True)
class CartTotals:
    subtotal_cents: int
    discount_amount_cents: int
    discount_percent: float
    tax_amount_cents: int
    total_cents: int
    line_totals: tuple[int, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "discount_percent": self.discount_percent,
            "tax_amount_cents": self.tax_amount_cents,
            "total_cents": self.total_cents,
            "line_totals": list(self.line_totals),
        }


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _to_decimal(name: str, value) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{name} must be a number")


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_line(line: CartLine) -> None:
    if not _is_int(line.qty) or line.qty <= 0:
        raise ValidationError("qty must be a positive integer")
    if not _is_int(line.unit_price_cents) or line.unit_price_cents < 0:
        raise ValidationError("unit_price_cents must be a non-negative integer")
    if not _is_int(line.line_discount_cents) or line.line_discount_cents < 0:
        raise ValidationError("line discount must be a non-negative integer")
    if line.line_discount_cents > line.qty * line.unit_price_cents:
        raise ValidationError("line discount cannot exceed the line amount")


def validate_discount(discount: CartDiscount) -> None:
    if not _is_int(discount.amount_cents) or discount.amount_cents < 0:
        raise ValidationError("discount amount must be a non-negative integer")
    pct = _to_decimal("discount percent", discount.percent)
    if pct < 0 or pct > 100:
        raise ValidationError("discount percent must be between 0 and 100")


def discount_amount_for(discount: CartDiscount, subtotal_cents: int) -> int:
    if discount.is_percent:
        pct = _to_decimal("discount percent", discount.percent)
        return _round_half_up(Decimal(subtotal_cents) * pct / 100)
    return discount.amount_cents


def prorate(amount_cents: int, part_cents: int, whole_cents: int) -> int:
    """amount × part / whole, rounded half-up; 0 when whole is 0."""
    if not whole_cents:
        return 0
    return _round_half_up(Decimal(amount_cents) * part_cents / whole_cents)


def tax_amount_for(taxable_cents: int, tax_rate_bps: int) -> int:
    if taxable_cents <= 0 or tax_rate_bps <= 0:
        return 0
    return (taxable_cents * tax_rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


def calculate_cart(
    lines: Iterable[CartLine],
    discount: CartDiscount | None = None,
    *,
    tax_rate_bps: int = 0,
    tax_enabled: bool = False,
) -> CartTotals:
    lines = list(lines)
    discount = discount or CartDiscount()
    for line in lines:
        validate_line(line)
    validate_discount(discount)
    if not _is_int(tax_rate_bps) or tax_rate_bps < 0:
        raise ValidationError("tax rate must be a non-negative integer (bps)")

    line_totals = tuple(line.line_total_cents for line in lines)
    subtotal = sum(line_totals)

    discount_amount = discount_amount_for(discount, subtotal)
    if discount_amount > subtotal:
        raise ValidationError("discount cannot exceed the subtotal")

    tax_amount = tax_amount_for(subtotal - discount_amount, tax_rate_bps) if tax_enabled else 0

    return CartTotals(
        subtotal_cents=subtotal,
        discount_amount_cents=discount_amount,
        discount_percent=float(discount.percent) if discount.is_percent else 0.0,
        tax_amount_cents=tax_amount,
        total_cents=subtotal - discount_amount + tax_amount,
        line_totals=line_totals,
    )


def switch_discount_mode(discount: CartDiscount, subtotal_cents: int, *, to_percent: bool) -> CartDiscount:
    """
    Flip between flat and percent presentation, recomputing the other field
    from the current subtotal so both stay meaningful.
    """
    validate_discount(discount)
    if to_percent == discount.is_percent:
        return discount

    if to_percent:
        if subtotal_cents <= 0:
            percent = 0.0
        else:
            percent = float(
                (Decimal(discount.amount_cents) * 100 / Decimal(subtotal_cents)).quantize(
                    Decimal("0.01"), rounding=ROUND_HALF_UP
                )
            )
        return CartDiscount(amount_cents=discount.amount_cents, percent=min(percent, 100.0), is_percent=True)

    amount = discount_amount_for(discount, subtotal_cents)
    return CartDiscount(amount_cents=amount, percent=discount.percent, is_percent=False)


def payment_status_for(paid_cents: int, total_cents: int) -> str:
    if paid_cents <= 0:
        return "unpaid"
    if paid_cents < total_cents:
        return "partial"
    return "paid"
