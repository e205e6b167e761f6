# Overview: Payment ledger writes; every payment is stamped with the open shift.

from __future__ import annotations

from ..errors import ValidationError
from ..extensions import db
from ..models import Payment, PaymentDirection, PaymentMethod, PaymentRefType
from hoor.time_utils import parse_occurred_at
from .shift_service import current_shift_id


def coerce_method(method) -> PaymentMethod:
    try:
        return PaymentMethod(method or PaymentMethod.CASH.value)
    except ValueError:
        raise ValidationError(f"Unsupported payment method: {method}")


def coerce_amount(name: str, value, *, allow_zero: bool = True) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer (cents)")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{name} must be {'>= 0' if allow_zero else '> 0'}")
    return value


def create_payment(
    *,
    direction: PaymentDirection,
    amount_cents: int,
    ref_type: PaymentRefType,
    ref_id: int | None = None,
    method=PaymentMethod.CASH,
    customer_id: int | None = None,
    supplier_id: int | None = None,
    occurred_at=None,
    note: str | None = None,
    user_id: int | None = None,
) -> Payment:
    """
    Append one payment row. Flushes only; the caller owns the transaction.
    """
    amount_cents = coerce_amount("amount_cents", amount_cents, allow_zero=False)
    payment = Payment(
        occurred_at=parse_occurred_at(occurred_at),
        direction=PaymentDirection(direction).value,
        method=coerce_method(method).value,
        amount_cents=amount_cents,
        customer_id=customer_id,
        supplier_id=supplier_id,
        ref_type=PaymentRefType(ref_type).value,
        ref_id=ref_id,
        note=note,
        shift_id=current_shift_id(),
        created_by_user_id=user_id,
    )
    db.session.add(payment)
    db.session.flush()
    return payment


def list_payments(
    *,
    customer_id: int | None = None,
    supplier_id: int | None = None,
    shift_id: int | None = None,
    ref_type: PaymentRefType | None = None,
    ref_id: int | None = None,
    limit: int = 200,
) -> list[Payment]:
    q = db.session.query(Payment)
    if customer_id is not None:
        q = q.filter(Payment.customer_id == customer_id)
    if supplier_id is not None:
        q = q.filter(Payment.supplier_id == supplier_id)
    if shift_id is not None:
        q = q.filter(Payment.shift_id == shift_id)
    if ref_type is not None:
        q = q.filter(Payment.ref_type == PaymentRefType(ref_type).value)
    if ref_id is not None:
        q = q.filter(Payment.ref_id == ref_id)
    return q.order_by(Payment.occurred_at.desc(), Payment.id.desc()).limit(limit).all()
