# Overview: Cash-register shifts; expected cash is derived strictly from shift-linked payments.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import func

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Payment, PaymentDirection, PaymentMethod, PaymentRefType, Shift, ShiftStatus
from hoor.time_utils import day_bounds, parse_occurred_at, to_utc_z
from .audit_service import append_audit_event
from .concurrency import lock_for_update, transaction

"""
Shift invariants (authoritative)

- At most one shift is open system-wide (not per user).
- A payment belongs to the shift that was open when it was created (shift_id).
- expected_cash = opening_cash + cash-method payments in - cash-method payments out,
  over payments with shift_id = this shift only.
- difference = closing_cash - expected_cash; a non-zero difference is reported,
  never blocking.
- Closed shifts are immutable history; a new shift is a new row.
- The calendar-day movement view is display only and never feeds reconciliation.
"""


@dataclass(frozen=True)
class ShiftTotals:
    payments_in_cents: int
    payments_out_cents: int
    cash_in_cents: int
    cash_out_cents: int
    expected_cash_cents: int
    payment_count: int

    def to_dict(self) -> dict:
        return {
            "payments_in_cents": self.payments_in_cents,
            "payments_out_cents": self.payments_out_cents,
            "cash_in_cents": self.cash_in_cents,
            "cash_out_cents": self.cash_out_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "payment_count": self.payment_count,
        }


def get_open_shift() -> Shift | None:
    return db.session.query(Shift).filter(Shift.status == ShiftStatus.OPEN.value).first()


def current_shift_id() -> int | None:
    shift = get_open_shift()
    return shift.id if shift else None


def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if shift is None:
        raise NotFoundError(f"Shift {shift_id} not found")
    return shift


def open_shift(
    user_id: int | None = None,
    opening_cash_cents: int = 0,
    *,
    notes: str | None = None,
    occurred_at=None,
) -> Shift:
    if isinstance(opening_cash_cents, bool) or not isinstance(opening_cash_cents, int) or opening_cash_cents < 0:
        raise ValidationError("opening_cash_cents must be a non-negative integer")

    with transaction():
        existing = get_open_shift()
        if existing is not None:
            raise ConflictError(
                "A shift is already open; close it before opening a new one",
                details={"shift_id": existing.id},
            )

        shift = Shift(
            user_id=user_id,
            status=ShiftStatus.OPEN.value,
            opening_cash_cents=opening_cash_cents,
            opened_at=parse_occurred_at(occurred_at),
            notes=notes,
        )
        db.session.add(shift)
        db.session.flush()

        append_audit_event(
            action="shift.opened",
            entity="shift",
            entity_id=shift.id,
            user_id=user_id,
            occurred_at=shift.opened_at,
            meta={"opening_cash_cents": opening_cash_cents},
        )
        return shift


def shift_totals(shift: Shift) -> ShiftTotals:
    rows = (
        db.session.query(
            Payment.direction,
            Payment.method,
            func.coalesce(func.sum(Payment.amount_cents), 0),
            func.count(Payment.id),
        )
        .filter(Payment.shift_id == shift.id)
        .group_by(Payment.direction, Payment.method)
        .all()
    )

    payments_in = payments_out = cash_in = cash_out = count = 0
    for direction, method, amount, n in rows:
        amount = int(amount or 0)
        count += int(n or 0)
        is_cash = method == PaymentMethod.CASH.value
        if direction == PaymentDirection.IN.value:
            payments_in += amount
            if is_cash:
                cash_in += amount
        else:
            payments_out += amount
            if is_cash:
                cash_out += amount

    return ShiftTotals(
        payments_in_cents=payments_in,
        payments_out_cents=payments_out,
        cash_in_cents=cash_in,
        cash_out_cents=cash_out,
        expected_cash_cents=shift.opening_cash_cents + cash_in - cash_out,
        payment_count=count,
    )


def close_shift(
    closing_cash_cents: int,
    *,
    notes: str | None = None,
    occurred_at=None,
    user_id: int | None = None,
) -> Shift:
    if isinstance(closing_cash_cents, bool) or not isinstance(closing_cash_cents, int) or closing_cash_cents < 0:
        raise ValidationError("closing_cash_cents must be a non-negative integer")

    with transaction():
        shift = lock_for_update(
            db.session.query(Shift).filter(Shift.status == ShiftStatus.OPEN.value)
        ).first()
        if shift is None:
            raise NotFoundError("No open shift to close")

        totals = shift_totals(shift)
        difference = closing_cash_cents - totals.expected_cash_cents

        shift.closing_cash_cents = closing_cash_cents
        shift.expected_cash_cents = totals.expected_cash_cents
        shift.difference_cents = difference
        shift.closed_at = parse_occurred_at(occurred_at)
        shift.status = ShiftStatus.CLOSED.value
        if notes is not None:
            shift.notes = notes
        db.session.flush()

        append_audit_event(
            action="shift.closed",
            entity="shift",
            entity_id=shift.id,
            user_id=user_id,
            occurred_at=shift.closed_at,
            meta={
                "closing_cash_cents": closing_cash_cents,
                "expected_cash_cents": totals.expected_cash_cents,
                "difference_cents": difference,
            },
        )

    threshold = current_app.config.get("SHIFT_VARIANCE_WARN_CENTS", 0)
    if difference != 0 and abs(difference) >= threshold:
        current_app.logger.warning(
            "Shift %s closed with cash variance of %s cents (expected %s, counted %s)",
            shift.id, difference, shift.expected_cash_cents, closing_cash_cents,
        )
    return shift


def record_cash_movement(
    direction: str,
    amount_cents: int,
    *,
    category: str | None = None,
    note: str | None = None,
    occurred_at=None,
    user_id: int | None = None,
) -> Payment:
    """Drawer income/expense (petty cash, float top-up). Requires an open shift."""
    from .payment_service import create_payment

    try:
        direction = PaymentDirection(direction)
    except ValueError:
        raise ValidationError("direction must be 'in' or 'out'")

    with transaction():
        if get_open_shift() is None:
            raise NotFoundError("No open shift; open one before recording cash movements")

        ref_type = PaymentRefType.INCOME if direction == PaymentDirection.IN else PaymentRefType.EXPENSE
        label = " - ".join(part for part in (category, note) if part) or None
        payment = create_payment(
            direction=direction,
            amount_cents=amount_cents,
            ref_type=ref_type,
            method=PaymentMethod.CASH,
            occurred_at=occurred_at,
            note=label,
            user_id=user_id,
        )
        append_audit_event(
            action=f"cash.{ref_type.value}",
            entity="payment",
            entity_id=payment.id,
            user_id=user_id,
            occurred_at=payment.occurred_at,
            meta={"amount_cents": payment.amount_cents, "category": category},
        )
        return payment


def day_movements(day: date) -> list[dict]:
    """
    Chronological payments of one calendar day with a running balance seeded
    from the open shift's opening cash. Display only.
    """
    start, end = day_bounds(day)
    shift = get_open_shift()
    balance = shift.opening_cash_cents if shift else 0

    rows: list[dict] = []
    if shift is not None:
        rows.append({
            "occurred_at": to_utc_z(shift.opened_at),
            "type": "opening",
            "direction": PaymentDirection.IN.value,
            "method": PaymentMethod.CASH.value,
            "amount_cents": shift.opening_cash_cents,
            "reference": f"shift:{shift.id}",
            "balance_cents": balance,
        })

    payments = (
        db.session.query(Payment)
        .filter(Payment.occurred_at >= start, Payment.occurred_at < end)
        .order_by(Payment.occurred_at.asc(), Payment.id.asc())
        .all()
    )
    for p in payments:
        balance += p.signed_amount_cents
        rows.append({
            "occurred_at": to_utc_z(p.occurred_at),
            "type": p.ref_type,
            "direction": p.direction,
            "method": p.method,
            "amount_cents": p.amount_cents,
            "reference": f"{p.ref_type}:{p.ref_id}" if p.ref_id is not None else p.ref_type,
            "note": p.note,
            "payment_id": p.id,
            "balance_cents": balance,
        })
    return rows


def list_shifts(*, limit: int = 30) -> list[Shift]:
    return db.session.query(Shift).order_by(Shift.opened_at.desc(), Shift.id.desc()).limit(limit).all()


def shift_summary(shift_id: int) -> dict:
    shift = get_shift(shift_id)
    totals = shift_totals(shift)
    out = shift.to_dict()
    out["totals"] = totals.to_dict()
    return out
