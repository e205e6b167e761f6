# Overview: Ledger-derived stock; every quantity change is an appended StockMove.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import StockMove, StockRef, StockRefType, Variant
from hoor.time_utils import parse_occurred_at
from .audit_service import append_audit_event
from .concurrency import transaction

"""
Stock ledger invariants (authoritative)

- On-hand stock is SUM(qty_in) - SUM(qty_out) over a variant's moves; it is
  never stored as a mutable field. The sum is order independent.
- Moves are append-only: the application never edits or deletes them.
- Exactly one of qty_in / qty_out is non-zero and both are non-negative.
- Negative resulting stock is allowed (backorders); oversell is not blocked.
- Callers that need "stock after this move" re-query after posting it
  (the session autoflushes pending moves before the SUM).
- As-of filters are inclusive: occurred_at <= as_of.
"""


def _coerce_quantity(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    return value


def _coerce_ref(ref) -> StockRef:
    if isinstance(ref, tuple) and len(ref) == 2:
        kind, ref_id = ref
    else:
        raise ValidationError("ref must be a (kind, id) pair")
    try:
        kind = StockRefType(kind)
    except ValueError:
        raise ValidationError(f"Unknown stock reference type: {kind}")
    return StockRef(kind, ref_id)


def get_variant(variant_id: int) -> Variant:
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        raise NotFoundError(f"Variant {variant_id} not found")
    return variant


def get_stock(variant_id: int, as_of: datetime | None = None) -> int:
    q = db.session.query(
        func.coalesce(func.sum(StockMove.qty_in), 0) - func.coalesce(func.sum(StockMove.qty_out), 0)
    ).filter(StockMove.variant_id == variant_id)
    if as_of is not None:
        q = q.filter(StockMove.occurred_at <= as_of)
    return int(q.scalar() or 0)


def get_stock_levels(variant_ids=None, as_of: datetime | None = None) -> dict[int, int]:
    """Batch stock lookup; variants without moves are reported as 0."""
    q = db.session.query(
        StockMove.variant_id,
        func.coalesce(func.sum(StockMove.qty_in), 0) - func.coalesce(func.sum(StockMove.qty_out), 0),
    )
    if variant_ids is not None:
        variant_ids = list(variant_ids)
        if not variant_ids:
            return {}
        q = q.filter(StockMove.variant_id.in_(variant_ids))
    if as_of is not None:
        q = q.filter(StockMove.occurred_at <= as_of)
    levels = {int(vid): int(qty or 0) for vid, qty in q.group_by(StockMove.variant_id).all()}
    if variant_ids is not None:
        for vid in variant_ids:
            levels.setdefault(vid, 0)
    return levels


def post_move(
    variant_id: int,
    *,
    qty_in: int = 0,
    qty_out: int = 0,
    unit_cost_cents: int = 0,
    ref,
    occurred_at=None,
    note: str | None = None,
    user_id: int | None = None,
) -> StockMove:
    """
    Append one immutable move. Flushes only; the caller owns the transaction.
    """
    qty_in = _coerce_quantity("qty_in", qty_in)
    qty_out = _coerce_quantity("qty_out", qty_out)
    if (qty_in == 0) == (qty_out == 0):
        raise ValidationError("exactly one of qty_in / qty_out must be non-zero")
    unit_cost_cents = _coerce_quantity("unit_cost_cents", unit_cost_cents)
    ref = _coerce_ref(ref)
    get_variant(variant_id)

    move = StockMove(
        variant_id=variant_id,
        occurred_at=parse_occurred_at(occurred_at),
        qty_in=qty_in,
        qty_out=qty_out,
        unit_cost_cents=unit_cost_cents,
        ref_type=ref.kind.value,
        ref_id=ref.id,
        note=note,
        created_by_user_id=user_id,
    )
    db.session.add(move)
    db.session.flush()
    return move


def weighted_average_cost(*, old_cost_cents: int, stock_after: int, qty: int, unit_cost_cents: int) -> int:
    """
    Blend prior cost with a receipt:
        (old_cost * (stock_after - qty) + unit_cost * qty) / stock_after
    Falls back to unit_cost when prior stock (or stock after) is not positive.
    Nearest-cent rounding, half-up.
    """
    prior = stock_after - qty
    if prior <= 0 or stock_after <= 0:
        return unit_cost_cents
    total_cost = old_cost_cents * prior + unit_cost_cents * qty
    return (total_cost + (stock_after // 2)) // stock_after


def adjust_stock(
    variant_id: int,
    quantity_delta: int,
    *,
    note: str | None = None,
    occurred_at=None,
    user_id: int | None = None,
) -> StockMove:
    """Manual correction (count, damage, ...). Posted at the variant's current cost; cost is unchanged."""
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int):
        raise ValidationError("quantity_delta must be an integer")
    if quantity_delta == 0:
        raise ValidationError("quantity_delta must be non-zero")

    with transaction():
        variant = get_variant(variant_id)
        move = post_move(
            variant_id,
            qty_in=max(quantity_delta, 0),
            qty_out=max(-quantity_delta, 0),
            unit_cost_cents=variant.cost_price_cents or 0,
            ref=StockRef(StockRefType.ADJUSTMENT, None),
            occurred_at=occurred_at,
            note=note,
            user_id=user_id,
        )
        append_audit_event(
            action="stock.adjusted",
            entity="variant",
            entity_id=variant_id,
            user_id=user_id,
            occurred_at=move.occurred_at,
            meta={"quantity_delta": quantity_delta, "move_id": move.id, "note": note},
        )
        return move


def post_opening_stock(
    variant_id: int,
    quantity: int,
    *,
    unit_cost_cents: int | None = None,
    occurred_at=None,
    user_id: int | None = None,
) -> StockMove:
    """
    Record initial on-hand quantity for a variant.

    When the variant has no prior stock its cost price becomes the opening cost.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")

    with transaction():
        variant = get_variant(variant_id)
        cost = variant.cost_price_cents if unit_cost_cents is None else unit_cost_cents
        prior = get_stock(variant_id)
        move = post_move(
            variant_id,
            qty_in=quantity,
            unit_cost_cents=cost,
            ref=StockRef(StockRefType.OPENING, None),
            occurred_at=occurred_at,
            note="Opening stock",
            user_id=user_id,
        )
        if prior <= 0:
            variant.cost_price_cents = cost
        else:
            variant.cost_price_cents = weighted_average_cost(
                old_cost_cents=variant.cost_price_cents,
                stock_after=prior + quantity,
                qty=quantity,
                unit_cost_cents=cost,
            )
        return move


def list_moves(variant_id: int, *, limit: int = 200) -> list[StockMove]:
    get_variant(variant_id)
    return (
        db.session.query(StockMove)
        .filter(StockMove.variant_id == variant_id)
        .order_by(StockMove.occurred_at.desc(), StockMove.id.desc())
        .limit(limit)
        .all()
    )


def list_moves_for_ref(kind: StockRefType, ref_id: int) -> list[StockMove]:
    return (
        db.session.query(StockMove)
        .filter(StockMove.ref_type == StockRefType(kind).value, StockMove.ref_id == ref_id)
        .order_by(StockMove.id.asc())
        .all()
    )
