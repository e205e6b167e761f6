from __future__ import annotations

import enum
from typing import NamedTuple

from ..extensions import db
from hoor.time_utils import to_utc_z


class StockRefType(str, enum.Enum):
    """Origin kinds a stock move can point back to."""
    SALE = "sale"
    SALE_RETURN = "sale_return"
    PURCHASE = "purchase"
    PURCHASE_RETURN = "purchase_return"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    OPENING = "opening"


class StockRef(NamedTuple):
    """Tagged reference from a move to the document that caused it."""
    kind: StockRefType
    id: int | None = None


class StockMove(db.Model):
    """
    Immutable inventory ledger entry.

    Exactly one of qty_in / qty_out is non-zero; both are non-negative.
    unit_cost_cents is a snapshot of the cost at the time of the move.
    Rows are appended by stock_service.post_move and never updated.
    """
    __tablename__ = "stock_moves"
    __table_args__ = (
        db.Index("ix_stock_moves_variant_occurred", "variant_id", "occurred_at"),
        db.Index("ix_stock_moves_ref", "ref_type", "ref_id"),
        db.CheckConstraint("qty_in >= 0 AND qty_out >= 0", name="ck_stock_moves_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    qty_in = db.Column(db.Integer, nullable=False, default=0)
    qty_out = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    ref_type = db.Column(db.String(32), nullable=False, index=True)
    ref_id = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    variant = db.relationship("Variant", backref=db.backref("stock_moves", lazy=True))

    @property
    def ref(self) -> StockRef:
        return StockRef(StockRefType(self.ref_type), self.ref_id)

    @property
    def quantity_delta(self) -> int:
        return self.qty_in - self.qty_out

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "qty_in": self.qty_in,
            "qty_out": self.qty_out,
            "quantity_delta": self.quantity_delta,
            "unit_cost_cents": self.unit_cost_cents,
            "ref_type": self.ref_type,
            "ref_id": self.ref_id,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }
