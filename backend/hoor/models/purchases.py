from __future__ import annotations

from ..extensions import db
from hoor.time_utils import to_utc_z


class PurchaseInvoice(db.Model):
    """
    Supplier invoice received into stock.

    Recorded on credit by default: the supplier balance grows by
    total_cents - paid_amount_cents.
    """
    __tablename__ = "purchase_invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_purchase_invoices_number"),
        db.Index("ix_purchase_invoices_supplier_occurred", "supplier_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Float, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)
    status = db.Column(db.String(16), nullable=False, default="confirmed", index=True)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    supplier = db.relationship("Supplier", backref=db.backref("purchase_invoices", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "occurred_at": to_utc_z(self.occurred_at),
            "supplier_id": self.supplier_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "discount_percent": self.discount_percent,
            "total_cents": self.total_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "payment_status": self.payment_status,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "sync_status": self.sync_status,
        }


class PurchaseItem(db.Model):
    """Line of a purchase invoice; unit_cost_cents feeds the weighted-average cost."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("returned_qty >= 0 AND returned_qty <= qty", name="ck_purchase_items_returned_qty"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("purchase_invoices.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    returned_qty = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    invoice = db.relationship("PurchaseInvoice", backref=db.backref("items", lazy=True, order_by="PurchaseItem.id"))
    variant = db.relationship("Variant")

    @property
    def returnable_qty(self) -> int:
        return self.qty - (self.returned_qty or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "variant_id": self.variant_id,
            "qty": self.qty,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "returned_qty": self.returned_qty,
            "returnable_qty": self.returnable_qty,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }
