from __future__ import annotations

import enum

from ..extensions import db
from hoor.time_utils import to_utc_z


class ReturnType(str, enum.Enum):
    RETURN = "return"
    EXCHANGE = "exchange"


class ReturnInvoice(db.Model):
    """
    Return (or exchange) processed against a confirmed sales invoice.

    difference_cents is the signed cash-flow impact on the customer:
    - return:   -return_total_cents
    - exchange: exchange_total_cents - return_total_cents

    For exchanges, exchange_invoice_id points at the replacement sales invoice
    (EXC-...). The customer ledger counts the exchange once, through this
    document's difference, and skips the replacement invoice itself.
    """
    __tablename__ = "return_invoices"
    __table_args__ = (
        db.UniqueConstraint("return_number", name="uq_return_invoices_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_number = db.Column(db.String(32), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    original_invoice_id = db.Column(db.Integer, db.ForeignKey("sales_invoices.id"), nullable=False, index=True)
    exchange_invoice_id = db.Column(db.Integer, db.ForeignKey("sales_invoices.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False, default=ReturnType.RETURN.value)
    return_total_cents = db.Column(db.Integer, nullable=False, default=0)
    exchange_total_cents = db.Column(db.Integer, nullable=False, default=0)
    difference_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="completed")

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    original_invoice = db.relationship("SalesInvoice", foreign_keys=[original_invoice_id],
                                       backref=db.backref("returns", lazy=True))
    exchange_invoice = db.relationship("SalesInvoice", foreign_keys=[exchange_invoice_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_number": self.return_number,
            "occurred_at": to_utc_z(self.occurred_at),
            "original_invoice_id": self.original_invoice_id,
            "exchange_invoice_id": self.exchange_invoice_id,
            "customer_id": self.customer_id,
            "type": self.type,
            "return_total_cents": self.return_total_cents,
            "exchange_total_cents": self.exchange_total_cents,
            "difference_cents": self.difference_cents,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }


class ReturnItem(db.Model):
    """Returned quantity of one original sales item, priced at the original unit price."""
    __tablename__ = "return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_invoice_id = db.Column(db.Integer, db.ForeignKey("return_invoices.id"), nullable=False, index=True)
    original_item_id = db.Column(db.Integer, db.ForeignKey("sales_items.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    return_invoice = db.relationship("ReturnInvoice", backref=db.backref("items", lazy=True, order_by="ReturnItem.id"))
    original_item = db.relationship("SalesItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_invoice_id": self.return_invoice_id,
            "original_item_id": self.original_item_id,
            "variant_id": self.variant_id,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }


class PurchaseReturn(db.Model):
    """Goods sent back to a supplier against a purchase invoice."""
    __tablename__ = "purchase_returns"
    __table_args__ = (
        db.UniqueConstraint("return_number", name="uq_purchase_returns_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_number = db.Column(db.String(32), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    purchase_invoice_id = db.Column(db.Integer, db.ForeignKey("purchase_invoices.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    return_total_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    purchase_invoice = db.relationship("PurchaseInvoice", backref=db.backref("returns", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_number": self.return_number,
            "occurred_at": to_utc_z(self.occurred_at),
            "purchase_invoice_id": self.purchase_invoice_id,
            "supplier_id": self.supplier_id,
            "return_total_cents": self.return_total_cents,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }


class PurchaseReturnItem(db.Model):
    __tablename__ = "purchase_return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_return_id = db.Column(db.Integer, db.ForeignKey("purchase_returns.id"), nullable=False, index=True)
    original_item_id = db.Column(db.Integer, db.ForeignKey("purchase_items.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    purchase_return = db.relationship("PurchaseReturn", backref=db.backref("items", lazy=True, order_by="PurchaseReturnItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_return_id": self.purchase_return_id,
            "original_item_id": self.original_item_id,
            "variant_id": self.variant_id,
            "qty": self.qty,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }
