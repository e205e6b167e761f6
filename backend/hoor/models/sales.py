from __future__ import annotations

import enum

from ..extensions import db
from hoor.time_utils import to_utc_z


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentDirection(str, enum.Enum):
    IN = "in"
    OUT = "out"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CREDIT = "credit"


class PaymentRefType(str, enum.Enum):
    """Origin kinds a payment can point back to."""
    SALE = "sale"
    SALE_RETURN = "sale_return"
    EXCHANGE = "exchange"
    PURCHASE = "purchase"
    PURCHASE_RETURN = "purchase_return"
    CUSTOMER_PAYMENT = "customer_payment"
    SUPPLIER_PAYMENT = "supplier_payment"
    EXPENSE = "expense"
    INCOME = "income"


class SalesInvoice(db.Model):
    """
    Confirmed sale document.

    Money fields are a snapshot of the cart at checkout:
    total_cents = subtotal_cents - discount_amount_cents + tax_amount_cents.
    After creation only status (-> returned) changes.
    """
    __tablename__ = "sales_invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_sales_invoices_number"),
        db.Index("ix_sales_invoices_customer_occurred", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "INV-20250101-0001", "EXC-20250101-0001")
    invoice_number = db.Column(db.String(32), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Float, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    change_due_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatus.UNPAID.value, index=True)
    status = db.Column(db.String(16), nullable=False, default=InvoiceStatus.CONFIRMED.value, index=True)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    customer = db.relationship("Customer", backref=db.backref("sales_invoices", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "occurred_at": to_utc_z(self.occurred_at),
            "customer_id": self.customer_id,
            "shift_id": self.shift_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "discount_percent": self.discount_percent,
            "tax_amount_cents": self.tax_amount_cents,
            "total_cents": self.total_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "change_due_cents": self.change_due_cents,
            "payment_status": self.payment_status,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "sync_status": self.sync_status,
        }


class SalesItem(db.Model):
    """
    Line of a sales invoice.

    unit_cost_snapshot_cents freezes the variant cost at sale time (margin
    reporting, return restocking). returned_qty only grows and never exceeds qty.
    """
    __tablename__ = "sales_items"
    __table_args__ = (
        db.CheckConstraint("returned_qty >= 0 AND returned_qty <= qty", name="ck_sales_items_returned_qty"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("sales_invoices.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Float, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)
    unit_cost_snapshot_cents = db.Column(db.Integer, nullable=False, default=0)
    returned_qty = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    invoice = db.relationship("SalesInvoice", backref=db.backref("items", lazy=True, order_by="SalesItem.id"))
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
            "unit_price_cents": self.unit_price_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "discount_percent": self.discount_percent,
            "line_total_cents": self.line_total_cents,
            "unit_cost_snapshot_cents": self.unit_cost_snapshot_cents,
            "returned_qty": self.returned_qty,
            "returnable_qty": self.returnable_qty,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }


class Payment(db.Model):
    """
    Signed cash-flow ledger entry.

    amount_cents is always positive; the sign is carried by direction.
    ref_type/ref_id point at the originating document (see PaymentRefType).
    shift_id is stamped when a shift was open at creation time and is the only
    input to shift cash reconciliation.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_ref", "ref_type", "ref_id"),
        db.Index("ix_payments_shift_direction", "shift_id", "direction"),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    direction = db.Column(db.String(8), nullable=False, index=True)
    method = db.Column(db.String(16), nullable=False, default=PaymentMethod.CASH.value, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    ref_type = db.Column(db.String(32), nullable=False, index=True)
    ref_id = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    @property
    def signed_amount_cents(self) -> int:
        if self.direction == PaymentDirection.IN.value:
            return self.amount_cents
        return -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "occurred_at": to_utc_z(self.occurred_at),
            "direction": self.direction,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "ref_type": self.ref_type,
            "ref_id": self.ref_id,
            "note": self.note,
            "shift_id": self.shift_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }
