"""
Sales Service - atomic checkout

A checkout writes the invoice, its items, one stock-out move per line, the
payment leg and the customer balance delta in a single transaction. Every
check (empty cart, unknown variant/customer, bad amounts) runs before the
first write.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Customer,
    InvoiceStatus,
    Payment,
    PaymentDirection,
    PaymentMethod,
    PaymentRefType,
    SalesInvoice,
    SalesItem,
    StockRef,
    StockRefType,
    Variant,
)
from hoor.time_utils import parse_occurred_at
from .audit_service import append_audit_event
from .balance_service import PartyKind, apply_balance_delta
from .concurrency import transaction
from .numbering_service import next_invoice_number
from .payment_service import coerce_amount, coerce_method, create_payment
from .pricing import CartDiscount, CartLine, CartTotals, calculate_cart, payment_status_for
from .settings_service import tax_config
from .shift_service import current_shift_id
from .stock_service import post_move


@dataclass(frozen=True)
class SaleLineInput:
    variant_id: int
    qty: int
    unit_price_cents: int | None = None  # None -> variant sale price
    line_discount_cents: int = 0


def parse_line_inputs(raw_lines: Iterable) -> list[SaleLineInput]:
    """Accept SaleLineInput objects or plain dicts (API payloads)."""
    parsed: list[SaleLineInput] = []
    for raw in raw_lines or []:
        if isinstance(raw, SaleLineInput):
            parsed.append(raw)
            continue
        if not isinstance(raw, dict):
            raise ValidationError("Each line must be an object")
        variant_id = raw.get("variant_id")
        if isinstance(variant_id, bool) or not isinstance(variant_id, int):
            raise ValidationError("variant_id is required on every line")
        parsed.append(SaleLineInput(
            variant_id=variant_id,
            qty=raw.get("qty"),
            unit_price_cents=raw.get("unit_price_cents"),
            line_discount_cents=raw.get("line_discount_cents", 0) or 0,
        ))
    return parsed


def parse_discount(raw) -> CartDiscount:
    if raw is None:
        return CartDiscount()
    if isinstance(raw, CartDiscount):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError("discount must be an object")
    return CartDiscount(
        amount_cents=raw.get("amount_cents", 0) or 0,
        percent=raw.get("percent", 0) or 0,
        is_percent=bool(raw.get("is_percent", False)),
    )


def load_variants(variant_ids: Iterable[int]) -> dict[int, Variant]:
    ids = set(variant_ids)
    variants = {v.id: v for v in db.session.query(Variant).filter(Variant.id.in_(ids)).all()} if ids else {}
    missing = sorted(ids - set(variants))
    if missing:
        raise NotFoundError(
            f"Variant {missing[0]} not found",
            details={"missing_variant_ids": missing},
        )
    return variants


def price_lines(
    lines: list[SaleLineInput],
    variants: dict[int, Variant],
    discount: CartDiscount,
    *,
    apply_tax: bool = True,
) -> tuple[list[CartLine], CartTotals]:
    for line in lines:
        if not variants[line.variant_id].is_active:
            raise ValidationError(f"Variant {line.variant_id} is inactive")
    cart_lines = [
        CartLine(
            qty=line.qty,
            unit_price_cents=variants[line.variant_id].sale_price_cents if line.unit_price_cents is None else line.unit_price_cents,
            line_discount_cents=line.line_discount_cents,
        )
        for line in lines
    ]
    if not apply_tax:
        return cart_lines, calculate_cart(cart_lines, discount)
    tax_enabled, tax_rate_bps = tax_config()
    totals = calculate_cart(cart_lines, discount, tax_rate_bps=tax_rate_bps, tax_enabled=tax_enabled)
    return cart_lines, totals


def insert_sale_document(
    *,
    prefix: str,
    occurred_at: datetime,
    lines: list[SaleLineInput],
    cart_lines: list[CartLine],
    totals: CartTotals,
    variants: dict[int, Variant],
    customer_id: int | None,
    paid_amount_cents: int,
    change_due_cents: int,
    notes: str | None,
    user_id: int | None,
) -> SalesInvoice:
    """
    Invoice + items + stock-out moves. Flushes only; the caller owns the
    transaction and the payment/balance legs.
    """
    invoice = SalesInvoice(
        invoice_number=next_invoice_number(prefix, occurred_at),
        occurred_at=occurred_at,
        customer_id=customer_id,
        shift_id=current_shift_id(),
        subtotal_cents=totals.subtotal_cents,
        discount_amount_cents=totals.discount_amount_cents,
        discount_percent=totals.discount_percent,
        tax_amount_cents=totals.tax_amount_cents,
        total_cents=totals.total_cents,
        paid_amount_cents=paid_amount_cents,
        change_due_cents=change_due_cents,
        payment_status=payment_status_for(paid_amount_cents, totals.total_cents),
        status=InvoiceStatus.CONFIRMED.value,
        notes=notes,
        created_by_user_id=user_id,
    )
    db.session.add(invoice)
    db.session.flush()

    for line, cart_line, line_total in zip(lines, cart_lines, totals.line_totals):
        variant = variants[line.variant_id]
        item = SalesItem(
            invoice_id=invoice.id,
            variant_id=variant.id,
            qty=cart_line.qty,
            unit_price_cents=cart_line.unit_price_cents,
            discount_amount_cents=cart_line.line_discount_cents,
            line_total_cents=line_total,
            unit_cost_snapshot_cents=variant.cost_price_cents or 0,
            returned_qty=0,
        )
        db.session.add(item)
        post_move(
            variant.id,
            qty_out=cart_line.qty,
            unit_cost_cents=variant.cost_price_cents or 0,
            ref=StockRef(StockRefType.SALE, invoice.id),
            occurred_at=occurred_at,
            note=f"Sale {invoice.invoice_number}",
            user_id=user_id,
        )
    db.session.flush()
    return invoice


def checkout(
    lines,
    *,
    discount=None,
    customer_id: int | None = None,
    paid_amount_cents: int = 0,
    method=PaymentMethod.CASH,
    occurred_at=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> SalesInvoice:
    lines = parse_line_inputs(lines)
    if not lines:
        raise ValidationError("Cart is empty")

    discount = parse_discount(discount)
    paid_amount_cents = coerce_amount("paid_amount_cents", paid_amount_cents)
    method = coerce_method(method)
    occurred = parse_occurred_at(occurred_at)

    if customer_id is not None and db.session.get(Customer, customer_id) is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    if method == PaymentMethod.CREDIT:
        if customer_id is None:
            raise ValidationError("A credit sale requires a customer")
        if paid_amount_cents:
            raise ValidationError("A credit sale cannot carry a paid amount")

    variants = load_variants(line.variant_id for line in lines)
    cart_lines, totals = price_lines(lines, variants, discount)

    recorded_paid = min(paid_amount_cents, totals.total_cents)
    change_due = paid_amount_cents - recorded_paid
    outstanding = totals.total_cents - recorded_paid

    with transaction():
        invoice = insert_sale_document(
            prefix="INV",
            occurred_at=occurred,
            lines=lines,
            cart_lines=cart_lines,
            totals=totals,
            variants=variants,
            customer_id=customer_id,
            paid_amount_cents=recorded_paid,
            change_due_cents=change_due,
            notes=notes,
            user_id=user_id,
        )

        if recorded_paid > 0:
            create_payment(
                direction=PaymentDirection.IN,
                amount_cents=recorded_paid,
                ref_type=PaymentRefType.SALE,
                ref_id=invoice.id,
                method=method,
                customer_id=customer_id,
                occurred_at=occurred,
                note=f"Sale {invoice.invoice_number}",
                user_id=user_id,
            )

        if customer_id is not None and outstanding > 0:
            apply_balance_delta(PartyKind.CUSTOMER, customer_id, outstanding)

        append_audit_event(
            action="sale.checkout",
            entity="sales_invoice",
            entity_id=invoice.id,
            user_id=user_id,
            occurred_at=occurred,
            meta={
                "invoice_number": invoice.invoice_number,
                "total_cents": invoice.total_cents,
                "paid_amount_cents": recorded_paid,
                "customer_id": customer_id,
            },
        )
        return invoice


def get_invoice(invoice_id: int) -> SalesInvoice:
    invoice = db.session.get(SalesInvoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def get_invoice_by_number(invoice_number: str) -> SalesInvoice:
    number = (invoice_number or "").strip()
    if not number:
        raise ValidationError("invoice_number is required")
    invoice = db.session.query(SalesInvoice).filter(SalesInvoice.invoice_number == number).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {number} not found")
    return invoice


def list_invoices(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
) -> list[SalesInvoice]:
    q = db.session.query(SalesInvoice)
    if start is not None:
        q = q.filter(SalesInvoice.occurred_at >= start)
    if end is not None:
        q = q.filter(SalesInvoice.occurred_at < end)
    if customer_id is not None:
        q = q.filter(SalesInvoice.customer_id == customer_id)
    if status:
        q = q.filter(SalesInvoice.status == status)
    return q.order_by(SalesInvoice.occurred_at.desc(), SalesInvoice.id.desc()).limit(limit).all()


def invoice_summary(invoice_id: int) -> dict:
    invoice = get_invoice(invoice_id)
    out = invoice.to_dict()
    out["items"] = [item.to_dict() for item in invoice.items]
    out["payments"] = [
        p.to_dict()
        for p in db.session.query(Payment)
        .filter(Payment.ref_type == PaymentRefType.SALE.value, Payment.ref_id == invoice.id)
        .order_by(Payment.id)
        .all()
    ]
    out["returns"] = [r.to_dict() for r in invoice.returns]
    return out
