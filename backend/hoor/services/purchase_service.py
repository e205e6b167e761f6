"""
Purchase Service - supplier receipts and purchase returns

Receiving posts stock-in moves and re-derives each variant's weighted-average
cost from the stock on hand after the move. Purchases are on credit by
default: the supplier balance grows by total - paid.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

import sqlalchemy as sa

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    InvoiceStatus,
    PaymentDirection,
    PaymentMethod,
    PaymentRefType,
    PurchaseInvoice,
    PurchaseItem,
    PurchaseReturn,
    PurchaseReturnItem,
    StockRef,
    StockRefType,
    Supplier,
)
from .audit_service import append_audit_event
from .balance_service import PartyKind, apply_balance_delta
from .concurrency import transaction
from .numbering_service import next_invoice_number
from .payment_service import coerce_amount, coerce_method, create_payment
from .pricing import CartLine, calculate_cart, payment_status_for, prorate
from hoor.time_utils import parse_occurred_at
from .sales_service import load_variants, parse_discount
from .stock_service import get_stock, post_move, weighted_average_cost


@dataclass(frozen=True)
class PurchaseLineInput:
    variant_id: int
    qty: int
    unit_cost_cents: int


def parse_purchase_lines(raw_lines: Iterable) -> list[PurchaseLineInput]:
    parsed: list[PurchaseLineInput] = []
    for raw in raw_lines or []:
        if isinstance(raw, PurchaseLineInput):
            parsed.append(raw)
            continue
        if not isinstance(raw, dict):
            raise ValidationError("Each line must be an object")
        variant_id = raw.get("variant_id")
        if isinstance(variant_id, bool) or not isinstance(variant_id, int):
            raise ValidationError("variant_id is required on every line")
        if raw.get("unit_cost_cents") is None:
            raise ValidationError("unit_cost_cents is required on every line")
        parsed.append(PurchaseLineInput(variant_id=variant_id, qty=raw.get("qty"), unit_cost_cents=raw["unit_cost_cents"]))
    return parsed


def _get_supplier(supplier_id) -> Supplier:
    if supplier_id is None:
        raise ValidationError("Select a supplier before saving the purchase")
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def receive_purchase(
    supplier_id: int | None,
    lines,
    *,
    discount=None,
    paid_amount_cents: int = 0,
    method=PaymentMethod.CASH,
    occurred_at=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> PurchaseInvoice:
    supplier = _get_supplier(supplier_id)
    lines = parse_purchase_lines(lines)
    if not lines:
        raise ValidationError("Purchase has no lines")

    discount = parse_discount(discount)
    paid_amount_cents = coerce_amount("paid_amount_cents", paid_amount_cents)
    method = coerce_method(method)
    if method == PaymentMethod.CREDIT and paid_amount_cents:
        raise ValidationError("A credit purchase cannot carry a paid amount")
    occurred = parse_occurred_at(occurred_at)

    variants = load_variants(line.variant_id for line in lines)
    cart_lines = [CartLine(qty=line.qty, unit_price_cents=line.unit_cost_cents) for line in lines]
    totals = calculate_cart(cart_lines, discount)
    if paid_amount_cents > totals.total_cents:
        raise ValidationError("paid_amount_cents cannot exceed the purchase total")

    with transaction():
        invoice = PurchaseInvoice(
            invoice_number=next_invoice_number("PUR", occurred),
            occurred_at=occurred,
            supplier_id=supplier.id,
            subtotal_cents=totals.subtotal_cents,
            discount_amount_cents=totals.discount_amount_cents,
            discount_percent=totals.discount_percent,
            total_cents=totals.total_cents,
            paid_amount_cents=paid_amount_cents,
            payment_status=payment_status_for(paid_amount_cents, totals.total_cents),
            status=InvoiceStatus.CONFIRMED.value,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(invoice)
        db.session.flush()

        for line, line_total in zip(lines, totals.line_totals):
            variant = variants[line.variant_id]
            db.session.add(PurchaseItem(
                invoice_id=invoice.id,
                variant_id=variant.id,
                qty=line.qty,
                unit_cost_cents=line.unit_cost_cents,
                line_total_cents=line_total,
                returned_qty=0,
            ))
            post_move(
                variant.id,
                qty_in=line.qty,
                unit_cost_cents=line.unit_cost_cents,
                ref=StockRef(StockRefType.PURCHASE, invoice.id),
                occurred_at=occurred,
                note=f"Purchase {invoice.invoice_number}",
                user_id=user_id,
            )
            # Stock after this receipt, including earlier lines of the same invoice
            stock_after = get_stock(variant.id)
            variant.cost_price_cents = weighted_average_cost(
                old_cost_cents=variant.cost_price_cents or 0,
                stock_after=stock_after,
                qty=line.qty,
                unit_cost_cents=line.unit_cost_cents,
            )
            db.session.flush()

        if paid_amount_cents > 0:
            create_payment(
                direction=PaymentDirection.OUT,
                amount_cents=paid_amount_cents,
                ref_type=PaymentRefType.PURCHASE,
                ref_id=invoice.id,
                method=method,
                supplier_id=supplier.id,
                occurred_at=occurred,
                note=f"Purchase {invoice.invoice_number}",
                user_id=user_id,
            )

        apply_balance_delta(PartyKind.SUPPLIER, supplier.id, totals.total_cents - paid_amount_cents)

        append_audit_event(
            action="purchase.received",
            entity="purchase_invoice",
            entity_id=invoice.id,
            user_id=user_id,
            occurred_at=occurred,
            meta={
                "invoice_number": invoice.invoice_number,
                "supplier_id": supplier.id,
                "total_cents": invoice.total_cents,
                "paid_amount_cents": paid_amount_cents,
            },
        )
        return invoice


def get_purchase(invoice_id: int) -> PurchaseInvoice:
    invoice = db.session.get(PurchaseInvoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Purchase invoice {invoice_id} not found")
    return invoice


def get_purchase_by_number(invoice_number: str) -> PurchaseInvoice:
    number = (invoice_number or "").strip()
    invoice = db.session.query(PurchaseInvoice).filter(PurchaseInvoice.invoice_number == number).first()
    if invoice is None:
        raise NotFoundError(f"Purchase invoice {number} not found")
    return invoice


def list_purchases(
    *,
    supplier_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[PurchaseInvoice]:
    q = db.session.query(PurchaseInvoice)
    if supplier_id is not None:
        q = q.filter(PurchaseInvoice.supplier_id == supplier_id)
    if start is not None:
        q = q.filter(PurchaseInvoice.occurred_at >= start)
    if end is not None:
        q = q.filter(PurchaseInvoice.occurred_at < end)
    return q.order_by(PurchaseInvoice.occurred_at.desc(), PurchaseInvoice.id.desc()).limit(limit).all()


def purchase_summary(invoice_id: int) -> dict:
    invoice = get_purchase(invoice_id)
    out = invoice.to_dict()
    out["items"] = [item.to_dict() for item in invoice.items]
    out["returns"] = [r.to_dict() for r in invoice.returns]
    return out


def _returned_value(invoice: PurchaseInvoice, plan: list[tuple[PurchaseItem, int]]) -> int:
    planned = {item.id: qty for item, qty in plan}
    if all(item.returnable_qty == planned.get(item.id, 0) for item in invoice.items):
        already = (
            db.session.query(sa.func.coalesce(sa.func.sum(PurchaseReturn.return_total_cents), 0))
            .filter(PurchaseReturn.purchase_invoice_id == invoice.id)
            .scalar()
        )
        return invoice.total_cents - already
    gross = sum(item.unit_cost_cents * qty for item, qty in plan)
    return prorate(gross, invoice.total_cents, invoice.subtotal_cents)


def return_purchase(
    purchase_invoice_id: int,
    items,
    *,
    occurred_at=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> PurchaseReturn:
    """
    Send goods back to the supplier.

    items: [{"purchase_item_id": int, "qty": int}, ...]. Each qty is capped at
    what is still returnable on that line. The supplier balance drops by the
    returned goods' share of the discounted purchase total; the return that
    empties the purchase takes whatever is left of it, so a full return
    always cancels the whole invoice. The variant cost is unchanged.
    """
    invoice = get_purchase(purchase_invoice_id)
    if invoice.status == InvoiceStatus.RETURNED.value:
        raise ConflictError(f"Purchase {invoice.invoice_number} is already fully returned")
    occurred = parse_occurred_at(occurred_at)

    by_id = {item.id: item for item in invoice.items}
    requested: dict[int, int] = {}
    for raw in items or []:
        if not isinstance(raw, dict):
            raise ValidationError("Each return line must be an object")
        item_id = raw.get("purchase_item_id")
        qty = raw.get("qty")
        if item_id not in by_id:
            raise ValidationError(f"Item {item_id} is not on purchase {invoice.invoice_number}")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 0:
            raise ValidationError("qty must be a non-negative integer")
        requested[item_id] = requested.get(item_id, 0) + qty

    plan = [
        (by_id[item_id], min(qty, by_id[item_id].returnable_qty))
        for item_id, qty in requested.items()
    ]
    plan = [(item, qty) for item, qty in plan if qty > 0]
    if not plan:
        raise ValidationError("Nothing left to return on the selected items")

    return_total = _returned_value(invoice, plan)

    with transaction():
        doc = PurchaseReturn(
            return_number=next_invoice_number("PRT", occurred),
            occurred_at=occurred,
            purchase_invoice_id=invoice.id,
            supplier_id=invoice.supplier_id,
            return_total_cents=return_total,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(doc)
        db.session.flush()

        for item, qty in plan:
            db.session.add(PurchaseReturnItem(
                purchase_return_id=doc.id,
                original_item_id=item.id,
                variant_id=item.variant_id,
                qty=qty,
                unit_cost_cents=item.unit_cost_cents,
                line_total_cents=item.unit_cost_cents * qty,
            ))
            post_move(
                item.variant_id,
                qty_out=qty,
                unit_cost_cents=item.unit_cost_cents,
                ref=StockRef(StockRefType.PURCHASE_RETURN, doc.id),
                occurred_at=occurred,
                note=f"Purchase return {doc.return_number}",
                user_id=user_id,
            )
            item.returned_qty = (item.returned_qty or 0) + qty

        if all(item.returnable_qty == 0 for item in invoice.items):
            invoice.status = InvoiceStatus.RETURNED.value

        apply_balance_delta(PartyKind.SUPPLIER, invoice.supplier_id, -return_total)

        append_audit_event(
            action="purchase.returned",
            entity="purchase_return",
            entity_id=doc.id,
            user_id=user_id,
            occurred_at=occurred,
            meta={"purchase_invoice_id": invoice.id, "return_total_cents": return_total},
        )
        return doc
