"""
Return Service - sales returns and exchanges

A return is processed against a confirmed sales invoice looked up by its
number. Requested quantities are capped at what is still returnable, so
returned_qty never exceeds qty however often a line is re-submitted.

An exchange is a return plus a replacement sale (EXC-...) settled by one net
payment of |difference|; the customer balance moves once, by the difference.
"""

from __future__ import annotations

from datetime import datetime

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    InvoiceStatus,
    Payment,
    PaymentDirection,
    PaymentMethod,
    PaymentRefType,
    ReturnInvoice,
    ReturnItem,
    ReturnType,
    SalesInvoice,
    SalesItem,
    StockRef,
    StockRefType,
)
from hoor.time_utils import parse_occurred_at
from .audit_service import append_audit_event
from .balance_service import PartyKind, apply_balance_delta
from .concurrency import transaction
from .numbering_service import next_invoice_number
from .payment_service import coerce_method, create_payment
from .pricing import CartDiscount
from .sales_service import (
    get_invoice_by_number,
    insert_sale_document,
    load_variants,
    parse_line_inputs,
    price_lines,
)
from .stock_service import post_move


def _returnable_invoice(invoice_number: str) -> SalesInvoice:
    invoice = get_invoice_by_number(invoice_number)
    if invoice.status == InvoiceStatus.RETURNED.value:
        raise ConflictError(f"Invoice {invoice.invoice_number} has already been fully returned")
    if invoice.status != InvoiceStatus.CONFIRMED.value:
        raise ConflictError(f"Invoice {invoice.invoice_number} is {invoice.status} and cannot be returned")
    return invoice


def _plan_return(invoice: SalesInvoice, items) -> list[tuple[SalesItem, int]]:
    """
    Resolve [{"sales_item_id", "qty"}] into (item, capped_qty) pairs.

    Over-requests are silently capped at qty - returned_qty; lines that end up
    at zero are dropped.
    """
    by_id = {item.id: item for item in invoice.items}
    requested: dict[int, int] = {}
    for raw in items or []:
        if not isinstance(raw, dict):
            raise ValidationError("Each return line must be an object")
        item_id = raw.get("sales_item_id")
        qty = raw.get("qty")
        if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id not in by_id:
            raise ValidationError(f"Item {item_id} is not on invoice {invoice.invoice_number}")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 0:
            raise ValidationError("qty must be a non-negative integer")
        requested[item_id] = requested.get(item_id, 0) + qty

    plan = []
    for item_id, qty in requested.items():
        item = by_id[item_id]
        capped = min(qty, item.returnable_qty)
        if capped > 0:
            plan.append((item, capped))
    if not plan:
        raise ValidationError("Select at least one item with a quantity left to return")
    return plan


def _write_return_document(
    *,
    invoice: SalesInvoice,
    plan: list[tuple[SalesItem, int]],
    return_type: ReturnType,
    return_total: int,
    exchange_total: int,
    occurred: datetime,
    notes: str | None,
    user_id: int | None,
) -> ReturnInvoice:
    """Return document, its items, restocking moves and returned_qty. Flushes only."""
    doc = ReturnInvoice(
        return_number=next_invoice_number("RET", occurred),
        occurred_at=occurred,
        original_invoice_id=invoice.id,
        customer_id=invoice.customer_id,
        type=return_type.value,
        return_total_cents=return_total,
        exchange_total_cents=exchange_total,
        difference_cents=exchange_total - return_total,
        status="completed",
        notes=notes,
        created_by_user_id=user_id,
    )
    db.session.add(doc)
    db.session.flush()

    for item, qty in plan:
        db.session.add(ReturnItem(
            return_invoice_id=doc.id,
            original_item_id=item.id,
            variant_id=item.variant_id,
            qty=qty,
            unit_price_cents=item.unit_price_cents,
            line_total_cents=item.unit_price_cents * qty,
        ))
        post_move(
            item.variant_id,
            qty_in=qty,
            unit_cost_cents=item.unit_cost_snapshot_cents or 0,
            ref=StockRef(StockRefType.SALE_RETURN, doc.id),
            occurred_at=occurred,
            note=f"Return {doc.return_number} of {invoice.invoice_number}",
            user_id=user_id,
        )
        item.returned_qty = (item.returned_qty or 0) + qty

    if all(item.returnable_qty == 0 for item in invoice.items):
        invoice.status = InvoiceStatus.RETURNED.value
    db.session.flush()
    return doc


def process_return(
    invoice_number: str,
    items,
    *,
    method=PaymentMethod.CASH,
    occurred_at=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> ReturnInvoice:
    invoice = _returnable_invoice(invoice_number)
    plan = _plan_return(invoice, items)
    method = coerce_method(method)
    occurred = parse_occurred_at(occurred_at)
    return_total = sum(item.unit_price_cents * qty for item, qty in plan)

    with transaction():
        doc = _write_return_document(
            invoice=invoice,
            plan=plan,
            return_type=ReturnType.RETURN,
            return_total=return_total,
            exchange_total=0,
            occurred=occurred,
            notes=notes,
            user_id=user_id,
        )

        if return_total > 0:
            create_payment(
                direction=PaymentDirection.OUT,
                amount_cents=return_total,
                ref_type=PaymentRefType.SALE_RETURN,
                ref_id=doc.id,
                method=method,
                customer_id=invoice.customer_id,
                occurred_at=occurred,
                note=f"Refund {doc.return_number}",
                user_id=user_id,
            )

        if invoice.customer_id is not None and return_total:
            apply_balance_delta(PartyKind.CUSTOMER, invoice.customer_id, -return_total)

        append_audit_event(
            action="return.processed",
            entity="return_invoice",
            entity_id=doc.id,
            user_id=user_id,
            occurred_at=occurred,
            meta={
                "return_number": doc.return_number,
                "original_invoice_id": invoice.id,
                "return_total_cents": return_total,
            },
        )
        return doc


def process_exchange(
    invoice_number: str,
    return_items,
    new_lines,
    *,
    method=PaymentMethod.CASH,
    occurred_at=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> ReturnInvoice:
    """
    Replacement lines are priced like the returned lines: line totals only,
    with no cart discount and no tax, so an even swap settles at zero.
    """
    invoice = _returnable_invoice(invoice_number)
    plan = _plan_return(invoice, return_items)

    lines = parse_line_inputs(new_lines)
    if not lines:
        raise ValidationError("Add at least one replacement item for an exchange")
    method = coerce_method(method)
    if method == PaymentMethod.CREDIT:
        raise ValidationError("Exchanges are settled immediately; credit is not accepted")
    occurred = parse_occurred_at(occurred_at)

    variants = load_variants(line.variant_id for line in lines)
    cart_lines, totals = price_lines(lines, variants, CartDiscount(), apply_tax=False)

    return_total = sum(item.unit_price_cents * qty for item, qty in plan)
    exchange_total = totals.total_cents
    difference = exchange_total - return_total

    with transaction():
        replacement = insert_sale_document(
            prefix="EXC",
            occurred_at=occurred,
            lines=lines,
            cart_lines=cart_lines,
            totals=totals,
            variants=variants,
            customer_id=invoice.customer_id,
            paid_amount_cents=exchange_total,
            change_due_cents=0,
            notes=f"Exchange for {invoice.invoice_number}",
            user_id=user_id,
        )

        doc = _write_return_document(
            invoice=invoice,
            plan=plan,
            return_type=ReturnType.EXCHANGE,
            return_total=return_total,
            exchange_total=exchange_total,
            occurred=occurred,
            notes=notes,
            user_id=user_id,
        )
        doc.exchange_invoice_id = replacement.id

        if difference:
            create_payment(
                direction=PaymentDirection.IN if difference > 0 else PaymentDirection.OUT,
                amount_cents=abs(difference),
                ref_type=PaymentRefType.EXCHANGE,
                ref_id=doc.id,
                method=method,
                customer_id=invoice.customer_id,
                occurred_at=occurred,
                note=f"Exchange {doc.return_number}",
                user_id=user_id,
            )
            if invoice.customer_id is not None:
                apply_balance_delta(PartyKind.CUSTOMER, invoice.customer_id, difference)

        db.session.flush()
        append_audit_event(
            action="exchange.processed",
            entity="return_invoice",
            entity_id=doc.id,
            user_id=user_id,
            occurred_at=occurred,
            meta={
                "return_number": doc.return_number,
                "exchange_invoice_number": replacement.invoice_number,
                "return_total_cents": return_total,
                "exchange_total_cents": exchange_total,
                "difference_cents": difference,
            },
        )
        return doc


def get_return(return_id: int) -> ReturnInvoice:
    doc = db.session.get(ReturnInvoice, return_id)
    if doc is None:
        raise NotFoundError(f"Return {return_id} not found")
    return doc


def list_returns(*, original_invoice_id: int | None = None, limit: int = 100) -> list[ReturnInvoice]:
    q = db.session.query(ReturnInvoice)
    if original_invoice_id is not None:
        q = q.filter(ReturnInvoice.original_invoice_id == original_invoice_id)
    return q.order_by(ReturnInvoice.occurred_at.desc(), ReturnInvoice.id.desc()).limit(limit).all()


def return_summary(return_id: int) -> dict:
    doc = get_return(return_id)
    out = doc.to_dict()
    out["items"] = [item.to_dict() for item in doc.items]
    out["original_invoice_number"] = doc.original_invoice.invoice_number
    out["exchange_invoice_number"] = doc.exchange_invoice.invoice_number if doc.exchange_invoice else None
    out["payments"] = [
        p.to_dict()
        for p in db.session.query(Payment)
        .filter(
            Payment.ref_type.in_((PaymentRefType.SALE_RETURN.value, PaymentRefType.EXCHANGE.value)),
            Payment.ref_id == doc.id,
        )
        .order_by(Payment.id)
        .all()
    ]
    return out
