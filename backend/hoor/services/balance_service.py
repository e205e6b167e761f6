# Overview: Customer/supplier ledgers; the cached balance is a read-through of the ledger fold.

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

import sqlalchemy as sa

from ..errors import BalanceDriftError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Customer,
    Payment,
    PaymentDirection,
    PaymentMethod,
    PaymentRefType,
    PurchaseInvoice,
    PurchaseReturn,
    ReturnInvoice,
    SalesInvoice,
    Supplier,
)
from hoor.time_utils import to_utc_z
from .audit_service import append_audit_event
from .concurrency import lock_for_update, transaction
from .payment_service import coerce_amount, create_payment

"""
Balance ledger invariants (authoritative)

Customer (balance = amount owed to the store = debits - credits):
- sales invoice, except exchange replacement invoices -> debit total
- payment in, ref sale / customer_payment           -> credit amount
- payment out, ref customer_payment (credit refund) -> debit amount
- return document                                   -> signed difference
  (credit when negative, debit when positive); it carries the exchange leg
- payments ref sale_return / exchange are drawer movements, not account entries

Supplier (balance = amount the store owes = credits - debits):
- purchase invoice                                  -> credit total
- payment out, ref purchase / supplier_payment      -> debit amount
- purchase return                                   -> debit returned value

current_balance_cents is only written by apply_balance_delta, inside the same
transaction as the ledger row that justifies the delta. Folding the statement
must reproduce it exactly.
"""


class PartyKind(str, enum.Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


CUSTOMER_CREDIT_REFS = (PaymentRefType.SALE.value, PaymentRefType.CUSTOMER_PAYMENT.value)
SUPPLIER_DEBIT_REFS = (PaymentRefType.PURCHASE.value, PaymentRefType.SUPPLIER_PAYMENT.value)

# Tie-break order for entries sharing a timestamp: documents before money.
_KIND_ORDER = {"invoice": 0, "purchase": 0, "return": 1, "purchase_return": 1, "payment": 2, "refund": 2}


@dataclass(frozen=True)
class StatementEntry:
    date: datetime
    type: str
    reference: str
    debit_cents: int
    credit_cents: int
    balance_cents: int
    ref_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "date": to_utc_z(self.date),
            "type": self.type,
            "reference": self.reference,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "balance_cents": self.balance_cents,
            "ref_id": self.ref_id,
        }


def _coerce_kind(kind) -> PartyKind:
    try:
        return PartyKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown party kind: {kind}")


def _party_model(kind: PartyKind):
    return Customer if kind == PartyKind.CUSTOMER else Supplier


def get_party(kind, party_id: int, *, lock: bool = False):
    kind = _coerce_kind(kind)
    model = _party_model(kind)
    q = db.session.query(model).filter(model.id == party_id)
    if lock:
        q = lock_for_update(q)
    party = q.first()
    if party is None:
        raise NotFoundError(f"{kind.value.capitalize()} {party_id} not found")
    return party


def apply_balance_delta(kind, party_id: int, delta_cents: int) -> int:
    """
    Move a party's cached balance. Flushes only; must run inside the lifecycle
    transaction that appends the matching ledger entry.
    """
    party = get_party(kind, party_id, lock=True)
    if delta_cents:
        party.current_balance_cents = (party.current_balance_cents or 0) + delta_cents
        db.session.flush()
    return party.current_balance_cents


# ---------------------------------------------------------------------------
# Ledger rows
# ---------------------------------------------------------------------------

def _customer_rows(customer_id: int) -> list[tuple]:
    """(date, kind, id, type, reference, debit, credit) rows for one customer."""
    rows: list[tuple] = []

    exchange_invoice_ids = sa.select(ReturnInvoice.exchange_invoice_id).where(
        ReturnInvoice.exchange_invoice_id.isnot(None)
    )
    invoices = (
        db.session.query(SalesInvoice)
        .filter(SalesInvoice.customer_id == customer_id, SalesInvoice.id.notin_(exchange_invoice_ids))
        .all()
    )
    for inv in invoices:
        rows.append((inv.occurred_at, "invoice", inv.id, "sale", inv.invoice_number, inv.total_cents, 0))

    returns = db.session.query(ReturnInvoice).filter(ReturnInvoice.customer_id == customer_id).all()
    for ret in returns:
        diff = ret.difference_cents
        rows.append((
            ret.occurred_at, "return", ret.id, ret.type, ret.return_number,
            max(diff, 0), max(-diff, 0),
        ))

    payments = db.session.query(Payment).filter(Payment.customer_id == customer_id).all()
    for p in payments:
        if p.direction == PaymentDirection.IN.value and p.ref_type in CUSTOMER_CREDIT_REFS:
            rows.append((p.occurred_at, "payment", p.id, "payment", _payment_reference(p), 0, p.amount_cents))
        elif p.direction == PaymentDirection.OUT.value and p.ref_type == PaymentRefType.CUSTOMER_PAYMENT.value:
            rows.append((p.occurred_at, "refund", p.id, "refund", _payment_reference(p), p.amount_cents, 0))
    return rows


def _supplier_rows(supplier_id: int) -> list[tuple]:
    rows: list[tuple] = []

    purchases = db.session.query(PurchaseInvoice).filter(PurchaseInvoice.supplier_id == supplier_id).all()
    for inv in purchases:
        rows.append((inv.occurred_at, "purchase", inv.id, "purchase", inv.invoice_number, 0, inv.total_cents))

    returns = db.session.query(PurchaseReturn).filter(PurchaseReturn.supplier_id == supplier_id).all()
    for ret in returns:
        rows.append((
            ret.occurred_at, "purchase_return", ret.id, "purchase_return", ret.return_number,
            ret.return_total_cents, 0,
        ))

    payments = (
        db.session.query(Payment)
        .filter(
            Payment.supplier_id == supplier_id,
            Payment.direction == PaymentDirection.OUT.value,
            Payment.ref_type.in_(SUPPLIER_DEBIT_REFS),
        )
        .all()
    )
    for p in payments:
        rows.append((p.occurred_at, "payment", p.id, "payment", _payment_reference(p), p.amount_cents, 0))
    return rows


def _payment_reference(payment: Payment) -> str:
    if payment.ref_type == PaymentRefType.SALE.value and payment.ref_id is not None:
        inv = db.session.get(SalesInvoice, payment.ref_id)
        if inv is not None:
            return inv.invoice_number
    if payment.ref_type == PaymentRefType.PURCHASE.value and payment.ref_id is not None:
        inv = db.session.get(PurchaseInvoice, payment.ref_id)
        if inv is not None:
            return inv.invoice_number
    return f"PAY-{payment.id}"


def _fold(rows: list[tuple], *, sign: int) -> list[StatementEntry]:
    rows = sorted(rows, key=lambda r: (r[0], _KIND_ORDER[r[1]], r[2]))
    balance = 0
    entries: list[StatementEntry] = []
    for occurred_at, _kind, ref_id, type_, reference, debit, credit in rows:
        balance += sign * (debit - credit)
        entries.append(StatementEntry(
            date=occurred_at,
            type=type_,
            reference=reference,
            debit_cents=debit,
            credit_cents=credit,
            balance_cents=balance,
            ref_id=ref_id,
        ))
    return entries


def customer_statement(customer_id: int) -> list[StatementEntry]:
    get_party(PartyKind.CUSTOMER, customer_id)
    return _fold(_customer_rows(customer_id), sign=1)


def supplier_statement(supplier_id: int) -> list[StatementEntry]:
    get_party(PartyKind.SUPPLIER, supplier_id)
    return _fold(_supplier_rows(supplier_id), sign=-1)


def statement(kind, party_id: int) -> list[StatementEntry]:
    kind = _coerce_kind(kind)
    if kind == PartyKind.CUSTOMER:
        return customer_statement(party_id)
    return supplier_statement(party_id)


def recompute_balance(kind, party_id: int) -> int:
    entries = statement(kind, party_id)
    return entries[-1].balance_cents if entries else 0


def verify_balance(kind, party_id: int) -> int:
    """Raise BalanceDriftError when the cached balance disagrees with the ledger."""
    kind = _coerce_kind(kind)
    party = get_party(kind, party_id)
    expected = recompute_balance(kind, party_id)
    cached = party.current_balance_cents or 0
    if cached != expected:
        raise BalanceDriftError(
            f"{kind.value} {party_id} balance drift",
            details={"cached_cents": cached, "ledger_cents": expected, "drift_cents": cached - expected},
        )
    return expected


def reconcile_all() -> list[dict]:
    """Every customer and supplier whose cached balance drifted from its ledger."""
    drifting: list[dict] = []
    for kind in PartyKind:
        model = _party_model(kind)
        for party in db.session.query(model).order_by(model.id).all():
            try:
                verify_balance(kind, party.id)
            except BalanceDriftError as exc:
                drifting.append({"kind": kind.value, "id": party.id, "name": party.name, **exc.details})
    return drifting


# ---------------------------------------------------------------------------
# Account payments
# ---------------------------------------------------------------------------

def _account_payment(
    *,
    kind: PartyKind,
    party_id: int,
    direction: PaymentDirection,
    ref_type: PaymentRefType,
    delta_sign: int,
    action: str,
    amount_cents: int,
    method,
    note,
    occurred_at,
    user_id,
) -> Payment:
    amount_cents = coerce_amount("amount_cents", amount_cents, allow_zero=False)
    with transaction():
        get_party(kind, party_id)
        payment = create_payment(
            direction=direction,
            amount_cents=amount_cents,
            ref_type=ref_type,
            method=method,
            customer_id=party_id if kind == PartyKind.CUSTOMER else None,
            supplier_id=party_id if kind == PartyKind.SUPPLIER else None,
            occurred_at=occurred_at,
            note=note,
            user_id=user_id,
        )
        balance = apply_balance_delta(kind, party_id, delta_sign * amount_cents)
        append_audit_event(
            action=action,
            entity=kind.value,
            entity_id=party_id,
            user_id=user_id,
            occurred_at=payment.occurred_at,
            meta={"payment_id": payment.id, "amount_cents": amount_cents, "balance_cents": balance},
        )
        return payment


def receive_customer_payment(customer_id: int, amount_cents: int, *, method=PaymentMethod.CASH,
                             note: str | None = None, occurred_at=None, user_id: int | None = None) -> Payment:
    """Customer settles (part of) their account."""
    return _account_payment(
        kind=PartyKind.CUSTOMER, party_id=customer_id, direction=PaymentDirection.IN,
        ref_type=PaymentRefType.CUSTOMER_PAYMENT, delta_sign=-1, action="payment.customer_received",
        amount_cents=amount_cents, method=method, note=note, occurred_at=occurred_at, user_id=user_id,
    )


def refund_customer_credit(customer_id: int, amount_cents: int, *, method=PaymentMethod.CASH,
                           note: str | None = None, occurred_at=None, user_id: int | None = None) -> Payment:
    """Pay out a customer's credit balance (e.g. after a return on account)."""
    return _account_payment(
        kind=PartyKind.CUSTOMER, party_id=customer_id, direction=PaymentDirection.OUT,
        ref_type=PaymentRefType.CUSTOMER_PAYMENT, delta_sign=1, action="payment.customer_refunded",
        amount_cents=amount_cents, method=method, note=note, occurred_at=occurred_at, user_id=user_id,
    )


def pay_supplier(supplier_id: int, amount_cents: int, *, method=PaymentMethod.CASH,
                 note: str | None = None, occurred_at=None, user_id: int | None = None) -> Payment:
    return _account_payment(
        kind=PartyKind.SUPPLIER, party_id=supplier_id, direction=PaymentDirection.OUT,
        ref_type=PaymentRefType.SUPPLIER_PAYMENT, delta_sign=-1, action="payment.supplier_paid",
        amount_cents=amount_cents, method=method, note=note, occurred_at=occurred_at, user_id=user_id,
    )
