# Overview: Generic keyed storage over every persisted entity type.

from __future__ import annotations

from typing import Any

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    AuditLog,
    Brand,
    Customer,
    Payment,
    ProductModel,
    PurchaseInvoice,
    PurchaseItem,
    PurchaseReturn,
    PurchaseReturnItem,
    ReturnInvoice,
    ReturnItem,
    SalesInvoice,
    SalesItem,
    Setting,
    Shift,
    StockMove,
    Supplier,
    Variant,
)
from .concurrency import transaction

"""
Entity registry

Keys are the table names used by backup documents. The order is parent-first
so bulk inserts satisfy foreign keys; deletes walk it in reverse.
"""
ENTITY_TYPES: dict[str, type] = {
    "brands": Brand,
    "product_models": ProductModel,
    "variants": Variant,
    "customers": Customer,
    "suppliers": Supplier,
    "shifts": Shift,
    "settings": Setting,
    "sales_invoices": SalesInvoice,
    "sales_items": SalesItem,
    "purchase_invoices": PurchaseInvoice,
    "purchase_items": PurchaseItem,
    "return_invoices": ReturnInvoice,
    "return_items": ReturnItem,
    "purchase_returns": PurchaseReturn,
    "purchase_return_items": PurchaseReturnItem,
    "stock_moves": StockMove,
    "payments": Payment,
    "audit_logs": AuditLog,
}


def model_for(entity_type: str):
    model = ENTITY_TYPES.get(entity_type)
    if model is None:
        raise ValidationError(f"Unknown entity type: {entity_type}")
    return model


def _column_keys(model) -> set[str]:
    return {c.key for c in model.__mapper__.columns}


def _check_fields(model, fields: dict[str, Any]) -> None:
    cols = _column_keys(model)
    unknown = sorted(k for k in fields if k not in cols or k == "id")
    if unknown:
        raise ValidationError(f"Unknown field(s) for {model.__tablename__}: {', '.join(unknown)}")


def add(entity_type: str, **fields) -> int:
    model = model_for(entity_type)
    _check_fields(model, fields)
    with transaction():
        record = model(**fields)
        db.session.add(record)
        db.session.flush()
        return record.id


def get(entity_type: str, entity_id: int):
    return db.session.get(model_for(entity_type), entity_id)


def get_or_404(entity_type: str, entity_id: int, *, label: str | None = None):
    record = get(entity_type, entity_id)
    if record is None:
        raise NotFoundError(f"{label or entity_type} {entity_id} not found")
    return record


def update(entity_type: str, entity_id: int, **partial):
    model = model_for(entity_type)
    _check_fields(model, partial)
    with transaction():
        record = get_or_404(entity_type, entity_id)
        for key, value in partial.items():
            setattr(record, key, value)
        db.session.flush()
        return record


def delete(entity_type: str, entity_id: int) -> None:
    with transaction():
        record = get_or_404(entity_type, entity_id)
        db.session.delete(record)
        db.session.flush()


def query(entity_type: str, field: str, value: Any = None, *, between: tuple | None = None) -> list:
    """
    Indexed lookup on one column.

    - equality: query("variants", "barcode", "123")
    - inclusive range: query("stock_moves", "occurred_at", between=(start, end))
      either bound may be None for an open-ended range
    """
    model = model_for(entity_type)
    if field not in _column_keys(model):
        raise ValidationError(f"Unknown field for {entity_type}: {field}")
    column = getattr(model, field)

    q = db.session.query(model)
    if between is not None:
        low, high = between
        if low is not None:
            q = q.filter(column >= low)
        if high is not None:
            q = q.filter(column <= high)
    elif value is None:
        q = q.filter(column.is_(None))
    else:
        q = q.filter(column == value)
    return q.order_by(model.id.asc()).all()
