# Overview: Read-only sales, margin and stock reports.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import (
    Brand,
    InvoiceStatus,
    ProductModel,
    ReturnInvoice,
    SalesInvoice,
    SalesItem,
    Variant,
)
from hoor.time_utils import parse_iso_datetime, to_utc_z, utcnow
from .stock_service import get_stock_levels

"""
Reporting rules

- Cancelled invoices never count. Returned invoices still count as sales;
  their returns are reported separately (returns_total_cents).
- Cost of goods uses the per-item unit_cost_snapshot_cents frozen at sale time.
- Ranges are [start, end) on occurred_at; either bound may be omitted.
"""


def _parse_bound(name: str, value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


def _parse_range(start, end) -> tuple[datetime | None, datetime | None]:
    start_dt = _parse_bound("start", start)
    end_dt = _parse_bound("end", end)
    if start_dt and end_dt and end_dt < start_dt:
        raise ValidationError("end must not be before start")
    return start_dt, end_dt


def _filter_range(q, column, start_dt, end_dt):
    if start_dt is not None:
        q = q.filter(column >= start_dt)
    if end_dt is not None:
        q = q.filter(column < end_dt)
    return q


def _counted_invoices(q):
    return q.filter(SalesInvoice.status != InvoiceStatus.CANCELLED.value)


def sales_summary(*, start=None, end=None) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    inv_q = _counted_invoices(db.session.query(
        func.count(SalesInvoice.id),
        func.coalesce(func.sum(SalesInvoice.total_cents), 0),
        func.coalesce(func.sum(SalesInvoice.discount_amount_cents), 0),
        func.coalesce(func.sum(SalesInvoice.tax_amount_cents), 0),
    ))
    count, revenue, discounts, tax = _filter_range(inv_q, SalesInvoice.occurred_at, start_dt, end_dt).one()

    cost_q = _counted_invoices(
        db.session.query(func.coalesce(func.sum(SalesItem.qty * SalesItem.unit_cost_snapshot_cents), 0))
        .join(SalesInvoice, SalesItem.invoice_id == SalesInvoice.id)
    )
    cost = _filter_range(cost_q, SalesInvoice.occurred_at, start_dt, end_dt).scalar()

    ret_q = db.session.query(func.coalesce(func.sum(ReturnInvoice.return_total_cents), 0))
    returns_total = _filter_range(ret_q, ReturnInvoice.occurred_at, start_dt, end_dt).scalar()

    count = int(count or 0)
    revenue = int(revenue or 0)
    cost = int(cost or 0)
    returns_total = int(returns_total or 0)
    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "invoice_count": count,
        "revenue_cents": revenue,
        "discount_cents": int(discounts or 0),
        "tax_cents": int(tax or 0),
        "cost_cents": cost,
        "gross_profit_cents": revenue - cost,
        "average_order_cents": (revenue + count // 2) // count if count else 0,
        "returns_total_cents": returns_total,
        "net_revenue_cents": revenue - returns_total,
    }


def sales_by_variant(*, start=None, end=None, limit: int = 20) -> list[dict]:
    start_dt, end_dt = _parse_range(start, end)
    revenue = func.coalesce(func.sum(SalesItem.line_total_cents), 0)
    q = _counted_invoices(
        db.session.query(
            SalesItem.variant_id,
            Variant.sku,
            Variant.color,
            Variant.size,
            ProductModel.name,
            func.coalesce(func.sum(SalesItem.qty), 0),
            revenue,
            func.coalesce(func.sum(SalesItem.qty * SalesItem.unit_cost_snapshot_cents), 0),
        )
        .join(SalesInvoice, SalesItem.invoice_id == SalesInvoice.id)
        .join(Variant, SalesItem.variant_id == Variant.id)
        .join(ProductModel, Variant.model_id == ProductModel.id)
    )
    q = _filter_range(q, SalesInvoice.occurred_at, start_dt, end_dt)
    rows = (
        q.group_by(SalesItem.variant_id, Variant.sku, Variant.color, Variant.size, ProductModel.name)
        .order_by(revenue.desc(), SalesItem.variant_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "variant_id": variant_id,
            "sku": sku,
            "label": f"{model_name} {color} {size}",
            "qty_sold": int(qty or 0),
            "revenue_cents": int(rev or 0),
            "cost_cents": int(cost or 0),
            "profit_cents": int(rev or 0) - int(cost or 0),
        }
        for variant_id, sku, color, size, model_name, qty, rev, cost in rows
    ]


def sales_by_brand(*, start=None, end=None) -> list[dict]:
    start_dt, end_dt = _parse_range(start, end)
    revenue = func.coalesce(func.sum(SalesItem.line_total_cents), 0)
    q = _counted_invoices(
        db.session.query(
            Brand.id,
            Brand.name,
            func.coalesce(func.sum(SalesItem.qty), 0),
            revenue,
            func.coalesce(func.sum(SalesItem.qty * SalesItem.unit_cost_snapshot_cents), 0),
        )
        .select_from(SalesItem)
        .join(SalesInvoice, SalesItem.invoice_id == SalesInvoice.id)
        .join(Variant, SalesItem.variant_id == Variant.id)
        .join(ProductModel, Variant.model_id == ProductModel.id)
        .join(Brand, ProductModel.brand_id == Brand.id)
    )
    q = _filter_range(q, SalesInvoice.occurred_at, start_dt, end_dt)
    rows = q.group_by(Brand.id, Brand.name).order_by(revenue.desc(), Brand.id.asc()).all()
    return [
        {
            "brand_id": brand_id,
            "brand": name,
            "qty_sold": int(qty or 0),
            "revenue_cents": int(rev or 0),
            "cost_cents": int(cost or 0),
            "profit_cents": int(rev or 0) - int(cost or 0),
        }
        for brand_id, name, qty, rev, cost in rows
    ]


def _active_variants() -> list[Variant]:
    return db.session.query(Variant).filter(Variant.is_active.is_(True)).order_by(Variant.id.asc()).all()


def _stock_row(variant: Variant, stock: int) -> dict:
    return {
        "variant_id": variant.id,
        "sku": variant.sku,
        "model": variant.model.name if variant.model else None,
        "color": variant.color,
        "size": variant.size,
        "stock": stock,
        "min_stock": variant.min_stock,
        "cost_price_cents": variant.cost_price_cents,
        "value_cents": stock * (variant.cost_price_cents or 0),
    }


def stock_report() -> dict:
    variants = _active_variants()
    levels = get_stock_levels([v.id for v in variants])
    rows = [_stock_row(v, levels[v.id]) for v in variants]
    return {
        "rows": rows,
        "total_units": sum(r["stock"] for r in rows),
        "total_value_cents": sum(r["value_cents"] for r in rows if r["stock"] > 0),
    }


def low_stock() -> list[dict]:
    variants = _active_variants()
    levels = get_stock_levels([v.id for v in variants])
    return [
        _stock_row(v, levels[v.id])
        for v in variants
        if 0 < levels[v.id] <= (v.min_stock or 0)
    ]


def dead_stock(*, days: int = 90, now: datetime | None = None) -> list[dict]:
    """Variants with stock on hand and no sale in the last `days` days."""
    if days <= 0:
        raise ValidationError("days must be positive")
    cutoff = (now or utcnow()) - timedelta(days=days)

    recently_sold = {
        vid
        for (vid,) in _counted_invoices(
            db.session.query(SalesItem.variant_id)
            .join(SalesInvoice, SalesItem.invoice_id == SalesInvoice.id)
            .filter(SalesInvoice.occurred_at >= cutoff)
        ).distinct()
    }
    variants = _active_variants()
    levels = get_stock_levels([v.id for v in variants])
    return [
        _stock_row(v, levels[v.id])
        for v in variants
        if levels[v.id] > 0 and v.id not in recently_sold
    ]
