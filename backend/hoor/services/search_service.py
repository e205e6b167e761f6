# Overview: POS lookup of variants by barcode, SKU prefix or model name.

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import ProductModel, Variant
from .catalog_service import variants_with_stock


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_variants(query: str | None, *, limit: int = 50) -> list[dict]:
    """
    Resolve a free-text query in priority order; the first tier with hits wins:
    1. exact barcode -> that single variant
    2. SKU prefix, case-insensitive
    3. model name substring (case-insensitive) or localized name substring,
       active variants only
    Each result carries its ledger stock and parent model/brand.
    """
    term = (query or "").strip()
    if not term:
        return []

    by_barcode = db.session.query(Variant).filter(Variant.barcode == term).order_by(Variant.id).first()
    if by_barcode is not None:
        return variants_with_stock([by_barcode])

    prefix = _escape_like(term.lower()) + "%"
    by_sku = (
        db.session.query(Variant)
        .filter(func.lower(Variant.sku).like(prefix, escape="\\"))
        .order_by(Variant.sku.asc(), Variant.id.asc())
        .limit(limit)
        .all()
    )
    if by_sku:
        return variants_with_stock(by_sku)

    contains = "%" + _escape_like(term.lower()) + "%"
    contains_raw = "%" + _escape_like(term) + "%"
    by_name = (
        db.session.query(Variant)
        .join(ProductModel, Variant.model_id == ProductModel.id)
        .filter(
            Variant.is_active.is_(True),
            or_(
                func.lower(ProductModel.name).like(contains, escape="\\"),
                ProductModel.name_ar.like(contains_raw, escape="\\"),
            ),
        )
        .order_by(ProductModel.name.asc(), Variant.id.asc())
        .limit(limit)
        .all()
    )
    return variants_with_stock(by_name)
