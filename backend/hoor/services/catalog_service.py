# Overview: Catalog and party master data (brands, models, variants, customers, suppliers).

from __future__ import annotations

from sqlalchemy import func

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import (
    Brand,
    Customer,
    Payment,
    ProductModel,
    PurchaseInvoice,
    PurchaseItem,
    ReturnInvoice,
    SalesInvoice,
    SalesItem,
    StockMove,
    Supplier,
    Variant,
)
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_customer,
    enforce_rules_variant,
    validate_payload,
)
from . import entity_store
from .stock_service import get_stock, get_stock_levels

BRAND_POLICY = ModelValidationPolicy(
    writable_fields={"name", "name_ar", "is_active"},
    required_on_create={"name"},
)

MODEL_POLICY = ModelValidationPolicy(
    writable_fields={"brand_id", "name", "name_ar", "category", "description", "image", "is_active"},
    required_on_create={"brand_id", "name"},
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={
        "model_id", "color", "color_ar", "size", "sku", "barcode",
        "sale_price_cents", "cost_price_cents", "min_stock", "is_active",
    },
    required_on_create={"model_id", "color", "size", "sku"},
)

# cost_price_cents is the weighted-average cost once stock moves exist; only purchases rewrite it
VARIANT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"color", "color_ar", "size", "sku", "barcode", "sale_price_cents", "min_stock", "is_active"},
)

# Balances are ledger-derived and never writable here
CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "credit_limit_cents", "notes"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "notes"},
    required_on_create={"name"},
)

ENTITY_TYPE_BY_MODEL = {
    Brand: "brands",
    ProductModel: "product_models",
    Variant: "variants",
    Customer: "customers",
    Supplier: "suppliers",
}

_LABELS = {
    Brand: "Brand",
    ProductModel: "Model",
    Variant: "Variant",
    Customer: "Customer",
    Supplier: "Supplier",
}


def _get(model, entity_id: int):
    return entity_store.get_or_404(ENTITY_TYPE_BY_MODEL[model], entity_id, label=_LABELS[model])


def _check_parents(patch: dict, parents) -> None:
    for parent_model, field in parents:
        if patch.get(field) is not None:
            _get(parent_model, patch[field])


def _create(model, policy: ModelValidationPolicy, payload: dict, rules=None, parents=()):
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)
    if rules:
        rules(patch)
    _check_parents(patch, parents)
    new_id = entity_store.add(ENTITY_TYPE_BY_MODEL[model], **patch)
    return _get(model, new_id)


def _update(model, entity_id: int, policy: ModelValidationPolicy, payload: dict, rules=None, parents=()):
    _get(model, entity_id)
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=True)
    if rules:
        rules(patch)
    _check_parents(patch, parents)
    return entity_store.update(ENTITY_TYPE_BY_MODEL[model], entity_id, **patch)


def _exists(query) -> bool:
    return db.session.query(query.exists()).scalar()


# ---------------------------------------------------------------------------
# Brands / models / variants
# ---------------------------------------------------------------------------

def create_brand(payload: dict) -> Brand:
    return _create(Brand, BRAND_POLICY, payload)


def update_brand(brand_id: int, payload: dict) -> Brand:
    return _update(Brand, brand_id, BRAND_POLICY, payload)


def list_brands(*, active_only: bool = False) -> list[Brand]:
    q = db.session.query(Brand)
    if active_only:
        q = q.filter(Brand.is_active.is_(True))
    return q.order_by(Brand.name.asc(), Brand.id.asc()).all()


def delete_brand(brand_id: int) -> None:
    _get(Brand, brand_id)
    if _exists(db.session.query(ProductModel.id).filter(ProductModel.brand_id == brand_id)):
        raise ConflictError("Brand has models; deactivate it instead")
    entity_store.delete("brands", brand_id)


def create_model(payload: dict) -> ProductModel:
    return _create(ProductModel, MODEL_POLICY, payload, parents=((Brand, "brand_id"),))


def update_model(model_id: int, payload: dict) -> ProductModel:
    return _update(ProductModel, model_id, MODEL_POLICY, payload, parents=((Brand, "brand_id"),))


def list_models(*, brand_id: int | None = None, active_only: bool = False) -> list[ProductModel]:
    q = db.session.query(ProductModel)
    if brand_id is not None:
        q = q.filter(ProductModel.brand_id == brand_id)
    if active_only:
        q = q.filter(ProductModel.is_active.is_(True))
    return q.order_by(ProductModel.name.asc(), ProductModel.id.asc()).all()


def delete_model(model_id: int) -> None:
    _get(ProductModel, model_id)
    if _exists(db.session.query(Variant.id).filter(Variant.model_id == model_id)):
        raise ConflictError("Model has variants; deactivate it instead")
    entity_store.delete("product_models", model_id)


def create_variant(payload: dict) -> Variant:
    return _create(Variant, VARIANT_POLICY, payload, rules=enforce_rules_variant, parents=((ProductModel, "model_id"),))


def update_variant(variant_id: int, payload: dict) -> Variant:
    return _update(Variant, variant_id, VARIANT_UPDATE_POLICY, payload, rules=enforce_rules_variant)


def list_variants(*, model_id: int | None = None, active_only: bool = False) -> list[Variant]:
    q = db.session.query(Variant)
    if model_id is not None:
        q = q.filter(Variant.model_id == model_id)
    if active_only:
        q = q.filter(Variant.is_active.is_(True))
    return q.order_by(Variant.id.asc()).all()


def delete_variant(variant_id: int) -> None:
    _get(Variant, variant_id)
    referenced = (
        _exists(db.session.query(StockMove.id).filter(StockMove.variant_id == variant_id))
        or _exists(db.session.query(SalesItem.id).filter(SalesItem.variant_id == variant_id))
        or _exists(db.session.query(PurchaseItem.id).filter(PurchaseItem.variant_id == variant_id))
    )
    if referenced:
        raise ConflictError("Variant has stock or invoice history; deactivate it instead")
    entity_store.delete("variants", variant_id)


def set_active(model, entity_id: int, active: bool):
    """Soft (de)activation for brands, models and variants."""
    if model not in (Brand, ProductModel, Variant):
        raise ValidationError("Only catalog entries can be deactivated")
    _get(model, entity_id)
    return entity_store.update(ENTITY_TYPE_BY_MODEL[model], entity_id, is_active=bool(active))


def variant_with_stock_dict(variant: Variant, stock: int | None = None) -> dict:
    out = variant.to_dict()
    out["stock"] = get_stock(variant.id) if stock is None else stock
    model = variant.model
    out["model"] = model.to_dict() if model else None
    out["brand"] = model.brand.to_dict() if model and model.brand else None
    return out


def get_variant_with_stock(variant_id: int) -> dict:
    return variant_with_stock_dict(_get(Variant, variant_id))


def variants_with_stock(variants: list[Variant]) -> list[dict]:
    levels = get_stock_levels([v.id for v in variants])
    return [variant_with_stock_dict(v, levels.get(v.id, 0)) for v in variants]


# ---------------------------------------------------------------------------
# Customers / suppliers
# ---------------------------------------------------------------------------

def create_customer(payload: dict) -> Customer:
    return _create(Customer, CUSTOMER_POLICY, payload, rules=enforce_rules_customer)


def update_customer(customer_id: int, payload: dict) -> Customer:
    return _update(Customer, customer_id, CUSTOMER_POLICY, payload, rules=enforce_rules_customer)


def get_customer(customer_id: int) -> Customer:
    return _get(Customer, customer_id)


def list_customers(*, search: str | None = None, limit: int = 200) -> list[Customer]:
    q = db.session.query(Customer)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.filter(func.lower(Customer.name).like(term) | Customer.phone.like(term))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).limit(limit).all()


def delete_customer(customer_id: int) -> None:
    _get(Customer, customer_id)
    has_history = (
        _exists(db.session.query(SalesInvoice.id).filter(SalesInvoice.customer_id == customer_id))
        or _exists(db.session.query(Payment.id).filter(Payment.customer_id == customer_id))
        or _exists(db.session.query(ReturnInvoice.id).filter(ReturnInvoice.customer_id == customer_id))
    )
    if has_history:
        raise ConflictError("Customer has ledger history and cannot be deleted")
    entity_store.delete("customers", customer_id)


def create_supplier(payload: dict) -> Supplier:
    return _create(Supplier, SUPPLIER_POLICY, payload)


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    return _update(Supplier, supplier_id, SUPPLIER_POLICY, payload)


def get_supplier(supplier_id: int) -> Supplier:
    return _get(Supplier, supplier_id)


def list_suppliers(*, search: str | None = None, limit: int = 200) -> list[Supplier]:
    q = db.session.query(Supplier)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.filter(func.lower(Supplier.name).like(term) | Supplier.phone.like(term))
    return q.order_by(Supplier.name.asc(), Supplier.id.asc()).limit(limit).all()


def delete_supplier(supplier_id: int) -> None:
    _get(Supplier, supplier_id)
    has_history = (
        _exists(db.session.query(PurchaseInvoice.id).filter(PurchaseInvoice.supplier_id == supplier_id))
        or _exists(db.session.query(Payment.id).filter(Payment.supplier_id == supplier_id))
    )
    if has_history:
        raise ConflictError("Supplier has ledger history and cannot be deleted")
    entity_store.delete("suppliers", supplier_id)
