# Overview: Flask API routes for the catalog (brands, models, variants); parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..models import Brand, ProductModel, Variant
from ..services import catalog_service

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _fail(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


def _active_only() -> bool:
    return request.args.get("active", "false").lower() == "true"


# ---------------------------------------------------------------------------
# Brands
# ---------------------------------------------------------------------------

@catalog_bp.get("/brands")
def list_brands():
    return jsonify({"brands": [b.to_dict() for b in catalog_service.list_brands(active_only=_active_only())]})


@catalog_bp.post("/brands")
def create_brand():
    try:
        brand = catalog_service.create_brand(request.get_json(silent=True) or {})
        return jsonify({"brand": brand.to_dict()}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to create brand")


@catalog_bp.patch("/brands/<int:brand_id>")
def update_brand(brand_id: int):
    try:
        brand = catalog_service.update_brand(brand_id, request.get_json(silent=True) or {})
        return jsonify({"brand": brand.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to update brand")


@catalog_bp.delete("/brands/<int:brand_id>")
def delete_brand(brand_id: int):
    try:
        catalog_service.delete_brand(brand_id)
        return "", 204
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to delete brand")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

@catalog_bp.get("/models")
def list_models():
    brand_id = request.args.get("brand_id", type=int)
    models = catalog_service.list_models(brand_id=brand_id, active_only=_active_only())
    return jsonify({"models": [m.to_dict() for m in models]})


@catalog_bp.post("/models")
def create_model():
    try:
        model = catalog_service.create_model(request.get_json(silent=True) or {})
        return jsonify({"model": model.to_dict()}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to create model")


@catalog_bp.patch("/models/<int:model_id>")
def update_model(model_id: int):
    try:
        model = catalog_service.update_model(model_id, request.get_json(silent=True) or {})
        return jsonify({"model": model.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to update model")


@catalog_bp.delete("/models/<int:model_id>")
def delete_model(model_id: int):
    try:
        catalog_service.delete_model(model_id)
        return "", 204
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to delete model")


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

@catalog_bp.get("/variants")
def list_variants():
    model_id = request.args.get("model_id", type=int)
    variants = catalog_service.list_variants(model_id=model_id, active_only=_active_only())
    return jsonify({"variants": catalog_service.variants_with_stock(variants)})


@catalog_bp.post("/variants")
def create_variant():
    try:
        variant = catalog_service.create_variant(request.get_json(silent=True) or {})
        return jsonify({"variant": catalog_service.get_variant_with_stock(variant.id)}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to create variant")


@catalog_bp.get("/variants/<int:variant_id>")
def get_variant(variant_id: int):
    try:
        return jsonify({"variant": catalog_service.get_variant_with_stock(variant_id)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@catalog_bp.patch("/variants/<int:variant_id>")
def update_variant(variant_id: int):
    try:
        catalog_service.update_variant(variant_id, request.get_json(silent=True) or {})
        return jsonify({"variant": catalog_service.get_variant_with_stock(variant_id)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to update variant")


@catalog_bp.delete("/variants/<int:variant_id>")
def delete_variant(variant_id: int):
    try:
        catalog_service.delete_variant(variant_id)
        return "", 204
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to delete variant")


_ACTIVATABLE = {"brands": Brand, "models": ProductModel, "variants": Variant}


@catalog_bp.post("/<kind>/<int:entity_id>/deactivate")
@catalog_bp.post("/<kind>/<int:entity_id>/activate")
def set_active(kind: str, entity_id: int):
    """Soft (de)activation; catalog entries are never hard-deleted while referenced."""
    model = _ACTIVATABLE.get(kind)
    if model is None:
        return jsonify({"error": f"Unknown catalog kind: {kind}"}), 404
    active = request.path.endswith("/activate")
    try:
        record = catalog_service.set_active(model, entity_id, active)
        return jsonify({"item": record.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to change active flag")
