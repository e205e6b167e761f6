from __future__ import annotations

from ..extensions import db
from hoor.time_utils import to_utc_z


class Brand(db.Model):
    """
    Top of the catalog tree (brand -> model -> variant).

    Brands are soft-deactivated, never hard-deleted while models reference them.
    """
    __tablename__ = "brands"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    name_ar = db.Column(db.String(128), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "name_ar": self.name_ar,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "sync_status": self.sync_status,
        }


class ProductModel(db.Model):
    """A product line of a brand; parent of its color/size variants."""
    __tablename__ = "product_models"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    name_ar = db.Column(db.String(128), nullable=True)
    category = db.Column(db.String(64), nullable=False, default="general", index=True)
    description = db.Column(db.Text, nullable=True)
    image = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    brand = db.relationship("Brand", backref=db.backref("models", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brand_id": self.brand_id,
            "name": self.name,
            "name_ar": self.name_ar,
            "category": self.category,
            "description": self.description,
            "image": self.image,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "sync_status": self.sync_status,
        }


class Variant(db.Model):
    """
    Smallest sellable and stockable unit: one color/size of a model.

    cost_price_cents is the running weighted-average cost; it is rewritten on
    every purchase receipt. There is deliberately no stock column: on-hand
    quantity is always SUM(qty_in - qty_out) over stock_moves.
    """
    __tablename__ = "variants"
    __table_args__ = (
        db.Index("ix_variants_model_active", "model_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    model_id = db.Column(db.Integer, db.ForeignKey("product_models.id"), nullable=False, index=True)

    color = db.Column(db.String(64), nullable=False)
    color_ar = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(32), nullable=False)

    # Not enforced unique; duplicates are tolerated
    sku = db.Column(db.String(64), nullable=False, index=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=5)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    model = db.relationship("ProductModel", backref=db.backref("variants", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "model_id": self.model_id,
            "color": self.color,
            "color_ar": self.color_ar,
            "size": self.size,
            "sku": self.sku,
            "barcode": self.barcode,
            "sale_price_cents": self.sale_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "min_stock": self.min_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "sync_status": self.sync_status,
        }
