"""
Catalog payload checks.

Master-data writes (brands, models, variants, customers, suppliers) go
through validate_payload: the policy says which keys a client may send, the
mapped column says what shape the value must have. Money is integer cents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text

from .errors import ValidationError


# 9,999,999.99 SAR
MAX_PRICE_CENTS = 999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _clean(col, value: Any):
    if isinstance(col.type, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{col.key} must be true or false")
        return value

    if isinstance(col.type, Integer):
        # JSON numbers only; "12.50" or 12.5 for a cents field is a client bug
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{col.key} must be a whole number")
        return value

    if isinstance(col.type, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be text")
        value = value.strip()
        if value == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        length = getattr(col.type, "length", None)
        if length and len(value) > length:
            raise ValidationError(f"{col.key} exceeds max length {length}")
        return value

    raise ValidationError(f"{col.key} cannot be set through this endpoint")


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Return the cleaned subset of payload a client is allowed to write.

    partial=False enforces policy.required_on_create (create); partial=True
    checks only the keys that were sent (update).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    rejected = sorted(k for k in payload if k not in policy.writable_fields)
    if rejected:
        raise ValidationError(f"Field not allowed: {rejected[0]}", details={"fields": rejected})

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = model.__mapper__.columns
    patch: dict = {}
    for key, raw in payload.items():
        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _clean(col, raw)
    return patch


def _check_money(patch: dict, name: str) -> None:
    value = patch.get(name)
    if value is None:
        return
    if not 0 <= value <= MAX_PRICE_CENTS:
        raise ValidationError(f"{name} must be between 0 and {MAX_PRICE_CENTS} cents")


def enforce_rules_variant(patch: dict) -> None:
    _check_money(patch, "sale_price_cents")
    _check_money(patch, "cost_price_cents")
    if (patch.get("min_stock") or 0) < 0:
        raise ValidationError("min_stock must be >= 0")
    # an empty barcode means "no barcode"; keeps the unique index usable
    if patch.get("barcode") == "":
        patch["barcode"] = None


def enforce_rules_customer(patch: dict) -> None:
    _check_money(patch, "credit_limit_cents")
