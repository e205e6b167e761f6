# Overview: Typed key/value store configuration (store name, currency, tax).

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from ..errors import ValidationError
from ..extensions import db
from ..models import Setting
from .concurrency import transaction

SETTING_TYPES = {"string", "number", "boolean", "json"}

DEFAULT_SETTINGS: dict[str, tuple[Any, str]] = {
    "storeName": ("Hoor", "string"),
    "currency": ("SAR", "string"),
    "taxRate": (15, "number"),
    "taxEnabled": (True, "boolean"),
}


def _infer_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "json"


def _encode(key: str, value: Any, type_: str) -> str | None:
    if value is None:
        return None
    if type_ == "boolean":
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower()
        raise ValidationError(f"{key} must be a boolean")
    if type_ == "number":
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be a number")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{key} must be a number")
        if not number.is_finite():
            raise ValidationError(f"{key} must be a finite number")
        return str(number)
    if type_ == "json":
        return json.dumps(value, sort_keys=True)
    return str(value)


def _decode(raw: str | None, type_: str) -> Any:
    if raw is None:
        return None
    if type_ == "boolean":
        return raw.strip().lower() == "true"
    if type_ == "number":
        number = Decimal(raw)
        if number == number.to_integral_value() and "." not in raw and "E" not in raw.upper():
            return int(number)
        return float(number)
    if type_ == "json":
        return json.loads(raw)
    return raw


def get_setting_row(key: str) -> Setting | None:
    return db.session.query(Setting).filter_by(key=key).first()


def get_setting(key: str, default: Any = None) -> Any:
    row = get_setting_row(key)
    if row is None:
        return default
    return _decode(row.value, row.type)


def set_setting(key: str, value: Any, type_: str | None = None) -> Setting:
    """Upsert a setting; the type tag is inferred from the value when omitted."""
    key = (key or "").strip()
    if not key:
        raise ValidationError("key is required")
    type_ = type_ or _infer_type(value)
    if type_ not in SETTING_TYPES:
        raise ValidationError(f"Unsupported setting type: {type_}")

    encoded = _encode(key, value, type_)
    with transaction():
        row = get_setting_row(key)
        if row is None:
            row = Setting(key=key, value=encoded, type=type_)
            db.session.add(row)
        else:
            row.value = encoded
            row.type = type_
        db.session.flush()
        return row


def all_settings() -> dict[str, Any]:
    """Configuration settings; invoice counters are excluded."""
    rows = db.session.query(Setting).filter(~Setting.key.like("%\\_counter\\_%", escape="\\")).order_by(Setting.key).all()
    return {row.key: _decode(row.value, row.type) for row in rows}


def ensure_defaults() -> int:
    """Seed missing default settings. Existing values are never overwritten."""
    created = 0
    with transaction():
        for key, (value, type_) in DEFAULT_SETTINGS.items():
            if get_setting_row(key) is None:
                db.session.add(Setting(key=key, value=_encode(key, value, type_), type=type_))
                created += 1
        db.session.flush()
    return created


def tax_config() -> tuple[bool, int]:
    """
    Returns (tax_enabled, tax_rate_bps).

    taxRate is a percentage (15 -> 1500 bps). Missing rows fall back to the defaults.
    """
    enabled = get_setting("taxEnabled", DEFAULT_SETTINGS["taxEnabled"][0])
    rate = get_setting("taxRate", DEFAULT_SETTINGS["taxRate"][0])
    try:
        bps = int((Decimal(str(rate)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValidationError("taxRate setting is not a number")
    if bps < 0:
        raise ValidationError("taxRate setting cannot be negative")
    return bool(enabled), bps
