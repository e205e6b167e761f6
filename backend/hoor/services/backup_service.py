# Overview: Whole-store export/import as a versioned JSON document.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import DateTime

from ..errors import ValidationError
from ..extensions import db
from hoor.time_utils import parse_iso_datetime, utcnow, to_utc_z
from .concurrency import transaction
from .entity_store import ENTITY_TYPES

"""
Backup document

    {"version": 1, "exported_at": "...Z", "data": {"<table>": [record, ...], ...}}

- Records are raw column values; datetimes are ISO-8601 strings.
- Import only accepts the current version (no migration between versions).
- Import replaces everything: every table is cleared, then records are
  inserted verbatim (ids preserved) in one transaction.
- Import writes nothing of its own into the restored tables, so exporting
  right after an import gives back the same data; the import is logged instead.
"""


def _format_version() -> int:
    return current_app.config.get("BACKUP_FORMAT_VERSION", 1)


def _dump_record(record) -> dict:
    out = {}
    for col in record.__mapper__.columns:
        value = getattr(record, col.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        out[col.key] = value
    return out


def export_backup() -> dict:
    data = {}
    for table, model in ENTITY_TYPES.items():
        rows = db.session.query(model).order_by(model.id.asc()).all()
        data[table] = [_dump_record(r) for r in rows]
    return {
        "version": _format_version(),
        "exported_at": to_utc_z(utcnow()),
        "data": data,
    }


def _load_records(table: str, model, records) -> list[dict]:
    if not isinstance(records, list):
        raise ValidationError(f"data.{table} must be a list")
    columns = {c.key: c for c in model.__mapper__.columns}
    rows = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise ValidationError(f"data.{table}[{index}] must be an object")
        unknown = sorted(set(record) - set(columns))
        if unknown:
            raise ValidationError(f"data.{table}[{index}] has unknown fields: {', '.join(unknown)}")
        row = {}
        for key, value in record.items():
            if isinstance(columns[key].type, DateTime) and isinstance(value, str):
                try:
                    value = parse_iso_datetime(value)
                except ValueError:
                    raise ValidationError(f"data.{table}[{index}].{key} is not an ISO-8601 datetime")
            row[key] = value
        rows.append(row)
    return rows


def import_backup(document, *, user_id: int | None = None) -> dict[str, int]:
    """Replace the whole store with the document's records. Returns row counts per table."""
    if not isinstance(document, dict):
        raise ValidationError("Backup document must be a JSON object")
    version = document.get("version")
    if version is None:
        raise ValidationError("Backup document has no version")
    if version != _format_version():
        raise ValidationError(
            f"Unsupported backup version {version}; expected {_format_version()}",
            details={"version": version, "expected": _format_version()},
        )
    data = document.get("data")
    if not isinstance(data, dict):
        raise ValidationError("Backup document has no data")
    unknown_tables = sorted(set(data) - set(ENTITY_TYPES))
    if unknown_tables:
        raise ValidationError(f"Unknown tables in backup: {', '.join(unknown_tables)}")

    # Validate everything before touching the database
    loaded = {table: _load_records(table, model, data.get(table, [])) for table, model in ENTITY_TYPES.items()}

    with transaction():
        for model in reversed(list(ENTITY_TYPES.values())):
            db.session.execute(model.__table__.delete())
        for table, model in ENTITY_TYPES.items():
            if loaded[table]:
                db.session.execute(model.__table__.insert(), loaded[table])
        db.session.expunge_all()

    counts = {table: len(rows) for table, rows in loaded.items()}
    current_app.logger.info("Backup imported by user %s: %s", user_id, counts)
    return counts
