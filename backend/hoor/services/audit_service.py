# Overview: Append-only business event log written inside domain transactions.

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..models import AuditLog
from hoor.time_utils import utcnow

"""
Audit log invariants (authoritative)

- Events are written inside the same DB transaction as the domain event they record.
- No updates or deletes of existing events.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_audit_event(
    *,
    action: str,
    entity: str | None = None,
    entity_id: int | None = None,
    user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    meta: dict[str, Any] | None = None,
) -> AuditLog:
    event = AuditLog(
        action=action,
        entity=entity,
        entity_id=entity_id,
        user_id=user_id,
        occurred_at=occurred_at or utcnow(),
        meta=json.dumps(meta, sort_keys=True, default=str) if meta else None,
    )
    db.session.add(event)
    db.session.flush()
    return event


def list_audit_events(*, entity: str | None = None, entity_id: int | None = None, limit: int = 100) -> list[AuditLog]:
    q = db.session.query(AuditLog)
    if entity is not None:
        q = q.filter(AuditLog.entity == entity)
    if entity_id is not None:
        q = q.filter(AuditLog.entity_id == entity_id)
    return q.order_by(AuditLog.id.desc()).limit(limit).all()
