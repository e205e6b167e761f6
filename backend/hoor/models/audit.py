from __future__ import annotations

from ..extensions import db
from hoor.time_utils import to_utc_z


class AuditLog(db.Model):
    """
    Business event log (sale.checkout, shift.closed, purchase.returned, ...).

    IMMUTABLE: Never update or delete. Rows are written in the same
    transaction as the event they describe.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    action = db.Column(db.String(64), nullable=False, index=True)
    entity = db.Column(db.String(64), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)

    # JSON-encoded event details
    meta = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    def to_dict(self):
        return {
            "id": self.id,
            "occurred_at": to_utc_z(self.occurred_at),
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "meta": self.meta,
            "created_at": to_utc_z(self.created_at),
            "sync_status": self.sync_status,
        }
