from __future__ import annotations

from ..extensions import db
from hoor.time_utils import to_utc_z


class Setting(db.Model):
    """
    Flat key/value setting with a type tag (string | number | boolean | json).

    Values are stored as text and decoded by settings_service. Invoice-number
    counters live here too, keyed "{prefix}_counter_{YYYYMMDD}".
    """
    __tablename__ = "settings"
    __table_args__ = (
        db.UniqueConstraint("key", name="uq_settings_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(16), nullable=False, default="string")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    sync_status = db.Column(db.String(16), nullable=False, default="pending")

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "sync_status": self.sync_status,
        }
