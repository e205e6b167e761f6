# backend/hoor/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/hoor.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///hoor.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Backup documents are only accepted at this version
    BACKUP_FORMAT_VERSION = 1

    # Shift summaries flag variances at or above this many cents
    SHIFT_VARIANCE_WARN_CENTS = int(os.environ.get("SHIFT_VARIANCE_WARN_CENTS", "0"))
