# Overview: Transaction scope shared by every write operation; all-or-nothing commit semantics.

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError
from ..extensions import db

_DEPTH_KEY = "hoor_tx_depth"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def transaction():
    """
    Run a block of writes atomically.

    - Outermost scope commits on success and rolls back on any exception.
    - Nested scopes join the outer one; only the outermost commits.
    - SQLAlchemy failures are logged and re-raised as StorageError.
      Domain errors (ValidationError, NotFoundError, ...) propagate unchanged.
    - Nothing is retried automatically; the operator resubmits.
    """
    session = db.session
    depth = session.info.get(_DEPTH_KEY, 0)
    if depth:
        session.info[_DEPTH_KEY] = depth + 1
        try:
            yield session
        finally:
            session.info[_DEPTH_KEY] = depth
        return

    session.info[_DEPTH_KEY] = 1
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.exception("Transaction rolled back after storage failure")
        raise StorageError("Operation failed; no changes were saved") from exc
    except BaseException:
        session.rollback()
        raise
    finally:
        session.info.pop(_DEPTH_KEY, None)
