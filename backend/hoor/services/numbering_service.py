# Overview: Date-scoped invoice numbering backed by counter settings.

from __future__ import annotations

from datetime import date, datetime

import sqlalchemy as sa

from ..errors import ValidationError
from ..extensions import db
from ..models import Setting

INVOICE_PREFIXES = {
    "INV",  # sale
    "PUR",  # purchase
    "RET",  # sales return
    "EXC",  # exchange replacement sale
    "PRT",  # purchase return
}


def counter_key(prefix: str, on_date: date) -> str:
    return f"{prefix}_counter_{on_date:%Y%m%d}"


def next_invoice_number(prefix: str, on_date: date | datetime, *, pad: int = 4) -> str:
    """
    Allocate the next number for (prefix, calendar day): PREFIX-YYYYMMDD-0001.

    The counter row is incremented in place (or created at 1) in the caller's
    session without committing, so a rolled-back invoice also rolls back its number.
    """
    if prefix not in INVOICE_PREFIXES:
        raise ValidationError(f"Unknown invoice prefix: {prefix}")
    if isinstance(on_date, datetime):
        on_date = on_date.date()

    key = counter_key(prefix, on_date)
    stmt = (
        sa.update(Setting)
        .where(Setting.key == key)
        .values(value=sa.cast(sa.cast(Setting.value, sa.Integer) + 1, sa.String))
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        seq = int(db.session.query(Setting.value).filter(Setting.key == key).scalar())
    else:
        db.session.add(Setting(key=key, value="1", type="number"))
        db.session.flush()
        seq = 1

    return f"{prefix}-{on_date:%Y%m%d}-{seq:0{pad}d}"
