# Overview: Service-layer allocation of human-readable document numbers from named counters.

"""
Document Number Sequences

WHY: Receipt, order and invoice numbers are handed to people (printed on
paper, quoted on the phone), so they must be short, dated and never repeat,
even when two clerks save at the same instant.

FORMAT:
    "{prefix}-{date key}-{seq}"    e.g. R-250817-01, INV-250817-0003, S-2508-07

The counter key is "{counter prefix}-{date key}", so every prefix restarts at
1 each day (or month, for purchase orders). Two formats may share a visible
prefix while counting independently (purchase receipts use counter "R",
purchase-return receipts use counter "PR"; both print "R-...").

CONCURRENCY:
The counter row is only touched by one atomic statement,
`UPDATE counters SET seq = seq + 1 WHERE name = :name`. The first caller of
the day finds no row and INSERTs seq=1; a concurrent INSERT of the same name
loses on the unique index and retries the UPDATE. There is no
read-increment-write fallback anywhere in this module.

Gaps are allowed: a number handed out for a document that then fails to save
is simply never used.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import SequenceUnavailable
from ..extensions import db
from ..models import Counter
from .concurrency import run_with_retry
from inventory_api.time_utils import date_key, utcnow


@dataclass(frozen=True)
class NumberFormat:
    prefix: str
    counter_prefix: str | None = None
    date_format: str = "%y%m%d"
    pad: int = 2


PURCHASE_RECEIPT = NumberFormat(prefix="R", counter_prefix="R")
PURCHASE_RETURN_RECEIPT = NumberFormat(prefix="R", counter_prefix="PR")
SALE_INVOICE = NumberFormat(prefix="INV", pad=4)


def purchase_order_format(site_type: str | None = None) -> NumberFormat:
    """Purchase orders are numbered per site letter and month: S-2508-01."""
    site = (site_type or current_app.config.get("PO_SITE_TYPE") or "S").strip().upper()
    return NumberFormat(prefix=site, counter_prefix=f"PO-{site}", date_format="%y%m")


def _increment(counter_name: str, key: str) -> int:
    """
    Atomically bump one counter and return the value this caller owns.

    Commits on success: the counter must not stay locked for the lifetime of
    the caller's document transaction. Call with no other pending changes.
    """
    stmt = (
        update(Counter)
        .where(Counter.name == counter_name)
        .values(seq=Counter.seq + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        db.session.add(Counter(name=counter_name, seq=1, date=key))
        try:
            db.session.commit()
            return 1
        except IntegrityError:
            # Another caller created the counter first; ours becomes an increment
            db.session.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    # Our UPDATE holds the row (or database) lock until commit, so this read
    # sees exactly the value we produced.
    seq = db.session.execute(
        select(Counter.seq).where(Counter.name == counter_name)
    ).scalar_one()
    db.session.commit()
    return seq


def next_number(
    prefix: str,
    now: datetime | None = None,
    *,
    pad: int = 2,
    date_format: str = "%y%m%d",
    counter_prefix: str | None = None,
) -> str:
    """
    Allocate the next document number for `prefix` on the date of `now`.

    Concurrent callers always receive distinct values. Raises
    SequenceUnavailable when the counter store cannot be reached after
    retries; the caller decides what that means for its document.
    """
    tz_name = current_app.config.get("BUSINESS_TIMEZONE", "UTC")
    key = date_key(now, date_format, tz_name)
    counter_name = f"{counter_prefix or prefix}-{key}"

    try:
        seq = run_with_retry(lambda: _increment(counter_name, key), attempts=5)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Counter %s unavailable: %s", counter_name, exc)
        raise SequenceUnavailable(
            "Could not generate a document number, please retry",
            details={"counter": counter_name},
        ) from exc

    return f"{prefix}-{key}-{seq:0{pad}d}"


def allocate(fmt: NumberFormat, now: datetime | None = None) -> str:
    return next_number(
        fmt.prefix,
        now,
        pad=fmt.pad,
        date_format=fmt.date_format,
        counter_prefix=fmt.counter_prefix,
    )


def peek_counter(counter_name: str) -> Counter | None:
    """Current state of a counter (read-only; used by the CLI)."""
    return db.session.query(Counter).filter_by(name=counter_name).first()
