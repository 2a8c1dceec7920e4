"""
Serial allocator: human-readable unique identifiers per prefix (STU-0042, INV-0007, ...).

Every allocation is a single atomic upsert-and-increment on the counters row for the
prefix, so two concurrent callers can never observe the same count. Nothing is cached
in process. If the counter statement fails, a timestamp-derived serial is returned
instead; that value is NOT guaranteed unique and is logged for later reconciliation.
"""

import logging
import time
import warnings
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.config import settings
from feeledger.core.exceptions import AllocationDegradedWarning, ValidationError
from feeledger.core.models import Counter

logger = logging.getLogger(__name__)

_UPSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def normalize_prefix(prefix: str) -> str:
    value = (prefix or "").strip().upper()
    if not value:
        raise ValidationError("Serial prefix is required")
    return value


def format_serial(prefix: str, count: int) -> str:
    return f"{prefix}-{count:0{settings.serial_pad_width}d}"


def fallback_serial(prefix: str) -> str:
    millis = str(int(time.time() * 1000))
    return f"{prefix}-{millis[-settings.serial_fallback_digits:]}"


async def _increment_counter(db: AsyncSession, prefix: str) -> int:
    """INSERT ... ON CONFLICT (prefix) DO UPDATE SET count = count + 1 RETURNING count."""
    insert = _UPSERT_BY_DIALECT[db.get_bind().dialect.name]
    now = datetime.utcnow()
    stmt = (
        insert(Counter)
        .values(prefix=prefix, count=1, updated_at=now)
        .on_conflict_do_update(
            index_elements=[Counter.prefix],
            set_={"count": Counter.count + 1, "updated_at": now},
        )
        .returning(Counter.count)
    )
    result = await db.execute(stmt)
    return int(result.scalar_one())


def _degraded_serial(prefix: str, reason) -> str:
    serial = fallback_serial(prefix)
    logger.warning(
        "Serial counter unavailable for prefix %s, using timestamp fallback %s: %s",
        prefix,
        serial,
        reason,
    )
    warnings.warn(
        f"Degraded serial {serial} allocated for prefix {prefix}",
        AllocationDegradedWarning,
        stacklevel=3,
    )
    return serial


async def allocate_serial(db: AsyncSession, prefix: str) -> str:
    """
    Allocate the next serial for ``prefix`` inside the caller's transaction.

    The increment runs in a savepoint so a storage failure leaves the caller's
    transaction usable; the caller commits (or rolls back, releasing the number).
    """
    prefix = normalize_prefix(prefix)
    dialect = db.get_bind().dialect.name
    if dialect not in _UPSERT_BY_DIALECT:
        return _degraded_serial(prefix, f"no atomic counter upsert for dialect {dialect!r}")
    # flush caller state outside the savepoint so its errors propagate
    await db.flush()
    try:
        async with db.begin_nested():
            count = await _increment_counter(db, prefix)
    except SQLAlchemyError as exc:
        return _degraded_serial(prefix, exc)
    return format_serial(prefix, count)


async def peek_serial(db: AsyncSession, prefix: str) -> str:
    """Current serial for ``prefix`` without incrementing (PREFIX-0000 when unused)."""
    prefix = normalize_prefix(prefix)
    count = (
        await db.execute(select(Counter.count).where(Counter.prefix == prefix))
    ).scalar_one_or_none()
    return format_serial(prefix, int(count or 0))
