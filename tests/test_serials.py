"""Serial allocator: formatting, uniqueness under concurrency, degraded fallback."""

import asyncio
import logging
import re

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core import serials
from feeledger.core.exceptions import AllocationDegradedWarning, ValidationError
from feeledger.core.models import Counter


def test_format_serial_pads_to_four_digits() -> None:
    assert serials.format_serial("STU", 1) == "STU-0001"
    assert serials.format_serial("INV", 42) == "INV-0042"
    # Width is a minimum; large counts are not truncated
    assert serials.format_serial("TXN", 123456) == "TXN-123456"


def test_normalize_prefix() -> None:
    assert serials.normalize_prefix(" stu ") == "STU"
    with pytest.raises(ValidationError):
        serials.normalize_prefix("   ")


def test_fallback_serial_uses_last_six_digits_of_epoch_millis() -> None:
    assert re.fullmatch(r"INV-\d{6}", serials.fallback_serial("INV"))


@pytest.mark.asyncio
async def test_sequential_allocations_increment(db_session: AsyncSession) -> None:
    first = await serials.allocate_serial(db_session, "STU")
    second = await serials.allocate_serial(db_session, "stu")
    other = await serials.allocate_serial(db_session, "INV")
    await db_session.commit()

    assert (first, second, other) == ("STU-0001", "STU-0002", "INV-0001")
    assert await serials.peek_serial(db_session, "STU") == "STU-0002"
    await db_session.rollback()


@pytest.mark.asyncio
async def test_peek_unused_prefix_does_not_create_counter(db_session: AsyncSession) -> None:
    assert await serials.peek_serial(db_session, "MPAY") == "MPAY-0000"
    assert await db_session.get(Counter, "MPAY") is None
    await db_session.rollback()


@pytest.mark.asyncio
async def test_concurrent_allocations_are_distinct(session_factory) -> None:
    """100 callers racing on one prefix each get a different serial, with no gaps."""

    async def allocate() -> str:
        async with session_factory() as session:
            serial = await serials.allocate_serial(session, "STU")
            await session.commit()
            return serial

    allocated = await asyncio.gather(*(allocate() for _ in range(100)))

    assert len(set(allocated)) == 100
    assert sorted(allocated) == [serials.format_serial("STU", n) for n in range(1, 101)]


@pytest.mark.asyncio
async def test_rolled_back_allocation_releases_number(session_factory) -> None:
    async with session_factory() as session:
        await serials.allocate_serial(session, "FEE")
        await session.rollback()
    async with session_factory() as session:
        assert await serials.allocate_serial(session, "FEE") == "FEE-0001"
        await session.commit()


@pytest.mark.asyncio
async def test_counter_failure_falls_back_to_timestamp_serial(
    db_session: AsyncSession, monkeypatch, caplog
) -> None:
    async def broken_counter(db, prefix):
        raise OperationalError("UPDATE counters", {}, Exception("database is unavailable"))

    monkeypatch.setattr(serials, "_increment_counter", broken_counter)

    with caplog.at_level(logging.WARNING, logger="feeledger.core.serials"):
        with pytest.warns(AllocationDegradedWarning):
            serial = await serials.allocate_serial(db_session, "INV")

    assert re.fullmatch(r"INV-\d{6}", serial)
    assert "timestamp fallback" in caplog.text
    # The caller's transaction is still usable after the failed savepoint
    await db_session.commit()


@pytest.mark.asyncio
async def test_unsupported_dialect_falls_back_instead_of_failing(db_session: AsyncSession, monkeypatch) -> None:
    monkeypatch.setattr(serials, "_UPSERT_BY_DIALECT", {"postgresql": serials.postgresql.insert})

    with pytest.warns(AllocationDegradedWarning):
        serial = await serials.allocate_serial(db_session, "STU")

    assert re.fullmatch(r"STU-\d{6}", serial)
    assert await serials.peek_serial(db_session, "STU") == "STU-0000"
    await db_session.rollback()
