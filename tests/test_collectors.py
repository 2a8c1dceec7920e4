"""Collector name attribution precedence."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.models import User
from feeledger.core.collectors import UNKNOWN_COLLECTOR, resolve_collector_name


@pytest.mark.asyncio
async def test_teacher_full_name_wins(db_session: AsyncSession, seed) -> None:
    assert await resolve_collector_name(db_session, seed.teacher_user.id) == "Ramesh Kumar"
    await db_session.rollback()


@pytest.mark.asyncio
async def test_first_and_last_name(db_session: AsyncSession, seed) -> None:
    assert await resolve_collector_name(db_session, seed.accountant.id) == "Priya Sharma"
    await db_session.rollback()


@pytest.mark.asyncio
async def test_only_first_name(db_session: AsyncSession, seed) -> None:
    user = User(college_id=seed.college.id, email="solo@greenfield.test", first_name="Meera", role="accountant")
    db_session.add(user)
    await db_session.commit()
    assert await resolve_collector_name(db_session, user.id) == "Meera"
    await db_session.rollback()


@pytest.mark.asyncio
async def test_email_when_no_names(db_session: AsyncSession, seed) -> None:
    assert await resolve_collector_name(db_session, seed.student_user.id) == "student@greenfield.test"
    await db_session.rollback()


@pytest.mark.asyncio
async def test_unknown_when_missing(db_session: AsyncSession, seed) -> None:
    assert await resolve_collector_name(db_session, None) == UNKNOWN_COLLECTOR
    assert await resolve_collector_name(db_session, uuid.uuid4()) == UNKNOWN_COLLECTOR
    await db_session.rollback()
