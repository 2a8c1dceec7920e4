import os

# Settings are read at import time; the app engine is never used by the tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./feeledger-unused.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from feeledger.main import app
from feeledger.auth.models import User
from feeledger.auth.security import create_access_token
from feeledger.core.models import College, Student, Teacher
from feeledger.db.session import Base, configure_sqlite_engine, get_db


@pytest.fixture()
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite so concurrent sessions share one database."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'feeledger.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )
    configure_sqlite_engine(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@dataclass
class Seed:
    college: College
    other_college: College
    super_admin: User
    admin: User
    accountant: User
    teacher_user: User
    teacher: Teacher
    student_user: User
    outsider: User


@pytest.fixture()
async def seed(db_session: AsyncSession) -> Seed:
    """One college with staff of every role, plus a second college for isolation checks."""
    college = College(code="SCH-A3K9", name="Greenfield School")
    other_college = College(code="COL-Z9Q1", name="Riverside College")
    db_session.add_all([college, other_college])
    await db_session.flush()

    super_admin = User(college_id=None, email="root@platform.test", role="super_admin")
    admin = User(college_id=college.id, email="admin@greenfield.test", first_name="Ada", last_name="Admin", role="admin")
    accountant = User(
        college_id=college.id,
        email="accounts@greenfield.test",
        first_name="Priya",
        last_name="Sharma",
        role="accountant",
    )
    teacher_user = User(
        college_id=college.id,
        email="teacher@greenfield.test",
        first_name="T",
        last_name="User",
        role="teacher",
    )
    student_user = User(college_id=college.id, email="student@greenfield.test", role="student")
    outsider = User(college_id=other_college.id, email="accounts@riverside.test", role="accountant")
    db_session.add_all([super_admin, admin, accountant, teacher_user, student_user, outsider])
    await db_session.flush()

    teacher = Teacher(college_id=college.id, user_id=teacher_user.id, full_name="Ramesh Kumar")
    db_session.add(teacher)
    await db_session.commit()
    # Detached rows keep their loaded ids after a test rolls db_session back
    db_session.expunge_all()
    return Seed(
        college=college,
        other_college=other_college,
        super_admin=super_admin,
        admin=admin,
        accountant=accountant,
        teacher_user=teacher_user,
        teacher=teacher,
        student_user=student_user,
        outsider=outsider,
    )


@pytest.fixture()
def make_student(db_session: AsyncSession, seed: Seed):
    """Insert a student directly with the given fee terms."""
    counter = {"n": 0}

    async def _make(total_fee="0", admission_fee="0", paid_fee="0", college=None) -> Student:
        counter["n"] += 1
        n = counter["n"]
        total, admission, paid = (Decimal(str(v)) for v in (total_fee, admission_fee, paid_fee))
        student = Student(
            college_id=(college or seed.college).id,
            sr_no=f"T-STU-{n:04d}",
            admission_no=f"T-ADM-{n:04d}",
            full_name=f"Student {n}",
            institute_type="school",
            total_fee=total,
            admission_fee=admission,
            paid_fee=paid,
            pending_fee=total - paid,
            remaining_fee=total + admission - paid,
        )
        db_session.add(student)
        await db_session.commit()
        db_session.expunge(student)
        return student

    return _make


def token_for(user: User) -> str:
    return create_access_token(subject={"user_id": str(user.id), "role": user.role})


@pytest.fixture()
def auth_headers(seed: Seed) -> Dict[str, Dict[str, str]]:
    return {
        name: {"Authorization": f"Bearer {token_for(getattr(seed, name))}"}
        for name in ("super_admin", "admin", "accountant", "teacher_user", "student_user", "outsider")
    }


@pytest.fixture()
async def client(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; every request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
def reload(session_factory: async_sessionmaker):
    """Fresh read in a short-lived session.

    SQLite writers are serialized (BEGIN IMMEDIATE), so a test must never sit on an
    open transaction while the app or other tasks write.
    """

    async def _reload(model, obj_id):
        async with session_factory() as session:
            return await session.get(model, obj_id)

    return _reload
