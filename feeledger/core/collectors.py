"""Display-name attribution for the principal credited with collecting a payment."""

from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.models import User
from feeledger.core.enums import UserRole
from feeledger.core.exceptions import ValidationError
from feeledger.core.models import Teacher

UNKNOWN_COLLECTOR = "Unknown"


async def find_teacher_name(db: AsyncSession, user_id: UUID) -> Optional[str]:
    """Teacher directory lookup by login user id."""
    name = (
        await db.execute(select(Teacher.full_name).where(Teacher.user_id == user_id))
    ).scalar_one_or_none()
    name = (name or "").strip()
    return name or None


async def _display_name(db: AsyncSession, user: User) -> str:
    teacher_name = await find_teacher_name(db, user.id)
    if teacher_name:
        return teacher_name
    full_name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return full_name or user.email or UNKNOWN_COLLECTOR


async def resolve_collector_name(db: AsyncSession, user_id: Optional[UUID]) -> str:
    """Precedence: teacher full name, then "first last", then email, then "Unknown"."""
    if user_id is None:
        return UNKNOWN_COLLECTOR
    user = await db.get(User, user_id)
    if user is None:
        return UNKNOWN_COLLECTOR
    return await _display_name(db, user)


async def resolve_collector(
    db: AsyncSession, college_id: UUID, user_id: Optional[UUID]
) -> Tuple[Optional[UUID], str]:
    """
    Collector id and display name for a payment booked in ``college_id``.

    The collector must be a user of that college; super_admin users have no college
    and may be credited anywhere.
    """
    if user_id is None:
        return None, UNKNOWN_COLLECTOR
    user = await db.get(User, user_id)
    if user is None:
        raise ValidationError("Collector not found")
    if user.role != UserRole.SUPER_ADMIN.value and user.college_id != college_id:
        raise ValidationError("Collector does not belong to the student's college")
    return user.id, await _display_name(db, user)
