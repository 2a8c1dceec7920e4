"""Student admission. sr_no and admission_no come from the serial allocator."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.collectors import resolve_collector_name
from feeledger.core.exceptions import NotFoundError
from feeledger.core.models import Student
from feeledger.core.schemas import StudentResponse
from feeledger.core.serials import allocate_serial
from feeledger.core.tenancy import college_scope, require_college_id

from .schemas import StudentAdmissionCreate

logger = logging.getLogger(__name__)


async def load_student(
    db: AsyncSession,
    college_id: Optional[UUID],
    student_id: UUID,
    refresh: bool = False,
) -> Student:
    """Student within the caller's college, or NotFoundError.

    ``refresh`` re-reads the row even if the session already holds it (the fee
    ledger writes bypass the identity map).
    """
    stmt = select(Student).where(Student.id == student_id, *college_scope(Student, college_id))
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    student = (await db.execute(stmt)).scalar_one_or_none()
    if not student:
        raise NotFoundError("Student not found")
    return student


def student_to_response(student: Student) -> StudentResponse:
    return StudentResponse.model_validate(student)


async def admit_student(
    db: AsyncSession,
    college_id: Optional[UUID],
    payload: StudentAdmissionCreate,
    admitted_by: Optional[UUID],
) -> StudentResponse:
    target_college = require_college_id(college_id, payload.college_id)
    admitted_by_name = await resolve_collector_name(db, admitted_by)
    student = Student(
        college_id=target_college,
        user_id=payload.user_id,
        sr_no=await allocate_serial(db, "STU"),
        admission_no=await allocate_serial(db, "ADM"),
        full_name=payload.full_name.strip(),
        institute_type=payload.institute_type.value,
        session=(payload.session or "").strip() or None,
        admitted_by=admitted_by,
        admitted_by_name=admitted_by_name,
    )
    if payload.admission_date is not None:
        student.admission_date = payload.admission_date
    db.add(student)
    await db.commit()
    await db.refresh(student)
    logger.info("Admitted student %s (%s) into college %s", student.sr_no, student.admission_no, target_college)

    if payload.total_fee is not None:
        # Imported here: accountant.service depends on this module
        from feeledger.api.v1.accountant import service as accountant_service
        from feeledger.api.v1.accountant.schemas import LinkFeesRequest

        await accountant_service.link_fees(
            db,
            target_college,
            student.id,
            LinkFeesRequest(
                total_amount=payload.total_fee,
                admission_fee=payload.admission_fee,
                monthly_fee=payload.monthly_fee,
                fee_structure_id=payload.fee_structure_id,
            ),
            collector_id=admitted_by,
        )
        student = await load_student(db, target_college, student.id, refresh=True)
    return student_to_response(student)


async def get_student(db: AsyncSession, college_id: Optional[UUID], student_id: UUID) -> StudentResponse:
    return student_to_response(await load_student(db, college_id, student_id))
