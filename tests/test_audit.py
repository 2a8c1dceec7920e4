"""Fee audit sink never fails the operation that emits it."""

import logging
import uuid
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core import audit, fee_ledger
from feeledger.core.models import FeeAuditLog, Student


@pytest.mark.asyncio
async def test_event_values_are_stored_as_json(db_session: AsyncSession, seed) -> None:
    ref = uuid.uuid4()
    await audit.emit_fee_event(
        db_session,
        seed.college.id,
        "invoices",
        ref,
        audit.INVOICE_PAYMENT,
        old_value={"paid_amount": Decimal("10.50")},
        new_value={"paid_amount": Decimal("20.00"), "at": datetime(2024, 3, 1, 9, 30), "by": ref},
        changed_by=seed.accountant.id,
    )
    await db_session.commit()

    row = (
        await db_session.execute(select(FeeAuditLog.reference_id, FeeAuditLog.old_value, FeeAuditLog.new_value))
    ).one()
    await db_session.rollback()
    assert row.reference_id == ref
    assert row.old_value == {"paid_amount": "10.50"}
    assert row.new_value == {"paid_amount": "20.00", "at": "2024-03-01T09:30:00", "by": str(ref)}


@pytest.mark.asyncio
async def test_failed_event_is_logged_and_swallowed(
    db_session: AsyncSession, seed, make_student, caplog, reload
) -> None:
    student = await make_student(total_fee="1000")
    await fee_ledger.apply_payment(db_session, student.id, Decimal("100"))

    with caplog.at_level(logging.WARNING, logger="feeledger.core.audit"):
        # action_type is NOT NULL; the insert fails inside the savepoint
        await audit.emit_fee_event(db_session, seed.college.id, "students", student.id, None)

    await db_session.commit()

    assert "was not recorded" in caplog.text
    assert (await reload(Student, student.id)).paid_fee == Decimal("100")
    count = (await db_session.execute(select(func.count()).select_from(FeeAuditLog))).scalar_one()
    await db_session.rollback()
    assert count == 0
