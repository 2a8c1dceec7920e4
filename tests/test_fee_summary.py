"""Student fee summary: payment timing per invoice, overdue totals and counts."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.api.v1.accountant import summary
from feeledger.api.v1.fees import service as fees_service
from feeledger.api.v1.fees.schemas import InvoiceCreate
from feeledger.core.enums import OverallFeeStatus, PaymentMethod, PaymentTiming
from feeledger.core.exceptions import NotFoundError
from feeledger.core.schemas import InvoiceItemIn

TODAY = date(2024, 3, 15)


async def bill(db, seed, student, amount, due, paid="0", paid_on=None) -> None:
    await fees_service.create_invoice(
        db,
        seed.college.id,
        InvoiceCreate(
            student_id=student.id,
            items=[InvoiceItemIn(description="Tuition", amount=Decimal(amount))],
            due_date=due,
            paid_amount=Decimal(paid),
            payment_method=PaymentMethod.cash if paid_on else None,
            payment_date=paid_on,
        ),
        seed.accountant.id,
    )


@pytest.mark.asyncio
async def test_summary_classifies_invoices_and_totals(db_session: AsyncSession, seed, make_student) -> None:
    student = await make_student(total_fee="12000")
    await bill(db_session, seed, student, "1000", date(2024, 3, 10), "1000", datetime(2024, 3, 5, 11, 0))
    await bill(db_session, seed, student, "500", date(2024, 3, 1), "500", datetime(2024, 3, 12, 10, 0))
    await bill(db_session, seed, student, "800", date(2024, 3, 1), "300", datetime(2024, 3, 8, 9, 0))
    await bill(db_session, seed, student, "400", date(2024, 4, 1))

    report = await summary.get_fee_summary(db_session, seed.college.id, student.id, today=TODAY)
    await db_session.rollback()

    by_no = {d.invoice.invoice_no: d for d in report.invoices}
    assert by_no["INV-0001"].payment_status == PaymentTiming.paid_on_time
    assert by_no["INV-0001"].is_paid_on_time is True
    assert by_no["INV-0002"].payment_status == PaymentTiming.paid_late
    assert by_no["INV-0002"].is_overdue is False
    assert by_no["INV-0003"].payment_status == PaymentTiming.partial
    assert by_no["INV-0003"].is_overdue is True
    assert [t.amount for t in by_no["INV-0003"].transactions] == [Decimal("300")]
    assert by_no["INV-0004"].payment_status == PaymentTiming.pending
    assert by_no["INV-0004"].transactions == []

    counts = report.payment_status
    assert (counts.paid_on_time, counts.overdue, counts.pending, counts.total_invoices) == (1, 2, 2, 4)

    totals = report.summary
    # Student fee aggregate wins over invoice sums once it is set
    assert totals.total_fee_amount == Decimal("12000")
    assert totals.total_paid_amount == Decimal("1800")
    assert totals.total_pending_amount == Decimal("10200")
    assert totals.total_overdue_amount == Decimal("500")
    assert totals.payment_percentage == Decimal("66.67")
    assert totals.overall_status == OverallFeeStatus.overdue

    assert report.payment_count == 3
    assert report.last_payment_date == datetime(2024, 3, 12, 10, 0)


@pytest.mark.asyncio
async def test_overdue_is_derived_against_today(db_session: AsyncSession, seed, make_student) -> None:
    student = await make_student(total_fee="12000")
    await bill(db_session, seed, student, "400", date(2024, 4, 1))

    before = await summary.get_fee_summary(db_session, seed.college.id, student.id, today=TODAY)
    after = await summary.get_fee_summary(db_session, seed.college.id, student.id, today=date(2024, 4, 2))
    await db_session.rollback()

    assert before.summary.overall_status == OverallFeeStatus.pending
    assert before.summary.total_overdue_amount == Decimal("0")
    assert after.invoices[0].payment_status == PaymentTiming.overdue
    assert after.summary.overall_status == OverallFeeStatus.overdue
    assert after.summary.total_overdue_amount == Decimal("400")


@pytest.mark.asyncio
async def test_student_without_invoices_is_complete(db_session: AsyncSession, seed, make_student) -> None:
    student = await make_student()
    report = await summary.get_fee_summary(db_session, seed.college.id, student.id, today=TODAY)
    await db_session.rollback()

    assert report.invoices == []
    assert report.summary.overall_status == OverallFeeStatus.complete
    assert report.summary.payment_percentage == Decimal("0")
    assert report.last_payment_date is None
    assert report.payment_count == 0


@pytest.mark.asyncio
async def test_summary_is_scoped_to_college(db_session: AsyncSession, seed, make_student) -> None:
    student = await make_student(total_fee="1000")
    with pytest.raises(NotFoundError):
        await summary.get_fee_summary(db_session, seed.other_college.id, student.id)
    await db_session.rollback()
