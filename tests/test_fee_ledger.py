"""Fee ledger: derived-field consistency, no clamping on overpayment, reversal floor."""

import asyncio
import uuid
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core import fee_ledger
from feeledger.core.exceptions import InvalidAmountError, NotFoundError
from feeledger.core.models import Student


def assert_consistent(state) -> None:
    assert state.pending_fee == state.total_fee - state.paid_fee
    assert state.remaining_fee == state.total_fee + state.admission_fee - state.paid_fee


def test_compute_fee_state() -> None:
    state = fee_ledger.compute_fee_state("12000", "2500.50", "1000")
    assert state.pending_fee == Decimal("9499.50")
    assert state.remaining_fee == Decimal("10499.50")
    assert not state.is_overpaid


def test_compute_fee_state_overpaid_goes_negative() -> None:
    state = fee_ledger.compute_fee_state(1000, 1200)
    assert state.pending_fee == Decimal("-200")
    assert state.is_overpaid


@pytest.mark.parametrize("bad", [-1, "-0.01", "abc", None, float("nan"), float("inf"), True])
def test_validate_amount_rejects(bad) -> None:
    with pytest.raises(InvalidAmountError):
        fee_ledger.validate_amount(bad)


def test_validate_amount_accepts_zero_and_strings() -> None:
    assert fee_ledger.validate_amount(0) == Decimal("0")
    assert fee_ledger.validate_amount("150.25") == Decimal("150.25")


@pytest.mark.asyncio
async def test_apply_payment_updates_all_derived_fields(db_session: AsyncSession, make_student) -> None:
    student = await make_student(total_fee="12000", admission_fee="1000")

    state = await fee_ledger.apply_payment(db_session, student.id, Decimal("1500"))
    await db_session.commit()

    assert state.paid_fee == Decimal("1500")
    assert state.pending_fee == Decimal("10500")
    assert state.remaining_fee == Decimal("11500")
    assert_consistent(state)


@pytest.mark.asyncio
async def test_apply_payment_does_not_clamp_overpayment(db_session: AsyncSession, make_student) -> None:
    student = await make_student(total_fee="1000", paid_fee="900")

    state = await fee_ledger.apply_payment(db_session, student.id, 300)
    await db_session.commit()

    assert state.paid_fee == Decimal("1200")
    assert state.pending_fee == Decimal("-200")
    assert state.is_overpaid
    assert_consistent(state)


@pytest.mark.asyncio
async def test_apply_payment_rejects_negative_before_writing(db_session: AsyncSession, make_student) -> None:
    student = await make_student(total_fee="1000", paid_fee="100")

    with pytest.raises(InvalidAmountError):
        await fee_ledger.apply_payment(db_session, student.id, -50)

    state = await fee_ledger.get_fee_state(db_session, student.id)
    await db_session.rollback()
    assert state.paid_fee == Decimal("100")


@pytest.mark.asyncio
async def test_apply_payment_unknown_student(db_session: AsyncSession, seed) -> None:
    with pytest.raises(NotFoundError):
        await fee_ledger.apply_payment(db_session, uuid.uuid4(), 10)
    await db_session.rollback()


@pytest.mark.asyncio
async def test_apply_payment_respects_college_scope(db_session: AsyncSession, seed, make_student) -> None:
    student = await make_student(total_fee="1000")
    with pytest.raises(NotFoundError):
        await fee_ledger.apply_payment(db_session, student.id, 10, college_id=seed.other_college.id)
    await db_session.rollback()


@pytest.mark.asyncio
async def test_reverse_invoice_floors_paid_fee_at_zero(db_session: AsyncSession, make_student) -> None:
    student = await make_student(total_fee="1000", admission_fee="100", paid_fee="50")

    state = await fee_ledger.reverse_invoice(db_session, student.id, Decimal("200"))
    await db_session.commit()

    assert state.paid_fee == Decimal("0")
    assert state.pending_fee == Decimal("1000")
    assert state.remaining_fee == Decimal("1100")


@pytest.mark.asyncio
async def test_reverse_invoice_partial(db_session: AsyncSession, make_student) -> None:
    student = await make_student(total_fee="1000", paid_fee="600")

    state = await fee_ledger.reverse_invoice(db_session, student.id, "250")
    await db_session.commit()

    assert state.paid_fee == Decimal("350")
    assert_consistent(state)


@pytest.mark.asyncio
async def test_recompute_repairs_derived_fields(db_session: AsyncSession, make_student, reload) -> None:
    student = await make_student(total_fee="1000", admission_fee="200", paid_fee="300")
    row = await db_session.get(Student, student.id)
    row.pending_fee = Decimal("1")
    row.remaining_fee = Decimal("1")
    await db_session.commit()

    state = await fee_ledger.recompute(db_session, student.id)
    await db_session.commit()

    assert state.pending_fee == Decimal("700")
    assert state.remaining_fee == Decimal("900")
    stored = await reload(Student, student.id)
    assert stored.pending_fee == Decimal("700")


@pytest.mark.asyncio
async def test_apply_fee_terms_only_touches_patched_inputs(db_session: AsyncSession, make_student) -> None:
    student = await make_student(total_fee="1000", admission_fee="200", paid_fee="300")

    state = await fee_ledger.apply_fee_terms(
        db_session, student.id, fee_ledger.FeeTermsPatch(total_fee=Decimal("5000"))
    )
    await db_session.commit()

    assert state.total_fee == Decimal("5000")
    assert state.admission_fee == Decimal("200")
    assert state.paid_fee == Decimal("300")
    assert_consistent(state)


def test_fee_terms_patch_is_empty() -> None:
    assert fee_ledger.FeeTermsPatch().is_empty()
    assert not fee_ledger.FeeTermsPatch(paid_fee=Decimal("0")).is_empty()


@pytest.mark.asyncio
async def test_concurrent_payments_do_not_lose_updates(session_factory, make_student, reload) -> None:
    student = await make_student(total_fee="10000")

    async def pay() -> None:
        async with session_factory() as session:
            await fee_ledger.apply_payment(session, student.id, Decimal("100"))
            await session.commit()

    await asyncio.gather(*(pay() for _ in range(20)))

    stored = await reload(Student, student.id)
    assert stored.paid_fee == Decimal("2000")
    assert stored.pending_fee == Decimal("8000")
