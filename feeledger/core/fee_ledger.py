"""
Fee ledger: single writer of the cached fee aggregate on Student.

  pending_fee   = total_fee - paid_fee
  remaining_fee = total_fee + admission_fee - paid_fee

Every mutation is ONE ``UPDATE students ... RETURNING`` whose new values are computed
from the row's current values inside the statement (``paid_fee = paid_fee + :amount``).
Two payments recorded concurrently for the same student therefore cannot lose an
update, and no reader ever sees paid_fee changed without pending/remaining.
Do not replace these with read-into-Python / add / write-back sequences.

Callers own the transaction; nothing here commits. The UPDATEs bypass the identity
map, so callers holding a Student instance must refresh it after commit.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.exceptions import InvalidAmountError, NotFoundError
from feeledger.core.models import Student

ZERO = Decimal("0")

_AGGREGATE_COLUMNS = (
    Student.total_fee,
    Student.admission_fee,
    Student.paid_fee,
    Student.pending_fee,
    Student.remaining_fee,
)


@dataclass(frozen=True)
class FeeState:
    total_fee: Decimal
    admission_fee: Decimal
    paid_fee: Decimal
    pending_fee: Decimal
    remaining_fee: Decimal

    @property
    def is_overpaid(self) -> bool:
        return self.pending_fee < 0


@dataclass
class FeeTermsPatch:
    """Fee fields a correction may overwrite. Every other Student field is immutable here.

    None means "leave as is"; pending/remaining are never patchable, they are derived.
    """

    total_fee: Optional[Decimal] = None
    admission_fee: Optional[Decimal] = None
    paid_fee: Optional[Decimal] = None
    fee_structure_id: Optional[UUID] = None

    def is_empty(self) -> bool:
        return (
            self.total_fee is None
            and self.admission_fee is None
            and self.paid_fee is None
            and self.fee_structure_id is None
        )


def _to_decimal(val) -> Decimal:
    if val is None:
        return ZERO
    return val if isinstance(val, Decimal) else Decimal(str(val))


def compute_fee_state(total_fee: Any, paid_fee: Any, admission_fee: Any = ZERO) -> FeeState:
    """Derive the aggregate from its stored inputs. Overpayment yields a negative pending_fee."""
    total = _to_decimal(total_fee)
    paid = _to_decimal(paid_fee)
    admission = _to_decimal(admission_fee)
    return FeeState(
        total_fee=total,
        admission_fee=admission,
        paid_fee=paid,
        pending_fee=total - paid,
        remaining_fee=total + admission - paid,
    )


def validate_amount(amount: Any, field: str = "Amount") -> Decimal:
    """Coerce to Decimal; negative, NaN, infinite and non-numeric values are rejected."""
    if isinstance(amount, bool):
        raise InvalidAmountError(f"{field} must be a number")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"{field} must be a number")
    if value.is_nan() or value.is_infinite():
        raise InvalidAmountError(f"{field} must be a finite number")
    if value < 0:
        raise InvalidAmountError(f"{field} cannot be negative")
    return value


def _state_from_row(row) -> FeeState:
    total, admission, paid, pending, remaining = row
    return FeeState(
        total_fee=_to_decimal(total),
        admission_fee=_to_decimal(admission),
        paid_fee=_to_decimal(paid),
        pending_fee=_to_decimal(pending),
        remaining_fee=_to_decimal(remaining),
    )


def _where_student(student_id: UUID, college_id: Optional[UUID]):
    clauses = [Student.id == student_id]
    if college_id is not None:
        clauses.append(Student.college_id == college_id)
    return clauses


async def _write_aggregate(
    db: AsyncSession,
    student_id: UUID,
    college_id: Optional[UUID],
    values: dict,
) -> FeeState:
    values["updated_at"] = datetime.utcnow()
    stmt = (
        update(Student)
        .where(*_where_student(student_id, college_id))
        .values(**values)
        .returning(*_AGGREGATE_COLUMNS)
        .execution_options(synchronize_session=False)
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        raise NotFoundError("Student not found")
    return _state_from_row(row)


async def get_fee_state(
    db: AsyncSession, student_id: UUID, college_id: Optional[UUID] = None
) -> FeeState:
    row = (
        await db.execute(select(*_AGGREGATE_COLUMNS).where(*_where_student(student_id, college_id)))
    ).one_or_none()
    if row is None:
        raise NotFoundError("Student not found")
    return _state_from_row(row)


async def apply_payment(
    db: AsyncSession,
    student_id: UUID,
    amount: Any,
    college_id: Optional[UUID] = None,
) -> FeeState:
    """Add ``amount`` to paid_fee and recompute derived fields atomically. No clamping."""
    value = validate_amount(amount)
    new_paid = Student.paid_fee + value
    return await _write_aggregate(
        db,
        student_id,
        college_id,
        {
            "paid_fee": new_paid,
            "pending_fee": Student.total_fee - new_paid,
            "remaining_fee": Student.total_fee + Student.admission_fee - new_paid,
        },
    )


async def reverse_invoice(
    db: AsyncSession,
    student_id: UUID,
    paid_amount: Any,
    college_id: Optional[UUID] = None,
) -> FeeState:
    """Subtract a deleted invoice's paid amount; paid_fee is floored at zero."""
    value = validate_amount(paid_amount, field="Paid amount")
    new_paid = case(
        (Student.paid_fee - value < 0, ZERO),
        else_=Student.paid_fee - value,
    )
    return await _write_aggregate(
        db,
        student_id,
        college_id,
        {
            "paid_fee": new_paid,
            "pending_fee": Student.total_fee - new_paid,
            "remaining_fee": Student.total_fee + Student.admission_fee - new_paid,
        },
    )


async def recompute(
    db: AsyncSession, student_id: UUID, college_id: Optional[UUID] = None
) -> FeeState:
    """Rewrite pending/remaining from the stored total, admission and paid fee."""
    return await _write_aggregate(
        db,
        student_id,
        college_id,
        {
            "pending_fee": Student.total_fee - Student.paid_fee,
            "remaining_fee": Student.total_fee + Student.admission_fee - Student.paid_fee,
        },
    )


async def apply_fee_terms(
    db: AsyncSession,
    student_id: UUID,
    patch: FeeTermsPatch,
    college_id: Optional[UUID] = None,
) -> FeeState:
    """Overwrite the patched inputs and recompute derived fields in the same statement."""
    total = validate_amount(patch.total_fee, "Total fee") if patch.total_fee is not None else Student.total_fee
    admission = (
        validate_amount(patch.admission_fee, "Admission fee")
        if patch.admission_fee is not None
        else Student.admission_fee
    )
    paid = validate_amount(patch.paid_fee, "Paid fee") if patch.paid_fee is not None else Student.paid_fee
    values = {
        "total_fee": total,
        "admission_fee": admission,
        "paid_fee": paid,
        "pending_fee": total - paid,
        "remaining_fee": total + admission - paid,
    }
    if patch.fee_structure_id is not None:
        values["fee_structure_id"] = patch.fee_structure_id
    return await _write_aggregate(db, student_id, college_id, values)
