"""Accountant service: monthly payment recording, fee linking and fee corrections."""

import logging
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.api.v1.fees.service import lock_invoice, new_invoice, new_transaction
from feeledger.api.v1.students.service import load_student, student_to_response
from feeledger.core import audit, fee_ledger
from feeledger.core.collectors import resolve_collector, resolve_collector_name
from feeledger.core.enums import InvoiceStatus, PaymentMethod
from feeledger.core.exceptions import ConflictError, ServiceError, ValidationError
from feeledger.core.invoice_math import apply_invoice_fields, month_label, monthly_fee_description
from feeledger.core.models import Invoice, InvoiceItem, MonthlyPayment
from feeledger.core.models.monthly_payment import PERIOD_INDEX
from feeledger.core.recording import RecordingProgress
from feeledger.core.schemas import (
    InvoiceResponse,
    MonthlyPaymentResponse,
    PaymentTransactionResponse,
    StudentResponse,
)
from feeledger.core.serials import allocate_serial
from feeledger.core.tenancy import college_scope

from .schemas import (
    FeeCorrectionRequest,
    LinkFeesRequest,
    LinkFeesResponse,
    MonthlyPaymentCreate,
    MonthlyPaymentRecorded,
)

logger = logging.getLogger(__name__)

DUPLICATE_PERIOD_MESSAGE = "Payment for this month already recorded"

# SQLite names the indexed columns instead of the index
_SQLITE_PERIOD_COLUMNS = "monthly_payments.student_id, monthly_payments.month, monthly_payments.year"


def _validate_period(month, year) -> tuple:
    try:
        month, year = int(month), int(year)
    except (TypeError, ValueError):
        raise ValidationError("Month and year must be integers")
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    if year < 1:
        raise ValidationError("Year must be positive")
    return month, year


def _validate_method(method) -> str:
    try:
        return PaymentMethod(method).value
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"payment_method must be one of: {allowed}")


async def _period_already_paid(db: AsyncSession, student_id: UUID, month: int, year: int) -> bool:
    result = await db.execute(
        select(MonthlyPayment.id).where(
            MonthlyPayment.student_id == student_id,
            MonthlyPayment.month == month,
            MonthlyPayment.year == year,
            MonthlyPayment.is_monthly_fee.is_(True),
        )
    )
    return result.first() is not None


def _is_period_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return PERIOD_INDEX in message or _SQLITE_PERIOD_COLUMNS in message


async def _open_invoice(
    db: AsyncSession,
    college_id: Optional[UUID],
    student,
    invoice_id: Optional[UUID],
) -> Optional[Invoice]:
    """Supplied invoice, else the student's latest unpaid one; row-locked either way."""
    if invoice_id is not None:
        invoice = await lock_invoice(db, college_id, invoice_id)
        if invoice.student_id != student.id:
            raise ValidationError("Invoice does not belong to this student")
        return invoice
    stmt = (
        select(Invoice)
        .where(
            Invoice.student_id == student.id,
            Invoice.status != InvoiceStatus.paid.value,
        )
        .order_by(Invoice.invoice_date.desc())
        .limit(1)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def record_monthly_payment(
    db: AsyncSession,
    college_id: Optional[UUID],
    payload: MonthlyPaymentCreate,
    collector_id: Optional[UUID],
) -> MonthlyPaymentRecorded:
    """
    Record one month's fee for a student in a single database transaction:

    1. reject a second monthly payment for the same (student, month, year);
    2. add the amount to the supplied or latest open invoice, or start a new invoice,
       appending a "Monthly Fee - <Month YYYY>" line item when the month is not billed yet;
    3. stage the PaymentTransaction, then the MonthlyPayment linked to it;
    4. add the amount to the student's paid fee through the fee ledger.

    Nothing is committed unless every step succeeds.
    """
    month, year = _validate_period(payload.month, payload.year)
    amount = fee_ledger.validate_amount(payload.amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    method = _validate_method(payload.payment_method)

    progress = RecordingProgress("Monthly payment recording")
    try:
        student = await load_student(db, college_id, payload.student_id)
        student_id = student.id
        if await _period_already_paid(db, student_id, month, year):
            raise ConflictError(DUPLICATE_PERIOD_MESSAGE)

        collected_by, collected_by_name = await resolve_collector(
            db, student.college_id, payload.collected_by or collector_id
        )
        payment_date = payload.payment_date or datetime.utcnow()
        description = monthly_fee_description(month, year)

        invoice = await _open_invoice(db, college_id, student, payload.invoice_id)
        if invoice is None:
            invoice = await new_invoice(
                db,
                student,
                [{"description": description, "amount": amount, "quantity": 1}],
                paid_amount=amount,
                collected_by=collected_by,
                collected_by_name=collected_by_name,
                payment_method=method,
                payment_date=payment_date,
            )
        else:
            invoice.paid_amount = Decimal(invoice.paid_amount or 0) + amount
            invoice.payment_method = method
            invoice.payment_date = payment_date
            invoice.collected_by = collected_by
            invoice.collected_by_name = collected_by_name
            label = month_label(month, year)
            if not any(label in (item.description or "") for item in invoice.items):
                invoice.items.append(
                    InvoiceItem(
                        position=len(invoice.items),
                        description=description,
                        amount=amount,
                        quantity=1,
                    )
                )
            apply_invoice_fields(invoice)
            await db.flush()
        progress.mark("invoice", invoice.id)

        txn = await new_transaction(
            db,
            college_id=student.college_id,
            student_id=student.id,
            invoice_id=invoice.id,
            amount=amount,
            payment_method=method,
            payment_date=payment_date,
            collected_by=collected_by,
            collected_by_name=collected_by_name,
            notes=payload.notes,
            receipt_no=payload.receipt_no,
        )
        progress.mark("transaction", txn.id)

        payment = MonthlyPayment(
            college_id=student.college_id,
            payment_no=await allocate_serial(db, "MPAY"),
            student_id=student.id,
            invoice_id=invoice.id,
            transaction_id=txn.id,
            month=month,
            year=year,
            amount=amount,
            payment_method=method,
            payment_date=payment_date,
            collected_by=collected_by,
            collected_by_name=collected_by_name,
            notes=payload.notes,
            receipt_no=payload.receipt_no,
            is_monthly_fee=True,
        )
        db.add(payment)
        try:
            await db.flush()
        except IntegrityError as exc:
            if not _is_period_conflict(exc):
                raise
            # A concurrent recording for the same period won the unique index;
            # rows loaded before the failed flush are expired, so log locals only
            await db.rollback()
            logger.warning(
                "Duplicate monthly payment for student %s %s/%s rejected by storage",
                student_id,
                month,
                year,
            )
            raise ConflictError(DUPLICATE_PERIOD_MESSAGE)
        progress.mark("monthly_payment", payment.id)

        await fee_ledger.apply_payment(db, student.id, amount)
        progress.mark("ledger")

        await audit.emit_fee_event(
            db,
            student.college_id,
            "monthly_payments",
            payment.id,
            audit.PAYMENT_RECORDED,
            new_value={
                "month": month,
                "year": year,
                "amount": amount,
                "invoice_no": invoice.invoice_no,
                "transaction_no": txn.transaction_no,
            },
            changed_by=collector_id,
        )
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        if progress.has("transaction"):
            raise progress.failure(exc)
        raise

    logger.info(
        "Recorded monthly payment %s for student %s (%s/%s, %s)",
        payment.payment_no,
        student_id,
        month,
        year,
        amount,
    )
    student = await load_student(db, college_id, student_id, refresh=True)
    return MonthlyPaymentRecorded(
        payment=MonthlyPaymentResponse.model_validate(payment),
        invoice=InvoiceResponse.model_validate(invoice),
        transaction=PaymentTransactionResponse.model_validate(txn),
        student=student_to_response(student),
    )


async def list_monthly_payments(
    db: AsyncSession,
    college_id: Optional[UUID],
    student_id: Optional[UUID] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> List[MonthlyPaymentResponse]:
    stmt = select(MonthlyPayment).where(*college_scope(MonthlyPayment, college_id))
    if student_id:
        stmt = stmt.where(MonthlyPayment.student_id == student_id)
    if month:
        stmt = stmt.where(MonthlyPayment.month == month)
    if year:
        stmt = stmt.where(MonthlyPayment.year == year)
    if start_date:
        stmt = stmt.where(MonthlyPayment.payment_date >= start_date)
    if end_date:
        stmt = stmt.where(MonthlyPayment.payment_date <= end_date)
    stmt = stmt.order_by(
        MonthlyPayment.payment_date.desc(),
        MonthlyPayment.year.desc(),
        MonthlyPayment.month.desc(),
    )
    result = await db.execute(stmt)
    return [MonthlyPaymentResponse.model_validate(p) for p in result.scalars().all()]


async def link_fees(
    db: AsyncSession,
    college_id: Optional[UUID],
    student_id: UUID,
    payload: LinkFeesRequest,
    collector_id: Optional[UUID],
) -> LinkFeesResponse:
    """
    Set a student's fee terms and, when the student has no invoice yet, create the
    initial one. Its paid amount mirrors what the student has already paid.
    """
    try:
        student = await load_student(db, college_id, student_id)
        before = await fee_ledger.get_fee_state(db, student.id)
        patch = fee_ledger.FeeTermsPatch(
            total_fee=payload.total_amount if payload.total_amount else None,
            admission_fee=payload.admission_fee,
            fee_structure_id=payload.fee_structure_id,
        )
        after = before
        if not patch.is_empty():
            after = await fee_ledger.apply_fee_terms(db, student.id, patch)

        invoice = None
        if payload.total_amount:
            has_invoice = (
                await db.execute(select(Invoice.id).where(Invoice.student_id == student.id).limit(1))
            ).first()
            if not has_invoice:
                items = []
                if payload.admission_fee:
                    items.append({"description": "Admission Fee", "amount": payload.admission_fee})
                if payload.monthly_fee:
                    items.append({"description": "Monthly Fee", "amount": payload.monthly_fee})
                if not items:
                    items.append({"description": "Course Fee", "amount": payload.total_amount})
                invoice = await new_invoice(
                    db,
                    student,
                    items,
                    paid_amount=after.paid_fee,
                    fee_structure_id=payload.fee_structure_id,
                    collected_by=collector_id,
                    collected_by_name=await resolve_collector_name(db, collector_id),
                )

        await audit.emit_fee_event(
            db,
            student.college_id,
            "students",
            student.id,
            audit.FEE_TERMS_LINKED,
            old_value=asdict(before),
            new_value={
                **asdict(after),
                "fee_structure_id": payload.fee_structure_id,
                "invoice_no": invoice.invoice_no if invoice else None,
            },
            changed_by=collector_id,
        )
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise

    student = await load_student(db, college_id, student_id, refresh=True)
    return LinkFeesResponse(
        student=student_to_response(student),
        invoice=InvoiceResponse.model_validate(invoice) if invoice else None,
    )


async def correct_fee_info(
    db: AsyncSession,
    college_id: Optional[UUID],
    student_id: UUID,
    payload: FeeCorrectionRequest,
    changed_by: Optional[UUID],
) -> StudentResponse:
    """Overwrite a student's fee inputs; the old and new aggregate are audited."""
    patch = fee_ledger.FeeTermsPatch(
        total_fee=payload.total_fee,
        admission_fee=payload.admission_fee,
        paid_fee=payload.paid_fee,
        fee_structure_id=payload.fee_structure_id,
    )
    if patch.is_empty():
        raise ValidationError("No fee corrections supplied")
    try:
        student = await load_student(db, college_id, student_id)
        before = await fee_ledger.get_fee_state(db, student.id)
        after = await fee_ledger.apply_fee_terms(db, student.id, patch)
        await audit.emit_fee_event(
            db,
            student.college_id,
            "students",
            student.id,
            audit.FEE_CORRECTED,
            old_value=asdict(before),
            new_value={**asdict(after), "reason": payload.reason},
            changed_by=changed_by,
        )
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    logger.info("Corrected fee info for student %s: %s -> %s", student_id, before, after)
    return student_to_response(await load_student(db, college_id, student_id, refresh=True))
