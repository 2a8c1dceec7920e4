"""Fees service: fee structures and the invoice lifecycle (create, pay, reverse)."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.api.v1.students.service import load_student, student_to_response
from feeledger.core import audit, fee_ledger
from feeledger.core.collectors import resolve_collector
from feeledger.core.enums import InvoiceStatus
from feeledger.core.exceptions import NotFoundError, ServiceError, ValidationError
from feeledger.core.invoice_math import apply_invoice_fields, compute_invoice_fields, item_field
from feeledger.core.models import FeeStructure, Invoice, InvoiceItem, PaymentTransaction
from feeledger.core.recording import RecordingProgress
from feeledger.core.schemas import InvoiceResponse, PaymentTransactionResponse
from feeledger.core.serials import allocate_serial
from feeledger.core.tenancy import college_scope, require_college_id

from .schemas import (
    FeeStructureCreate,
    FeeStructureResponse,
    InvoiceCreate,
    InvoicePaymentCreate,
    InvoicePaymentResponse,
    InvoiceReversalResponse,
)

logger = logging.getLogger(__name__)


# ----- Building blocks shared with the accountant service -----
async def new_invoice(
    db: AsyncSession,
    student,
    items: Iterable[Any],
    *,
    discount: Decimal = Decimal("0"),
    paid_amount: Decimal = Decimal("0"),
    due_date: Optional[date] = None,
    fee_structure_id: Optional[UUID] = None,
    collected_by: Optional[UUID] = None,
    collected_by_name: Optional[str] = None,
    notes: Optional[str] = None,
    payment_method: Optional[str] = None,
    payment_date: Optional[datetime] = None,
) -> Invoice:
    """Stage an invoice (INV serial) with its items and derived fields. Caller commits."""
    invoice = Invoice(
        college_id=student.college_id,
        invoice_no=await allocate_serial(db, "INV"),
        student_id=student.id,
        fee_structure_id=fee_structure_id,
        due_date=due_date,
        discount=discount,
        paid_amount=paid_amount,
        payment_method=payment_method,
        payment_date=payment_date,
        collected_by=collected_by,
        collected_by_name=collected_by_name,
        notes=notes,
        items=[
            InvoiceItem(
                position=pos,
                description=item_field(item, "description"),
                amount=item_field(item, "amount"),
                quantity=item_field(item, "quantity", 1) or 1,
            )
            for pos, item in enumerate(items)
        ],
    )
    apply_invoice_fields(invoice)
    db.add(invoice)
    await db.flush()
    return invoice


async def new_transaction(
    db: AsyncSession,
    *,
    college_id: UUID,
    student_id: UUID,
    invoice_id: Optional[UUID],
    amount: Decimal,
    payment_method: str,
    payment_date: Optional[datetime] = None,
    collected_by: Optional[UUID] = None,
    collected_by_name: Optional[str] = None,
    notes: Optional[str] = None,
    receipt_no: Optional[str] = None,
) -> PaymentTransaction:
    """Stage one append-only PaymentTransaction (TXN serial). Caller commits."""
    txn = PaymentTransaction(
        college_id=college_id,
        transaction_no=await allocate_serial(db, "TXN"),
        student_id=student_id,
        invoice_id=invoice_id,
        amount=amount,
        payment_method=payment_method,
        payment_date=payment_date or datetime.utcnow(),
        collected_by=collected_by,
        collected_by_name=collected_by_name,
        notes=notes,
        receipt_no=receipt_no,
    )
    db.add(txn)
    await db.flush()
    return txn


async def lock_invoice(db: AsyncSession, college_id: Optional[UUID], invoice_id: UUID) -> Invoice:
    """Invoice row under FOR UPDATE, re-read even if the session already holds it."""
    stmt = (
        select(Invoice)
        .where(Invoice.id == invoice_id, *college_scope(Invoice, college_id))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    invoice = (await db.execute(stmt)).scalar_one_or_none()
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


# ----- Fee Structure -----
async def create_fee_structure(
    db: AsyncSession,
    college_id: Optional[UUID],
    payload: FeeStructureCreate,
) -> FeeStructureResponse:
    target_college = require_college_id(college_id, payload.college_id)
    components = [
        {"name": c.name.strip(), "amount": str(c.amount), "frequency": c.frequency.value}
        for c in payload.components
    ]
    total = sum((c.amount for c in payload.components), Decimal("0"))
    fs = FeeStructure(
        college_id=target_college,
        sr_no=await allocate_serial(db, "FEE"),
        name=payload.name.strip(),
        institute_type=payload.institute_type.value,
        course_name=(payload.course_name or "").strip() or None,
        components=components,
        total_amount=total,
    )
    db.add(fs)
    await db.commit()
    await db.refresh(fs)
    return FeeStructureResponse.model_validate(fs)


async def list_fee_structures(
    db: AsyncSession,
    college_id: Optional[UUID],
    active_only: bool = True,
) -> List[FeeStructureResponse]:
    stmt = select(FeeStructure).where(*college_scope(FeeStructure, college_id))
    if active_only:
        stmt = stmt.where(FeeStructure.is_active.is_(True))
    stmt = stmt.order_by(FeeStructure.created_at.desc())
    result = await db.execute(stmt)
    return [FeeStructureResponse.model_validate(fs) for fs in result.scalars().all()]


# ----- Invoice -----
async def create_invoice(
    db: AsyncSession,
    college_id: Optional[UUID],
    payload: InvoiceCreate,
    collector_id: Optional[UUID],
) -> InvoiceResponse:
    """
    Create an invoice for a student. If the student has no total fee yet it is set to
    the invoice total. An initial paid_amount is recorded as a PaymentTransaction and
    applied to the student's fee aggregate.
    """
    preview = compute_invoice_fields(payload.items, discount=payload.discount)
    if payload.discount > preview.subtotal:
        raise ValidationError("Discount cannot exceed the invoice subtotal")
    if payload.paid_amount > 0 and payload.payment_method is None:
        raise ValidationError("payment_method is required when paid_amount is given")

    progress = RecordingProgress("Invoice creation")
    try:
        student = await load_student(db, college_id, payload.student_id, refresh=True)
        collected_by, collected_by_name = await resolve_collector(
            db, student.college_id, payload.collected_by or collector_id
        )
        paid = payload.paid_amount
        invoice = await new_invoice(
            db,
            student,
            payload.items,
            discount=payload.discount,
            paid_amount=paid,
            due_date=payload.due_date,
            fee_structure_id=payload.fee_structure_id,
            collected_by=collected_by,
            collected_by_name=collected_by_name,
            notes=payload.notes,
            payment_method=payload.payment_method.value if payload.payment_method else None,
            payment_date=(payload.payment_date or datetime.utcnow()) if paid > 0 else None,
        )
        progress.mark("invoice", invoice.id)

        if student.total_fee is None or Decimal(student.total_fee) == 0:
            await fee_ledger.apply_fee_terms(
                db,
                student.id,
                fee_ledger.FeeTermsPatch(
                    total_fee=invoice.total_amount,
                    fee_structure_id=payload.fee_structure_id,
                ),
            )
            progress.mark("fee_terms")

        if paid > 0:
            txn = await new_transaction(
                db,
                college_id=student.college_id,
                student_id=student.id,
                invoice_id=invoice.id,
                amount=paid,
                payment_method=payload.payment_method.value,
                payment_date=invoice.payment_date,
                collected_by=collected_by,
                collected_by_name=collected_by_name,
                notes=payload.notes,
            )
            progress.mark("transaction", txn.id)
            await fee_ledger.apply_payment(db, student.id, paid)
            progress.mark("ledger")

        await audit.emit_fee_event(
            db,
            student.college_id,
            "invoices",
            invoice.id,
            audit.INVOICE_CREATED,
            new_value={
                "invoice_no": invoice.invoice_no,
                "total_amount": invoice.total_amount,
                "paid_amount": invoice.paid_amount,
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
    logger.info("Created invoice %s for student %s", invoice.invoice_no, student.id)
    return InvoiceResponse.model_validate(invoice)


async def list_invoices(
    db: AsyncSession,
    college_id: Optional[UUID],
    student_id: Optional[UUID] = None,
    status: Optional[InvoiceStatus] = None,
) -> List[InvoiceResponse]:
    stmt = select(Invoice).where(*college_scope(Invoice, college_id))
    if student_id:
        stmt = stmt.where(Invoice.student_id == student_id)
    if status:
        stmt = stmt.where(Invoice.status == status.value)
    stmt = stmt.order_by(Invoice.invoice_date.desc())
    result = await db.execute(stmt)
    return [InvoiceResponse.model_validate(inv) for inv in result.scalars().all()]


async def get_invoice(db: AsyncSession, college_id: Optional[UUID], invoice_id: UUID) -> InvoiceResponse:
    result = await db.execute(
        select(Invoice).where(Invoice.id == invoice_id, *college_scope(Invoice, college_id))
    )
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise NotFoundError("Invoice not found")
    return InvoiceResponse.model_validate(invoice)


async def record_invoice_payment(
    db: AsyncSession,
    college_id: Optional[UUID],
    invoice_id: UUID,
    payload: InvoicePaymentCreate,
    collector_id: Optional[UUID],
) -> InvoicePaymentResponse:
    """Ad-hoc payment against one invoice. Paying past the pending amount is allowed."""
    amount = fee_ledger.validate_amount(payload.amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")

    progress = RecordingProgress("Invoice payment")
    try:
        invoice = await lock_invoice(db, college_id, invoice_id)
        collected_by, collected_by_name = await resolve_collector(
            db, invoice.college_id, payload.collected_by or collector_id
        )
        payment_date = payload.payment_date or datetime.utcnow()
        old_paid = invoice.paid_amount

        invoice.paid_amount = Decimal(invoice.paid_amount or 0) + amount
        invoice.payment_method = payload.payment_method.value
        invoice.payment_date = payment_date
        invoice.collected_by = collected_by
        invoice.collected_by_name = collected_by_name
        apply_invoice_fields(invoice)
        await db.flush()
        progress.mark("invoice", invoice.id)

        txn = await new_transaction(
            db,
            college_id=invoice.college_id,
            student_id=invoice.student_id,
            invoice_id=invoice.id,
            amount=amount,
            payment_method=payload.payment_method.value,
            payment_date=payment_date,
            collected_by=collected_by,
            collected_by_name=collected_by_name,
            notes=payload.notes,
            receipt_no=payload.receipt_no,
        )
        progress.mark("transaction", txn.id)
        await fee_ledger.apply_payment(db, invoice.student_id, amount)
        progress.mark("ledger")

        await audit.emit_fee_event(
            db,
            invoice.college_id,
            "invoices",
            invoice.id,
            audit.INVOICE_PAYMENT,
            old_value={"paid_amount": old_paid},
            new_value={"paid_amount": invoice.paid_amount, "transaction_no": txn.transaction_no},
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

    student = await load_student(db, college_id, invoice.student_id, refresh=True)
    return InvoicePaymentResponse(
        invoice=InvoiceResponse.model_validate(invoice),
        transaction=PaymentTransactionResponse.model_validate(txn),
        student=student_to_response(student),
    )


async def reverse_invoice(
    db: AsyncSession,
    college_id: Optional[UUID],
    invoice_id: UUID,
    changed_by: Optional[UUID],
) -> InvoiceReversalResponse:
    """
    Delete an invoice and subtract its paid amount from the student's paid fee
    (floored at zero). Transactions and monthly payments referencing it are kept.
    """
    try:
        invoice = await lock_invoice(db, college_id, invoice_id)
        reversed_amount = Decimal(invoice.paid_amount or 0)
        student_id = invoice.student_id
        invoice_no = invoice.invoice_no
        before = await fee_ledger.get_fee_state(db, student_id)
        after = await fee_ledger.reverse_invoice(db, student_id, reversed_amount)
        await audit.emit_fee_event(
            db,
            invoice.college_id,
            "invoices",
            invoice.id,
            audit.INVOICE_REVERSED,
            old_value={"invoice_no": invoice_no, "paid_amount": reversed_amount, "paid_fee": before.paid_fee},
            new_value={"paid_fee": after.paid_fee},
            changed_by=changed_by,
        )
        await db.delete(invoice)
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise

    logger.info("Reversed invoice %s (%s) for student %s", invoice_no, reversed_amount, student_id)
    student = await load_student(db, college_id, student_id, refresh=True)
    return InvoiceReversalResponse(
        invoice_id=invoice_id,
        invoice_no=invoice_no,
        reversed_amount=reversed_amount,
        student=student_to_response(student),
    )
