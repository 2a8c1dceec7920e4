"""
Fee summary for one student: each invoice classified by payment timing, with its own
transactions, plus totals and counts for the student's fee page.

Pure read. Overdue is derived against ``today`` rather than taken from the stored
invoice status, which is only refreshed when an invoice is written.
"""

from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.api.v1.students.service import load_student, student_to_response
from feeledger.core.enums import OverallFeeStatus, PaymentTiming
from feeledger.core.invoice_math import classify_payment, derive_status
from feeledger.core.models import Invoice, PaymentTransaction
from feeledger.core.schemas import InvoiceResponse, PaymentTransactionResponse

from .schemas import FeeSummaryResponse, FeeSummaryTotals, InvoiceFeeSummary, PaymentStatusCounts

ZERO = Decimal("0")
CENT = Decimal("0.01")

ON_TIME = (PaymentTiming.paid_on_time, PaymentTiming.paid)
AWAITING = (PaymentTiming.partial, PaymentTiming.pending)


def _dec(value) -> Decimal:
    return Decimal(value or 0)


def payment_percentage(paid: Decimal, total: Decimal) -> Decimal:
    if total <= 0:
        return ZERO
    return (paid / total * 100).quantize(CENT, rounding=ROUND_HALF_UP)


async def get_fee_summary(
    db: AsyncSession,
    college_id: Optional[UUID],
    student_id: UUID,
    today: Optional[date] = None,
) -> FeeSummaryResponse:
    today = today or date.today()
    student = await load_student(db, college_id, student_id, refresh=True)

    invoices = (
        await db.execute(
            select(Invoice)
            .where(Invoice.student_id == student.id)
            .order_by(Invoice.invoice_date.desc())
        )
    ).scalars().all()
    transactions = (
        await db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.student_id == student.id)
            .order_by(PaymentTransaction.payment_date.desc())
        )
    ).scalars().all()

    by_invoice = defaultdict(list)
    for txn in transactions:
        if txn.invoice_id is not None:
            by_invoice[txn.invoice_id].append(txn)

    invoiced = paid = pending = overdue_amount = ZERO
    on_time_count = overdue_count = pending_count = 0
    details = []
    for invoice in invoices:
        invoice_total = _dec(invoice.total_amount)
        invoice_paid = _dec(invoice.paid_amount)
        invoice_pending = _dec(invoice.pending_amount)
        status = derive_status(invoice_pending, invoice_paid, invoice.due_date, today)
        timing, is_overdue = classify_payment(status, invoice.due_date, invoice.payment_date, today)

        if timing in ON_TIME:
            on_time_count += 1
        if timing in AWAITING:
            pending_count += 1
        if timing == PaymentTiming.paid_late or is_overdue:
            overdue_count += 1
        if is_overdue:
            overdue_amount += invoice_pending

        invoiced += invoice_total
        paid += invoice_paid
        pending += invoice_pending
        details.append(
            InvoiceFeeSummary(
                invoice=InvoiceResponse.model_validate(invoice),
                payment_status=timing,
                is_overdue=is_overdue,
                is_paid_on_time=timing == PaymentTiming.paid_on_time,
                transactions=[PaymentTransactionResponse.model_validate(t) for t in by_invoice[invoice.id]],
            )
        )

    if pending <= 0:
        overall = OverallFeeStatus.complete
    elif overdue_amount > 0:
        overall = OverallFeeStatus.overdue
    else:
        overall = OverallFeeStatus.pending

    student_total = _dec(student.total_fee)
    student_paid = _dec(student.paid_fee)
    student_pending = _dec(student.pending_fee)
    totals = FeeSummaryTotals(
        total_fee_amount=student_total if student_total > 0 else invoiced,
        total_paid_amount=student_paid if student_paid > 0 else paid,
        total_pending_amount=student_pending if student_pending > 0 else pending,
        total_overdue_amount=overdue_amount,
        payment_percentage=payment_percentage(paid, invoiced),
        overall_status=overall,
    )
    return FeeSummaryResponse(
        student=student_to_response(student),
        summary=totals,
        payment_status=PaymentStatusCounts(
            paid_on_time=on_time_count,
            overdue=overdue_count,
            pending=pending_count,
            total_invoices=len(invoices),
        ),
        invoices=details,
        last_payment_date=transactions[0].payment_date if transactions else None,
        payment_count=len(transactions),
    )
