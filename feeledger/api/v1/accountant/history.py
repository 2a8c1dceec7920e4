"""
Payment history for one student: every invoice, monthly payment and transaction,
plus a summary comparing the cached fee aggregate with the transaction log.

Pure read. The cached paid_fee and the sum of transactions are independent
representations; they drift apart after corrections or invoice reversals, and the
summary reports that drift instead of hiding it.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.api.v1.students.service import load_student, student_to_response
from feeledger.core.models import Invoice, MonthlyPayment, PaymentTransaction
from feeledger.core.schemas import InvoiceResponse, MonthlyPaymentResponse, PaymentTransactionResponse

from .schemas import PaymentHistoryResponse, PaymentHistorySummary

ZERO = Decimal("0")


def _total(values) -> Decimal:
    return sum((Decimal(v or 0) for v in values), ZERO)


async def get_payment_history(
    db: AsyncSession,
    college_id: Optional[UUID],
    student_id: UUID,
) -> PaymentHistoryResponse:
    student = await load_student(db, college_id, student_id, refresh=True)

    invoices = (
        await db.execute(
            select(Invoice)
            .where(Invoice.student_id == student.id)
            .order_by(Invoice.invoice_date.desc())
        )
    ).scalars().all()
    monthly_payments = (
        await db.execute(
            select(MonthlyPayment)
            .where(MonthlyPayment.student_id == student.id)
            .order_by(
                MonthlyPayment.year.desc(),
                MonthlyPayment.month.desc(),
                MonthlyPayment.payment_date.desc(),
            )
        )
    ).scalars().all()
    transactions = (
        await db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.student_id == student.id)
            .order_by(PaymentTransaction.payment_date.desc())
        )
    ).scalars().all()

    paid_fee = Decimal(student.paid_fee or 0)
    total_transactions = _total(t.amount for t in transactions)
    drift = paid_fee - total_transactions
    summary = PaymentHistorySummary(
        total_fee=Decimal(student.total_fee or 0),
        admission_fee=Decimal(student.admission_fee or 0),
        paid_fee=paid_fee,
        pending_fee=Decimal(student.pending_fee or 0),
        remaining_fee=Decimal(student.remaining_fee or 0),
        total_monthly_payments=_total(p.amount for p in monthly_payments),
        total_transactions=total_transactions,
        total_invoiced=_total(i.total_amount for i in invoices),
        total_invoice_paid=_total(i.paid_amount for i in invoices),
        paid_fee_drift=drift,
        is_consistent=drift == 0,
    )
    return PaymentHistoryResponse(
        student=student_to_response(student),
        invoices=[InvoiceResponse.model_validate(i) for i in invoices],
        monthly_payments=[MonthlyPaymentResponse.model_validate(p) for p in monthly_payments],
        transactions=[PaymentTransactionResponse.model_validate(t) for t in transactions],
        summary=summary,
    )
