"""Accountant schemas: monthly payments, fee linking and correction, payment history, fee summary."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from feeledger.core.enums import OverallFeeStatus, PaymentMethod, PaymentTiming
from feeledger.core.schemas import (
    InvoiceResponse,
    MonthlyPaymentResponse,
    PaymentTransactionResponse,
    StudentResponse,
)


# --- Monthly payment ---
class MonthlyPaymentCreate(BaseModel):
    student_id: UUID
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    receipt_no: Optional[str] = Field(None, max_length=50)
    # Explicit invoice to pay against; otherwise the latest open invoice is used
    invoice_id: Optional[UUID] = None
    # Teacher or accountant credited with the collection; defaults to the caller
    collected_by: Optional[UUID] = None


class MonthlyPaymentRecorded(BaseModel):
    payment: MonthlyPaymentResponse
    invoice: InvoiceResponse
    transaction: PaymentTransactionResponse
    student: StudentResponse


# --- Fee terms ---
class LinkFeesRequest(BaseModel):
    total_amount: Decimal = Field(..., ge=0)
    admission_fee: Optional[Decimal] = Field(None, ge=0)
    monthly_fee: Optional[Decimal] = Field(None, ge=0)
    fee_structure_id: Optional[UUID] = None


class LinkFeesResponse(BaseModel):
    student: StudentResponse
    invoice: Optional[InvoiceResponse] = None


class FeeCorrectionRequest(BaseModel):
    """Only these fee inputs can be corrected; pending and remaining are always recomputed."""

    total_fee: Optional[Decimal] = Field(None, ge=0)
    admission_fee: Optional[Decimal] = Field(None, ge=0)
    paid_fee: Optional[Decimal] = Field(None, ge=0)
    fee_structure_id: Optional[UUID] = None
    reason: Optional[str] = Field(None, max_length=500)


# --- Payment history ---
class PaymentHistorySummary(BaseModel):
    total_fee: Decimal
    admission_fee: Decimal
    paid_fee: Decimal
    pending_fee: Decimal
    remaining_fee: Decimal
    total_monthly_payments: Decimal
    total_transactions: Decimal
    total_invoiced: Decimal
    total_invoice_paid: Decimal
    # paid_fee - total_transactions; non-zero after corrections or reversals
    paid_fee_drift: Decimal
    is_consistent: bool


class PaymentHistoryResponse(BaseModel):
    student: StudentResponse
    invoices: List[InvoiceResponse]
    monthly_payments: List[MonthlyPaymentResponse]
    transactions: List[PaymentTransactionResponse]
    summary: PaymentHistorySummary


# --- Fee summary ---
class InvoiceFeeSummary(BaseModel):
    invoice: InvoiceResponse
    payment_status: PaymentTiming
    is_overdue: bool
    is_paid_on_time: bool
    transactions: List[PaymentTransactionResponse]


class FeeSummaryTotals(BaseModel):
    # The student's fee aggregate when set, else the invoice totals
    total_fee_amount: Decimal
    total_paid_amount: Decimal
    total_pending_amount: Decimal
    total_overdue_amount: Decimal
    payment_percentage: Decimal
    overall_status: OverallFeeStatus


class PaymentStatusCounts(BaseModel):
    paid_on_time: int
    overdue: int
    pending: int
    total_invoices: int


class FeeSummaryResponse(BaseModel):
    student: StudentResponse
    summary: FeeSummaryTotals
    payment_status: PaymentStatusCounts
    invoices: List[InvoiceFeeSummary]
    last_payment_date: Optional[datetime] = None
    payment_count: int
