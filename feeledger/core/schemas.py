"""Response schemas shared by the students, fees and accountant modules."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from feeledger.core.enums import InvoiceStatus, PaymentMethod


class FeeStateResponse(BaseModel):
    """Cached fee aggregate of a student. pending_fee < 0 means the student overpaid."""

    total_fee: Decimal
    admission_fee: Decimal
    paid_fee: Decimal
    pending_fee: Decimal
    remaining_fee: Decimal

    class Config:
        from_attributes = True


class StudentResponse(FeeStateResponse):
    id: UUID
    college_id: UUID
    sr_no: str
    admission_no: str
    full_name: str
    institute_type: Optional[str] = None
    session: Optional[str] = None
    status: str
    admission_date: date
    admitted_by_name: Optional[str] = None
    fee_structure_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class InvoiceItemIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class InvoiceItemResponse(BaseModel):
    description: str
    amount: Decimal
    quantity: int

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: UUID
    college_id: UUID
    invoice_no: str
    student_id: UUID
    fee_structure_id: Optional[UUID] = None
    invoice_date: datetime
    due_date: Optional[date] = None
    items: List[InvoiceItemResponse]
    subtotal: Decimal
    discount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    status: InvoiceStatus
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    collected_by: Optional[UUID] = None
    collected_by_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentTransactionResponse(BaseModel):
    id: UUID
    college_id: UUID
    transaction_no: str
    student_id: UUID
    invoice_id: Optional[UUID] = None
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: datetime
    collected_by: Optional[UUID] = None
    collected_by_name: Optional[str] = None
    notes: Optional[str] = None
    receipt_no: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MonthlyPaymentResponse(BaseModel):
    id: UUID
    college_id: UUID
    payment_no: str
    student_id: UUID
    invoice_id: Optional[UUID] = None
    transaction_id: Optional[UUID] = None
    month: int
    year: int
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: datetime
    collected_by: Optional[UUID] = None
    collected_by_name: Optional[str] = None
    notes: Optional[str] = None
    receipt_no: Optional[str] = None
    status: str
    is_monthly_fee: bool
    is_admission_fee: bool
    created_at: datetime

    class Config:
        from_attributes = True
