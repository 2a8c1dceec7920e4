"""Fees schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from feeledger.core.enums import FeeFrequency, InstituteType, PaymentMethod
from feeledger.core.schemas import (
    InvoiceItemIn,
    InvoiceResponse,
    PaymentTransactionResponse,
    StudentResponse,
)


# --- Fee Structure ---
class FeeComponentIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    frequency: FeeFrequency = FeeFrequency.monthly


class FeeStructureCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    institute_type: InstituteType
    course_name: Optional[str] = Field(None, max_length=255)
    components: List[FeeComponentIn] = Field(..., min_length=1)
    # Only honoured for super_admin; everyone else creates in their own college
    college_id: Optional[UUID] = None


class FeeStructureResponse(BaseModel):
    id: UUID
    college_id: UUID
    sr_no: str
    name: str
    institute_type: InstituteType
    course_name: Optional[str] = None
    components: List[FeeComponentIn]
    total_amount: Decimal
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# --- Invoice ---
class InvoiceCreate(BaseModel):
    student_id: UUID
    items: List[InvoiceItemIn] = Field(..., min_length=1)
    discount: Decimal = Field(Decimal("0"), ge=0)
    paid_amount: Decimal = Field(Decimal("0"), ge=0)
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[datetime] = None
    due_date: Optional[date] = None
    fee_structure_id: Optional[UUID] = None
    notes: Optional[str] = None
    # Teacher or accountant credited with the collection; defaults to the caller
    collected_by: Optional[UUID] = None


class InvoicePaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    receipt_no: Optional[str] = Field(None, max_length=50)
    collected_by: Optional[UUID] = None


class InvoicePaymentResponse(BaseModel):
    invoice: InvoiceResponse
    transaction: PaymentTransactionResponse
    student: StudentResponse


class InvoiceReversalResponse(BaseModel):
    invoice_id: UUID
    invoice_no: str
    reversed_amount: Decimal
    student: StudentResponse
