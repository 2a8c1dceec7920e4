"""Student admission schemas."""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from feeledger.core.enums import InstituteType


class StudentAdmissionCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    institute_type: InstituteType
    session: Optional[str] = Field(None, max_length=30)
    admission_date: Optional[date] = None
    user_id: Optional[UUID] = None
    # Only honoured for super_admin; everyone else admits into their own college
    college_id: Optional[UUID] = None

    # Optional fee terms; when total_fee is given the fees are linked right away
    total_fee: Optional[Decimal] = Field(None, ge=0)
    admission_fee: Optional[Decimal] = Field(None, ge=0)
    monthly_fee: Optional[Decimal] = Field(None, ge=0)
    fee_structure_id: Optional[UUID] = None
