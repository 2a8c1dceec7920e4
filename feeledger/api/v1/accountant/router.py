"""Accountant router: monthly payments, fee linking, fee corrections, payment history and fee summary."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.dependencies import get_current_user
from feeledger.auth.rbac import FEE_READ_ROLES, FEE_WRITE_ROLES, require_roles
from feeledger.auth.schemas import CurrentUser
from feeledger.core.exceptions import ServiceError
from feeledger.core.schemas import MonthlyPaymentResponse, StudentResponse
from feeledger.db.session import get_db

from .schemas import (
    FeeCorrectionRequest,
    FeeSummaryResponse,
    LinkFeesRequest,
    LinkFeesResponse,
    MonthlyPaymentCreate,
    MonthlyPaymentRecorded,
    PaymentHistoryResponse,
)
from . import history, service, summary

router = APIRouter(prefix="/api/v1/accountant", tags=["accountant"])


# --- Monthly payments ---
@router.post(
    "/monthly-payments",
    response_model=MonthlyPaymentRecorded,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*FEE_WRITE_ROLES))],
)
async def record_monthly_payment(
    payload: MonthlyPaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> MonthlyPaymentRecorded:
    try:
        return await service.record_monthly_payment(
            db, current_user.college_id, payload, current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/monthly-payments",
    response_model=List[MonthlyPaymentResponse],
    dependencies=[Depends(require_roles(*FEE_READ_ROLES))],
)
async def list_monthly_payments(
    student_id: Optional[UUID] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[MonthlyPaymentResponse]:
    return await service.list_monthly_payments(
        db,
        current_user.college_id,
        student_id=student_id,
        month=month,
        year=year,
        start_date=start_date,
        end_date=end_date,
    )


# --- Fee terms ---
@router.post(
    "/admissions/{student_id}/link-fees",
    response_model=LinkFeesResponse,
    dependencies=[Depends(require_roles(*FEE_WRITE_ROLES))],
)
async def link_fees(
    student_id: UUID,
    payload: LinkFeesRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LinkFeesResponse:
    try:
        return await service.link_fees(
            db, current_user.college_id, student_id, payload, current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/students/{student_id}/fee-info",
    response_model=StudentResponse,
    dependencies=[Depends(require_roles(*FEE_WRITE_ROLES))],
)
async def correct_fee_info(
    student_id: UUID,
    payload: FeeCorrectionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentResponse:
    try:
        return await service.correct_fee_info(
            db, current_user.college_id, student_id, payload, current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payment history ---
@router.get(
    "/students/{student_id}/payment-history",
    response_model=PaymentHistoryResponse,
    dependencies=[Depends(require_roles(*FEE_READ_ROLES))],
)
async def get_payment_history(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentHistoryResponse:
    try:
        return await history.get_payment_history(db, current_user.college_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Fee summary ---
@router.get(
    "/students/{student_id}/fee-summary",
    response_model=FeeSummaryResponse,
    dependencies=[Depends(require_roles(*FEE_READ_ROLES))],
)
async def get_fee_summary(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeSummaryResponse:
    try:
        return await summary.get_fee_summary(db, current_user.college_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
