"""Fees router: fee structures and invoices."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.dependencies import get_current_user
from feeledger.auth.rbac import FEE_READ_ROLES, FEE_WRITE_ROLES, INVOICE_DELETE_ROLES, require_roles
from feeledger.auth.schemas import CurrentUser
from feeledger.core.enums import InvoiceStatus
from feeledger.core.exceptions import ServiceError
from feeledger.core.schemas import InvoiceResponse
from feeledger.db.session import get_db

from .schemas import (
    FeeStructureCreate,
    FeeStructureResponse,
    InvoiceCreate,
    InvoicePaymentCreate,
    InvoicePaymentResponse,
    InvoiceReversalResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Fee Structure ---
@router.post(
    "/structures",
    response_model=FeeStructureResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*FEE_WRITE_ROLES))],
)
async def create_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.create_fee_structure(db, current_user.college_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/structures",
    response_model=List[FeeStructureResponse],
    dependencies=[Depends(require_roles(*FEE_READ_ROLES))],
)
async def list_fee_structures(
    active_only: bool = Query(True, description="Return only active structures by default"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeStructureResponse]:
    return await service.list_fee_structures(db, current_user.college_id, active_only=active_only)


# --- Invoice ---
@router.post(
    "/invoices",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*FEE_WRITE_ROLES))],
)
async def create_invoice(
    payload: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceResponse:
    try:
        return await service.create_invoice(db, current_user.college_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/invoices",
    response_model=List[InvoiceResponse],
    dependencies=[Depends(require_roles(*FEE_READ_ROLES))],
)
async def list_invoices(
    student_id: Optional[UUID] = Query(None),
    status: Optional[InvoiceStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[InvoiceResponse]:
    return await service.list_invoices(
        db, current_user.college_id, student_id=student_id, status=status
    )


@router.get(
    "/invoices/{invoice_id}",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_roles(*FEE_READ_ROLES))],
)
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceResponse:
    try:
        return await service.get_invoice(db, current_user.college_id, invoice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/invoices/{invoice_id}/pay",
    response_model=InvoicePaymentResponse,
    dependencies=[Depends(require_roles(*FEE_WRITE_ROLES))],
)
async def pay_invoice(
    invoice_id: UUID,
    payload: InvoicePaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoicePaymentResponse:
    try:
        return await service.record_invoice_payment(
            db, current_user.college_id, invoice_id, payload, current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/invoices/{invoice_id}",
    response_model=InvoiceReversalResponse,
    dependencies=[Depends(require_roles(*INVOICE_DELETE_ROLES))],
)
async def delete_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceReversalResponse:
    try:
        return await service.reverse_invoice(db, current_user.college_id, invoice_id, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
