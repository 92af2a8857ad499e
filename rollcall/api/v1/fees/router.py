"""Fees router: fee profiles, payments, history, dashboard, breakdown, audit and export."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.dependencies import get_current_user
from rollcall.auth.rbac import check_permission
from rollcall.auth.schemas import CurrentUser
from rollcall.core.enums import ExportFormat, FeeCategory, FeeStatus
from rollcall.core.exceptions import ServiceError
from rollcall.core.exports import export_response
from rollcall.db.session import get_db

from .schemas import (
    DepartmentFeeBreakdown,
    FeeAuditResponse,
    FeeDashboardResponse,
    FeeProfileResponse,
    FeeTotalsUpdate,
    PaymentCreate,
    PaymentResponse,
    TransactionResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.get(
    "",
    response_model=List[FeeProfileResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_profiles(
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, description="Student name or register number"),
    fee_status: Optional[FeeStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeProfileResponse]:
    try:
        return await service.list_fee_profiles(
            db, current_user, department_id, class_id, search, fee_status
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/export",
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def export_fee_profiles(
    format: ExportFormat = Query(ExportFormat.XLSX),
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None),
    fee_status: Optional[FeeStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        items = await service.list_fee_profiles(
            db, current_user, department_id, class_id, search, fee_status
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return export_response(
        format,
        service.FEE_EXPORT_HEADERS,
        service.fee_export_rows(items),
        filename="fee_records",
        sheet_title="Fees",
    )


@router.get(
    "/dashboard",
    response_model=FeeDashboardResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def fee_dashboard(
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeDashboardResponse:
    try:
        return await service.fee_dashboard(db, current_user, department_id, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/breakdown",
    response_model=List[DepartmentFeeBreakdown],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def fee_breakdown(
    department_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[DepartmentFeeBreakdown]:
    try:
        return await service.fee_breakdown(db, current_user, department_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}",
    response_model=FeeProfileResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee_profile(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeProfileResponse:
    try:
        return await service.get_fee_profile(db, student_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{student_id}",
    response_model=FeeProfileResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_fee_totals(
    student_id: UUID,
    payload: FeeTotalsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeProfileResponse:
    try:
        return await service.update_fee_totals(db, student_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{student_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def record_payment(
    student_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.record_payment(db, student_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}/transactions",
    response_model=List[TransactionResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_transactions(
    student_id: UUID,
    category: Optional[FeeCategory] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[TransactionResponse]:
    try:
        return await service.list_transactions(db, student_id, current_user, category)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}/audit",
    response_model=FeeAuditResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def audit_fee_profile(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeAuditResponse:
    try:
        return await service.audit_fee_profile(db, student_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
