from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.dependencies import get_current_user
from rollcall.auth.rbac import check_permission
from rollcall.auth.schemas import CurrentUser
from rollcall.core.enums import ExportFormat
from rollcall.core.exceptions import ServiceError
from rollcall.core.exports import export_response
from rollcall.db.session import get_db

from .schemas import (
    DayWisePoint,
    PeriodicalReportResponse,
    StrengthSummaryResponse,
    StudentYearlyReport,
)
from . import service

router = APIRouter(
    prefix="/api/v1/analytics",
    tags=["analytics"],
    dependencies=[Depends(check_permission("analytics", "read"))],
)


@router.get("/strength", response_model=StrengthSummaryResponse)
async def strength_summary(
    on_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StrengthSummaryResponse:
    try:
        return await service.strength_summary(db, on_date or date.today(), current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/day-wise", response_model=List[DayWisePoint])
async def day_wise(
    start: date = Query(...),
    end: date = Query(...),
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[DayWisePoint]:
    try:
        return await service.day_wise(db, start, end, current_user, department_id, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/periodical", response_model=PeriodicalReportResponse)
async def periodical_report(
    start: date = Query(...),
    end: date = Query(...),
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    mentor: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PeriodicalReportResponse:
    try:
        return await service.periodical_report(
            db, start, end, current_user, department_id, class_id, mentor
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/periodical/export")
async def export_periodical_report(
    start: date = Query(...),
    end: date = Query(...),
    format: ExportFormat = Query(ExportFormat.XLSX),
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    mentor: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        report = await service.periodical_report(
            db, start, end, current_user, department_id, class_id, mentor
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return export_response(
        format,
        service.PERIODICAL_EXPORT_HEADERS,
        service.periodical_export_rows(report),
        filename=f"attendance_{start.isoformat()}_{end.isoformat()}",
        sheet_title="Attendance",
    )


@router.get("/students/{student_id}/yearly", response_model=StudentYearlyReport)
async def student_yearly_report(
    student_id: UUID,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentYearlyReport:
    try:
        return await service.student_yearly_report(
            db, student_id, year or date.today().year, current_user
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
