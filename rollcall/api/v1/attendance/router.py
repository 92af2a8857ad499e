"""Attendance API router."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.dependencies import get_current_user
from rollcall.auth.rbac import check_permission
from rollcall.auth.schemas import CurrentUser
from rollcall.core.enums import ExportFormat
from rollcall.core.exceptions import ServiceError
from rollcall.core.exports import export_response
from rollcall.db.session import get_db

from . import service
from .schemas import (
    AbsenceStatusUpdate,
    AttendanceRecordResponse,
    AttendanceSubmitRequest,
    DepartmentSubmissionStatus,
    MarkPresentResponse,
    SubmissionResponse,
)

router = APIRouter(prefix="/api/v1/attendance", tags=["attendance"])


@router.post(
    "/submissions",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("attendance", "create"))],
)
async def submit_class_attendance(
    payload: AttendanceSubmitRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SubmissionResponse:
    """Submit the day's absentees for one class. Teacher: own class only."""
    try:
        return await service.submit_class_attendance(db, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/submissions/status",
    response_model=List[DepartmentSubmissionStatus],
    dependencies=[Depends(check_permission("attendance", "read"))],
)
async def submission_status(
    on_date: date = Query(..., alias="date"),
    department_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[DepartmentSubmissionStatus]:
    return await service.submission_status(db, on_date, department_id)


@router.get(
    "/absentees",
    response_model=List[AttendanceRecordResponse],
    dependencies=[Depends(check_permission("attendance", "read"))],
)
async def list_absentees(
    on_date: Optional[date] = Query(None, alias="date"),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    mentor: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AttendanceRecordResponse]:
    try:
        return await service.list_absentees(
            db, current_user, on_date, start, end, department_id, class_id, mentor
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/absentees/export",
    dependencies=[Depends(check_permission("attendance", "read"))],
)
async def export_absentees(
    format: ExportFormat = Query(ExportFormat.XLSX),
    on_date: Optional[date] = Query(None, alias="date"),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    mentor: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        records = await service.list_absentees(
            db, current_user, on_date, start, end, department_id, class_id, mentor
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return export_response(
        format,
        service.ABSENTEE_EXPORT_HEADERS,
        service.absentee_export_rows(records),
        filename="absentees",
        sheet_title="Absentees",
    )


@router.delete(
    "/records/{record_id}",
    response_model=MarkPresentResponse,
    dependencies=[Depends(check_permission("attendance", "update"))],
)
async def mark_present(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> MarkPresentResponse:
    """Correct an absence: the student counts as present for that day."""
    try:
        return await service.mark_present(db, record_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/records/{record_id}",
    response_model=AttendanceRecordResponse,
    dependencies=[Depends(check_permission("attendance", "update"))],
)
async def update_absence_status(
    record_id: UUID,
    payload: AbsenceStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AttendanceRecordResponse:
    try:
        return await service.update_absence_status(db, record_id, payload.status, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
