from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.dependencies import get_current_user
from rollcall.auth.rbac import check_permission
from rollcall.auth.schemas import CurrentUser
from rollcall.core.exceptions import ServiceError
from rollcall.db.session import get_db

from .schemas import WorkingDayResponse, WorkingDayUpdate
from . import service

router = APIRouter(prefix="/api/v1/working-days", tags=["working-days"])


@router.get(
    "",
    response_model=List[WorkingDayResponse],
    dependencies=[Depends(check_permission("working_days", "read"))],
)
async def list_working_days(
    start: date = Query(...),
    end: date = Query(...),
    db: AsyncSession = Depends(get_db),
) -> List[WorkingDayResponse]:
    try:
        return await service.list_working_days(db, start, end)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{day}",
    response_model=WorkingDayResponse,
    dependencies=[Depends(check_permission("working_days", "update"))],
)
async def set_working_day(
    day: date,
    payload: WorkingDayUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> WorkingDayResponse:
    try:
        return await service.set_working_day(db, day, payload.is_working_day, current_user.name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{day}/toggle",
    response_model=WorkingDayResponse,
    dependencies=[Depends(check_permission("working_days", "update"))],
)
async def toggle_working_day(
    day: date,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> WorkingDayResponse:
    try:
        return await service.toggle_working_day(db, day, current_user.name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
