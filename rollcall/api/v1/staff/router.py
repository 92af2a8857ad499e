from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.dependencies import get_current_user
from rollcall.auth.rbac import check_permission
from rollcall.auth.schemas import CurrentUser
from rollcall.core.enums import StaffRole
from rollcall.core.exceptions import ServiceError
from rollcall.db.session import get_db

from .schemas import StaffCreate, StaffResponse, StaffUpdate
from . import service

router = APIRouter(prefix="/api/v1/staff", tags=["staff"])


@router.post(
    "",
    response_model=StaffResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("staff", "create"))],
)
async def create_staff(
    payload: StaffCreate,
    db: AsyncSession = Depends(get_db),
) -> StaffResponse:
    try:
        return await service.create_staff(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[StaffResponse],
    dependencies=[Depends(check_permission("staff", "read"))],
)
async def list_staff(
    role: Optional[StaffRole] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[StaffResponse]:
    return await service.list_staff(db, role)


@router.get(
    "/{staff_id}",
    response_model=StaffResponse,
    dependencies=[Depends(check_permission("staff", "read"))],
)
async def get_staff(
    staff_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StaffResponse:
    try:
        return await service.get_staff(db, staff_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{staff_id}",
    response_model=StaffResponse,
    dependencies=[Depends(check_permission("staff", "update"))],
)
async def update_staff(
    staff_id: UUID,
    payload: StaffUpdate,
    db: AsyncSession = Depends(get_db),
) -> StaffResponse:
    try:
        return await service.update_staff(db, staff_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{staff_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("staff", "delete"))],
)
async def delete_staff(
    staff_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_staff(db, staff_id, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
