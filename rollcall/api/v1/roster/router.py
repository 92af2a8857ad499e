from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.dependencies import get_current_user
from rollcall.auth.rbac import check_permission, ensure_class_access, scoped_class_id
from rollcall.auth.schemas import CurrentUser
from rollcall.core.exceptions import ServiceError
from rollcall.db.session import get_db

from .schemas import (
    ClassCreate,
    ClassResponse,
    DepartmentCreate,
    DepartmentResponse,
    StudentCreate,
    StudentResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/roster", tags=["roster"])


@router.post(
    "/departments",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("roster", "create"))],
)
async def create_department(
    payload: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
) -> DepartmentResponse:
    try:
        return await service.create_department(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/departments",
    response_model=List[DepartmentResponse],
    dependencies=[Depends(check_permission("roster", "read"))],
)
async def list_departments(db: AsyncSession = Depends(get_db)) -> List[DepartmentResponse]:
    return await service.list_departments(db)


@router.post(
    "/classes",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("roster", "create"))],
)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    try:
        return await service.create_class(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/classes",
    response_model=List[ClassResponse],
    dependencies=[Depends(check_permission("roster", "read"))],
)
async def list_classes(
    department_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[ClassResponse]:
    return await service.list_classes(db, department_id=department_id)


@router.post(
    "/students",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("roster", "create"))],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/students",
    response_model=List[StudentResponse],
    dependencies=[Depends(check_permission("roster", "read"))],
)
async def list_students(
    department_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, description="Matches name or register number"),
    mentor: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentResponse]:
    try:
        class_id = scoped_class_id(current_user, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return await service.list_students(db, department_id, class_id, search, mentor)


@router.get(
    "/students/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("roster", "read"))],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentResponse:
    try:
        student = await service.get_student(db, student_id)
        ensure_class_access(current_user, student.class_id)
        return student
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
