import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.models import Staff
from rollcall.auth.security import hash_password
from rollcall.core.enums import StaffRole
from rollcall.core.exceptions import ConflictError, NotFoundError, ValidationError
from rollcall.core.models import SchoolClass

from .schemas import StaffCreate, StaffResponse, StaffUpdate

logger = logging.getLogger(__name__)


async def _check_class(db: AsyncSession, role: StaffRole, class_id: Optional[UUID]) -> Optional[UUID]:
    if role != StaffRole.TEACHER:
        return None
    if class_id is None:
        raise ValidationError("class_id is required for teachers")
    if not await db.get(SchoolClass, class_id):
        raise NotFoundError("Class not found")
    return class_id


async def create_staff(db: AsyncSession, payload: StaffCreate) -> StaffResponse:
    email = payload.email.strip().lower()
    existing = (
        await db.execute(select(Staff.id).where(func.lower(Staff.email) == email))
    ).scalar_one_or_none()
    if existing:
        raise ConflictError("Email is already in use")
    class_id = await _check_class(db, payload.role, payload.class_id)
    staff = Staff(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        class_id=class_id,
    )
    db.add(staff)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email is already in use")
    await db.refresh(staff)
    logger.info("Staff %s created with role %s", email, staff.role)
    return StaffResponse.model_validate(staff)


async def list_staff(db: AsyncSession, role: Optional[StaffRole] = None) -> List[StaffResponse]:
    stmt = select(Staff)
    if role is not None:
        stmt = stmt.where(Staff.role == role.value)
    result = await db.execute(stmt.order_by(Staff.name))
    return [StaffResponse.model_validate(s) for s in result.scalars().all()]


async def _get(db: AsyncSession, staff_id: UUID) -> Staff:
    staff = await db.get(Staff, staff_id)
    if not staff:
        raise NotFoundError("Staff not found")
    return staff


async def get_staff(db: AsyncSession, staff_id: UUID) -> StaffResponse:
    return StaffResponse.model_validate(await _get(db, staff_id))


async def update_staff(db: AsyncSession, staff_id: UUID, payload: StaffUpdate) -> StaffResponse:
    staff = await _get(db, staff_id)
    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"]:
        staff.name = data["name"].strip()
    if data.get("password"):
        staff.password_hash = hash_password(data["password"])
    role = StaffRole(data["role"]) if data.get("role") else StaffRole(staff.role)
    class_id = data["class_id"] if "class_id" in data else staff.class_id
    staff.class_id = await _check_class(db, role, class_id)
    staff.role = role.value
    await db.commit()
    await db.refresh(staff)
    return StaffResponse.model_validate(staff)


async def delete_staff(db: AsyncSession, staff_id: UUID, acting_staff_id: UUID) -> None:
    if staff_id == acting_staff_id:
        raise ValidationError("You cannot delete your own account")
    staff = await _get(db, staff_id)
    email = staff.email
    await db.delete(staff)
    await db.commit()
    logger.info("Staff %s deleted", email)
