"""Roster: departments, classes and students. Reference data for attendance, analytics and fees."""

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.core.exceptions import ConflictError, NotFoundError
from rollcall.core.models import Department, SchoolClass, Student

from .schemas import (
    ClassCreate,
    ClassResponse,
    DepartmentCreate,
    DepartmentResponse,
    StudentCreate,
    StudentResponse,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StudentRef:
    """Plain snapshot of a student with resolved department/class names. Safe to use after a rollback."""

    id: UUID
    name: str
    register_no: str
    gender: str
    mentor: Optional[str]
    department_id: UUID
    department_name: str
    class_id: UUID
    class_name: str
    parent_phone_number: Optional[str] = None
    admission_type: Optional[str] = None


def student_ref_query():
    return (
        select(
            Student.id,
            Student.name,
            Student.register_no,
            Student.gender,
            Student.mentor,
            Student.department_id,
            Department.name,
            Student.class_id,
            SchoolClass.name,
            Student.parent_phone_number,
            Student.admission_type,
        )
        .join(Department, Department.id == Student.department_id)
        .join(SchoolClass, SchoolClass.id == Student.class_id)
    )


def filter_students(
    stmt,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    search: Optional[str] = None,
    mentor: Optional[str] = None,
):
    if department_id is not None:
        stmt = stmt.where(Student.department_id == department_id)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Student.name).like(pattern),
                func.lower(Student.register_no).like(pattern),
            )
        )
    if mentor:
        stmt = stmt.where(Student.mentor == mentor)
    return stmt


async def list_student_refs(
    db: AsyncSession,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    search: Optional[str] = None,
    mentor: Optional[str] = None,
) -> List[StudentRef]:
    stmt = filter_students(student_ref_query(), department_id, class_id, search, mentor)
    stmt = stmt.order_by(Student.register_no)
    rows = (await db.execute(stmt)).all()
    return [StudentRef(*row) for row in rows]


async def get_student_ref(db: AsyncSession, student_id: UUID) -> StudentRef:
    row = (await db.execute(student_ref_query().where(Student.id == student_id))).one_or_none()
    if row is None:
        raise NotFoundError("Student not found")
    return StudentRef(*row)


def _student_to_response(ref: StudentRef) -> StudentResponse:
    return StudentResponse(
        id=ref.id,
        name=ref.name,
        department_id=ref.department_id,
        department_name=ref.department_name,
        class_id=ref.class_id,
        class_name=ref.class_name,
        register_no=ref.register_no,
        gender=ref.gender,
        parent_phone_number=ref.parent_phone_number,
        mentor=ref.mentor,
        admission_type=ref.admission_type,
    )


# --- Departments ---
async def create_department(db: AsyncSession, payload: DepartmentCreate) -> DepartmentResponse:
    code = payload.code.strip().upper()[:20]
    name = payload.name.strip()
    try:
        dept = Department(code=code, name=name)
        db.add(dept)
        await db.commit()
        await db.refresh(dept)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Department code or name already exists")
    logger.info("Department %s created", code)
    return DepartmentResponse.model_validate(dept)


async def list_departments(db: AsyncSession) -> List[DepartmentResponse]:
    result = await db.execute(select(Department).order_by(Department.name))
    return [DepartmentResponse.model_validate(d) for d in result.scalars().all()]


# --- Classes ---
async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    dept = await db.get(Department, payload.department_id)
    if not dept:
        raise NotFoundError("Department not found")
    try:
        cls = SchoolClass(department_id=dept.id, name=payload.name.strip())
        db.add(cls)
        await db.commit()
        await db.refresh(cls)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Class already exists in this department")
    return ClassResponse.model_validate(cls)


async def list_classes(db: AsyncSession, department_id: Optional[UUID] = None) -> List[ClassResponse]:
    stmt = select(SchoolClass)
    if department_id is not None:
        stmt = stmt.where(SchoolClass.department_id == department_id)
    stmt = stmt.order_by(SchoolClass.name)
    result = await db.execute(stmt)
    return [ClassResponse.model_validate(c) for c in result.scalars().all()]


# --- Students ---
async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    cls = await db.get(SchoolClass, payload.class_id)
    if not cls:
        raise NotFoundError("Class not found")
    student = Student(
        name=payload.name.strip(),
        department_id=cls.department_id,
        class_id=cls.id,
        register_no=payload.register_no.strip().upper(),
        gender=payload.gender.value,
        parent_phone_number=payload.parent_phone_number,
        mentor=payload.mentor.strip() if payload.mentor else None,
        admission_type=payload.admission_type.value if payload.admission_type else None,
    )
    db.add(student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Register number already exists")
    return _student_to_response(await get_student_ref(db, student.id))


async def list_students(
    db: AsyncSession,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    search: Optional[str] = None,
    mentor: Optional[str] = None,
) -> List[StudentResponse]:
    refs = await list_student_refs(db, department_id, class_id, search, mentor)
    return [_student_to_response(r) for r in refs]


async def get_student(db: AsyncSession, student_id: UUID) -> StudentResponse:
    return _student_to_response(await get_student_ref(db, student_id))
