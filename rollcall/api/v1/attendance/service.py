"""Attendance service: absence-only daily submissions, corrections and absentee lists.

Presence is implicit. A submission stores one record per absent student plus the
per-class summary; a student without a record on a submitted working day was present.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.api.v1.roster.service import list_student_refs
from rollcall.api.v1.working_days.service import is_working_day, working_days_between
from rollcall.auth.rbac import ensure_class_access, scoped_class_id
from rollcall.auth.schemas import CurrentUser
from rollcall.core.enums import AbsenceStatus, SubmissionState
from rollcall.core.events import track_mutation
from rollcall.core.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from rollcall.core.models import (
    AttendanceRecord,
    AttendanceSubmission,
    Department,
    SchoolClass,
    Student,
    submission_key,
)

from .schemas import (
    AttendanceRecordResponse,
    AttendanceSubmitRequest,
    ClassSubmissionStatus,
    DepartmentSubmissionStatus,
    MarkPresentResponse,
    SubmissionResponse,
)

logger = logging.getLogger(__name__)

ABSENTEE_EXPORT_HEADERS = [
    "Date",
    "Time",
    "Register No",
    "Student",
    "Gender",
    "Department",
    "Class",
    "Status",
    "Marked By",
]


async def submit_class_attendance(
    db: AsyncSession,
    payload: AttendanceSubmitRequest,
    current_user: CurrentUser,
    today: Optional[date] = None,
) -> SubmissionResponse:
    """Record one class's absentees for a day. Each class can be submitted once per date."""
    today = today or date.today()
    on_date = payload.date or today
    ensure_class_access(current_user, payload.class_id)
    if on_date > today:
        raise ValidationError("Cannot mark attendance for a future date.")
    if not await is_working_day(db, on_date):
        raise ValidationError("Cannot mark attendance on a holiday.")

    row = (
        await db.execute(
            select(SchoolClass, Department.name)
            .join(Department, Department.id == SchoolClass.department_id)
            .where(SchoolClass.id == payload.class_id)
        )
    ).one_or_none()
    if row is None:
        raise NotFoundError("Class not found")
    school_class, department_name = row
    class_id, class_name, department_id = school_class.id, school_class.name, school_class.department_id

    key = submission_key(class_id, on_date)
    if await db.get(AttendanceSubmission, key):
        raise ConflictError("Attendance has already been submitted for this class on this date.")

    students = {s.id: s for s in await list_student_refs(db, class_id=class_id)}
    absent_ids = list(dict.fromkeys(payload.absent_student_ids))
    strangers = [str(sid) for sid in absent_ids if sid not in students]
    if strangers:
        raise ValidationError(f"Students not in this class: {', '.join(strangers)}")

    marked_at = datetime.now()
    time_label = marked_at.strftime("%I:%M:%S %p")
    async with track_mutation("attendance.submit", key, actor=current_user.name):
        records: List[AttendanceRecord] = []
        for sid in absent_ids:
            s = students[sid]
            record = AttendanceRecord(
                student_id=s.id,
                student_name=s.name,
                register_no=s.register_no,
                gender=s.gender,
                department_name=department_name,
                class_id=class_id,
                class_name=class_name,
                date=on_date,
                time=time_label,
                marked_by=current_user.name,
                status=AbsenceStatus.NOT_INFORMED.value,
            )
            db.add(record)
            records.append(record)
        submission = AttendanceSubmission(
            id=key,
            class_id=class_id,
            department_id=department_id,
            date=on_date,
            submitted_by=current_user.id,
            present_count=len(students) - len(absent_ids),
            absent_count=len(absent_ids),
        )
        db.add(submission)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            # Lost the race against another submission for the same class and date
            raise ConflictError("Attendance has already been submitted for this class on this date.") from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError("Failed to save attendance") from e

    logger.info(
        "Attendance for %s on %s: %d present, %d absent (by %s)",
        class_name,
        on_date.isoformat(),
        submission.present_count,
        submission.absent_count,
        current_user.name,
    )
    return SubmissionResponse(
        id=submission.id,
        class_id=class_id,
        department_id=department_id,
        date=on_date,
        submitted_by=current_user.id,
        submitted_at=submission.submitted_at,
        present_count=submission.present_count,
        absent_count=submission.absent_count,
        absentees=[AttendanceRecordResponse.model_validate(r) for r in records],
    )


async def _get_record(db: AsyncSession, record_id: UUID, current_user: CurrentUser) -> AttendanceRecord:
    record = await db.get(AttendanceRecord, record_id)
    if not record:
        raise NotFoundError("Attendance record not found")
    ensure_class_access(current_user, record.class_id)
    return record


async def mark_present(db: AsyncSession, record_id: UUID, current_user: CurrentUser) -> MarkPresentResponse:
    """Delete an absence record and move one count from absent to present on its submission."""
    record = await _get_record(db, record_id, current_user)
    student_id, on_date, class_id = record.student_id, record.date, record.class_id
    key = submission_key(class_id, on_date)
    async with track_mutation("attendance.mark_present", str(record_id), actor=current_user.name):
        try:
            deleted = await db.execute(delete(AttendanceRecord).where(AttendanceRecord.id == record_id))
            if deleted.rowcount == 0:
                raise NotFoundError("Attendance record not found")
            await db.execute(
                update(AttendanceSubmission)
                .where(AttendanceSubmission.id == key, AttendanceSubmission.absent_count > 0)
                .values(
                    present_count=AttendanceSubmission.present_count + 1,
                    absent_count=AttendanceSubmission.absent_count - 1,
                )
            )
            await db.commit()
        except NotFoundError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError("Failed to mark student present") from e

    submission = (
        await db.execute(
            select(AttendanceSubmission)
            .where(AttendanceSubmission.id == key)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    logger.info("Record %s on %s marked present by %s", record_id, on_date.isoformat(), current_user.name)
    return MarkPresentResponse(
        record_id=record_id,
        student_id=student_id,
        date=on_date,
        present_count=submission.present_count if submission else None,
        absent_count=submission.absent_count if submission else None,
    )


async def update_absence_status(
    db: AsyncSession,
    record_id: UUID,
    new_status: AbsenceStatus,
    current_user: CurrentUser,
) -> AttendanceRecordResponse:
    record = await _get_record(db, record_id, current_user)
    async with track_mutation("attendance.update_status", str(record_id), actor=current_user.name):
        record.status = new_status.value
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError("Failed to update absence status") from e
    await db.refresh(record)
    return AttendanceRecordResponse.model_validate(record)


async def list_absentees(
    db: AsyncSession,
    current_user: CurrentUser,
    on_date: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    mentor: Optional[str] = None,
) -> List[AttendanceRecordResponse]:
    """Absence records on working days only, newest first."""
    class_id = scoped_class_id(current_user, class_id)
    stmt = select(AttendanceRecord).join(Student, Student.id == AttendanceRecord.student_id)
    if on_date is not None:
        stmt = stmt.where(AttendanceRecord.date == on_date)
    if start is not None:
        stmt = stmt.where(AttendanceRecord.date >= start)
    if end is not None:
        stmt = stmt.where(AttendanceRecord.date <= end)
    if department_id is not None:
        stmt = stmt.where(Student.department_id == department_id)
    if class_id is not None:
        stmt = stmt.where(AttendanceRecord.class_id == class_id)
    if mentor:
        stmt = stmt.where(Student.mentor == mentor)
    stmt = stmt.order_by(AttendanceRecord.date.desc(), AttendanceRecord.timestamp.desc())
    records = (await db.execute(stmt)).scalars().all()
    if not records:
        return []
    dates = [r.date for r in records]
    working = await working_days_between(db, min(dates), max(dates))
    return [AttendanceRecordResponse.model_validate(r) for r in records if r.date in working]


async def submission_status(
    db: AsyncSession,
    on_date: date,
    department_id: Optional[UUID] = None,
) -> List[DepartmentSubmissionStatus]:
    """Per department, which classes have submitted attendance for the date."""
    stmt = (
        select(SchoolClass, Department.name)
        .join(Department, Department.id == SchoolClass.department_id)
        .order_by(Department.name, SchoolClass.name)
    )
    if department_id is not None:
        stmt = stmt.where(SchoolClass.department_id == department_id)
    classes = (await db.execute(stmt)).all()
    submitted = {
        s.class_id: s
        for s in (
            await db.execute(select(AttendanceSubmission).where(AttendanceSubmission.date == on_date))
        ).scalars().all()
    }

    out: Dict[UUID, DepartmentSubmissionStatus] = {}
    for cls, dept_name in classes:
        dept = out.get(cls.department_id)
        if dept is None:
            dept = DepartmentSubmissionStatus(
                department_id=cls.department_id,
                department_name=dept_name,
                submitted=0,
                pending=0,
                classes=[],
            )
            out[cls.department_id] = dept
        sub = submitted.get(cls.id)
        if sub:
            dept.submitted += 1
            dept.classes.append(
                ClassSubmissionStatus(
                    class_id=cls.id,
                    class_name=cls.name,
                    state=SubmissionState.SUBMITTED,
                    submitted_at=sub.submitted_at,
                    present_count=sub.present_count,
                    absent_count=sub.absent_count,
                )
            )
        else:
            dept.pending += 1
            dept.classes.append(
                ClassSubmissionStatus(class_id=cls.id, class_name=cls.name, state=SubmissionState.PENDING)
            )
    return list(out.values())


def absentee_export_rows(records: List[AttendanceRecordResponse]) -> List[list]:
    return [
        [
            r.date.isoformat(),
            r.time,
            r.register_no,
            r.student_name,
            r.gender,
            r.department_name,
            r.class_name,
            r.status,
            r.marked_by,
        ]
        for r in records
    ]
