"""Analytics service: strength summary, day-wise series, periodical report and yearly student grid.

Only absence records on effective working days count; everything else is derived from the roster.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.api.v1.roster.service import get_student_ref, list_student_refs
from rollcall.api.v1.working_days.service import working_days_between
from rollcall.auth.rbac import ensure_class_access, scoped_class_id
from rollcall.auth.schemas import CurrentUser
from rollcall.core.config import settings
from rollcall.core.exceptions import ValidationError
from rollcall.core.models import AttendanceRecord, Department

from . import calculations as calc
from .schemas import (
    DayCell,
    DayWisePoint,
    MonthlyAttendance,
    PeriodicalReportResponse,
    PeriodicalReportRow,
    StrengthRow,
    StrengthSummaryResponse,
    StudentYearlyReport,
)

PERIODICAL_EXPORT_HEADERS = [
    "Register No",
    "Student",
    "Total Working Days",
    "Present",
    "Absent",
    "Percentage",
]


def _row(s: calc.Strength) -> StrengthRow:
    return StrengthRow(
        id=str(s.key),
        name=s.name,
        total_boys=s.total_boys,
        total_girls=s.total_girls,
        present_boys=s.present_boys,
        present_girls=s.present_girls,
        present_total=s.present_total,
        absent_total=s.absent_total,
        total_strength=s.total_strength,
        percentage=s.percentage,
    )


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("end date must not be before start date")


async def _pg_department_ids(db: AsyncSession) -> Set[UUID]:
    codes = [c.upper() for c in settings.pg_department_codes]
    if not codes:
        return set()
    result = await db.execute(select(Department.id).where(Department.code.in_(codes)))
    return set(result.scalars().all())


async def _absences(
    db: AsyncSession,
    start: date,
    end: date,
    working: Set[date],
    student_ids: Optional[Set[UUID]] = None,
) -> List[tuple]:
    """(student_id, date) pairs of absences on working days in range."""
    if not working:
        return []
    result = await db.execute(
        select(AttendanceRecord.student_id, AttendanceRecord.date).where(
            AttendanceRecord.date >= start,
            AttendanceRecord.date <= end,
        )
    )
    return [
        (sid, d)
        for sid, d in result.all()
        if d in working and (student_ids is None or sid in student_ids)
    ]


async def strength_summary(
    db: AsyncSession,
    on_date: date,
    current_user: CurrentUser,
) -> StrengthSummaryResponse:
    class_id = scoped_class_id(current_user)
    students = await list_student_refs(db, class_id=class_id)
    working = await working_days_between(db, on_date, on_date)
    absent_ids = {sid for sid, _ in await _absences(db, on_date, on_date, working)}
    pg_ids = await _pg_department_ids(db)

    overall = calc.group_strength(students, absent_ids, lambda s: ("all", "All Departments"))
    departments = calc.group_strength(
        students, absent_ids, lambda s: (s.department_id, s.department_name)
    )
    classes = calc.group_strength(
        students, absent_ids, lambda s: (s.class_id, f"{s.class_name} ({s.department_name})")
    )

    def _batch(s):
        name = calc.batch_of(s.class_name, s.department_id in pg_ids)
        return (name, name) if name else None

    batches = calc.group_strength(students, absent_ids, _batch)

    return StrengthSummaryResponse(
        date=on_date,
        is_working_day=on_date in working,
        overall=_row(overall.get("all") or calc.Strength(key="all", name="All Departments")),
        departments=[_row(d) for d in sorted(departments.values(), key=lambda d: d.name)],
        classes=[_row(c) for c in sorted(classes.values(), key=lambda c: c.name)],
        # Batches without students never appear since groups are built from students
        batches=[_row(batches[b]) for b in calc.BATCH_ORDER if b in batches],
    )


async def day_wise(
    db: AsyncSession,
    start: date,
    end: date,
    current_user: CurrentUser,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
) -> List[DayWisePoint]:
    _check_range(start, end)
    class_id = scoped_class_id(current_user, class_id)
    students = await list_student_refs(db, department_id=department_id, class_id=class_id)
    ids = {s.id for s in students}
    working = await working_days_between(db, start, end)
    per_day: Dict[date, int] = defaultdict(int)
    for _, d in await _absences(db, start, end, working, ids):
        per_day[d] += 1
    return [
        DayWisePoint(date=p.date, present=p.present, absent=p.absent, holiday=p.holiday)
        for p in calc.day_wise_series(start, end, working, len(students), per_day)
    ]


async def periodical_report(
    db: AsyncSession,
    start: date,
    end: date,
    current_user: CurrentUser,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    mentor: Optional[str] = None,
) -> PeriodicalReportResponse:
    """Per-student attendance over a date range, sorted by register number."""
    _check_range(start, end)
    class_id = scoped_class_id(current_user, class_id)
    students = await list_student_refs(
        db, department_id=department_id, class_id=class_id, mentor=mentor
    )
    working = await working_days_between(db, start, end)
    absent_days: Dict[UUID, Set[date]] = defaultdict(set)
    for sid, d in await _absences(db, start, end, working, {s.id for s in students}):
        absent_days[sid].add(d)
    rows = calc.periodical_rows(students, working, absent_days)
    return PeriodicalReportResponse(
        start=start,
        end=end,
        total_working_days=len(working),
        rows=[
            PeriodicalReportRow(
                student_id=r.student_id,
                register_no=r.register_no,
                name=r.name,
                total_working_days=r.total_working_days,
                present=r.present,
                absent=r.absent,
                percentage=r.percentage,
            )
            for r in rows
        ],
    )


async def student_yearly_report(
    db: AsyncSession,
    student_id: UUID,
    year: int,
    current_user: CurrentUser,
    today: Optional[date] = None,
) -> StudentYearlyReport:
    today = today or date.today()
    student = await get_student_ref(db, student_id)
    ensure_class_access(current_user, student.class_id)
    start, end = date(year, 1, 1), date(year, 12, 31)
    working = await working_days_between(db, start, end)
    absent = {d for _, d in await _absences(db, start, end, working, {student.id})}
    days, months, overall = calc.yearly_grid(year, today, working, absent)
    return StudentYearlyReport(
        student_id=student.id,
        student_name=student.name,
        register_no=student.register_no,
        class_name=student.class_name,
        department_name=student.department_name,
        year=year,
        days=[DayCell(date=d, status=s) for d, s in days],
        months=[
            MonthlyAttendance(
                month=m.month,
                name=m.name,
                present=m.present,
                working_days=m.working_days,
                percentage=m.percentage,
            )
            for m in months
        ],
        overall_percentage=overall,
    )


def periodical_export_rows(report: PeriodicalReportResponse) -> List[list]:
    return [
        [r.register_no, r.name, r.total_working_days, r.present, r.absent, f"{r.percentage:.1f}%"]
        for r in report.rows
    ]
