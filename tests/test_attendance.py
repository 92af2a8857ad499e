from datetime import date

import pytest
from httpx import AsyncClient

from rollcall.api.v1.attendance import service
from rollcall.api.v1.attendance.schemas import AttendanceSubmitRequest
from rollcall.api.v1.working_days.service import set_working_day
from rollcall.core.enums import AbsenceStatus, StaffRole, SubmissionState
from rollcall.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from rollcall.core.models import AttendanceSubmission

from conftest import make_user, open_days

MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)
WEDNESDAY = date(2024, 3, 6)
SUNDAY = date(2024, 3, 10)
TODAY = date(2024, 3, 11)


def submit(class_id, on_date, *absent) -> AttendanceSubmitRequest:
    return AttendanceSubmitRequest(class_id=class_id, date=on_date, absent_student_ids=list(absent))


async def test_submit_records_only_absentees(db_session, roster, teacher_user) -> None:
    await open_days(db_session, MONDAY)

    result = await service.submit_class_attendance(
        db_session, submit(roster.cse2, MONDAY, roster.bala), teacher_user, today=TODAY
    )

    assert result.id == f"{roster.cse2}_2024-03-04"
    assert (result.present_count, result.absent_count) == (2, 1)
    assert [a.student_name for a in result.absentees] == ["Bala"]
    absentee = result.absentees[0]
    assert absentee.status == AbsenceStatus.NOT_INFORMED
    assert absentee.department_name == "Computer Science and Engineering"
    assert absentee.marked_by == "Teacher"


async def test_duplicate_absent_ids_count_once(db_session, roster, admin_user) -> None:
    await open_days(db_session, MONDAY)

    result = await service.submit_class_attendance(
        db_session, submit(roster.cse2, MONDAY, roster.arun, roster.arun), admin_user, today=TODAY
    )

    assert result.absent_count == 1
    assert result.present_count == 2


async def test_second_submission_conflicts(db_session, roster, admin_user) -> None:
    await open_days(db_session, MONDAY)
    await service.submit_class_attendance(db_session, submit(roster.cse2, MONDAY), admin_user, today=TODAY)

    with pytest.raises(ConflictError):
        await service.submit_class_attendance(
            db_session, submit(roster.cse2, MONDAY, roster.arun), admin_user, today=TODAY
        )


@pytest.mark.parametrize(
    "on_date, message",
    [
        (date(2024, 3, 12), "future date"),
        (SUNDAY, "holiday"),
        (TUESDAY, "holiday"),  # never opened
    ],
)
async def test_submit_rejected_dates(db_session, roster, admin_user, on_date, message) -> None:
    await open_days(db_session, MONDAY)

    with pytest.raises(ValidationError, match=message):
        await service.submit_class_attendance(db_session, submit(roster.cse2, on_date), admin_user, today=TODAY)


async def test_student_from_another_class_rejected(db_session, roster, admin_user) -> None:
    await open_days(db_session, MONDAY)

    with pytest.raises(ValidationError, match="not in this class"):
        await service.submit_class_attendance(
            db_session, submit(roster.cse2, MONDAY, roster.deepa), admin_user, today=TODAY
        )
    assert await db_session.get(AttendanceSubmission, f"{roster.cse2}_2024-03-04") is None


async def test_teacher_cannot_submit_other_class(db_session, roster, teacher_user) -> None:
    await open_days(db_session, MONDAY)

    with pytest.raises(PermissionDeniedError):
        await service.submit_class_attendance(db_session, submit(roster.cse3, MONDAY), teacher_user, today=TODAY)


async def test_mark_present_moves_count(db_session, roster, admin_user) -> None:
    await open_days(db_session, MONDAY)
    result = await service.submit_class_attendance(
        db_session, submit(roster.cse2, MONDAY, roster.arun, roster.bala), admin_user, today=TODAY
    )
    record_id = result.absentees[0].id

    corrected = await service.mark_present(db_session, record_id, admin_user)

    assert (corrected.present_count, corrected.absent_count) == (2, 1)
    remaining = await service.list_absentees(db_session, admin_user, on_date=MONDAY)
    assert len(remaining) == 1
    with pytest.raises(NotFoundError):
        await service.mark_present(db_session, record_id, admin_user)


async def test_update_absence_status(db_session, roster, admin_user) -> None:
    await open_days(db_session, MONDAY)
    result = await service.submit_class_attendance(
        db_session, submit(roster.cse2, MONDAY, roster.chitra), admin_user, today=TODAY
    )

    updated = await service.update_absence_status(
        db_session, result.absentees[0].id, AbsenceStatus.LETTER_GIVEN, admin_user
    )

    assert updated.status == AbsenceStatus.LETTER_GIVEN


async def test_absentees_hidden_once_day_closed(db_session, roster, admin_user) -> None:
    await open_days(db_session, MONDAY, TUESDAY)
    for d in (MONDAY, TUESDAY):
        await service.submit_class_attendance(
            db_session, submit(roster.cse2, d, roster.arun), admin_user, today=TODAY
        )

    listed = await service.list_absentees(db_session, admin_user, start=MONDAY, end=WEDNESDAY)
    assert [r.date for r in listed] == [TUESDAY, MONDAY]

    await set_working_day(db_session, TUESDAY, False, "Admin")
    listed = await service.list_absentees(db_session, admin_user, start=MONDAY, end=WEDNESDAY)
    assert [r.date for r in listed] == [MONDAY]


async def test_absentee_filters_and_teacher_scope(db_session, roster, admin_user, teacher_user) -> None:
    await open_days(db_session, MONDAY)
    await service.submit_class_attendance(
        db_session, submit(roster.cse2, MONDAY, roster.arun, roster.chitra), admin_user, today=TODAY
    )
    await service.submit_class_attendance(
        db_session, submit(roster.mba1, MONDAY, roster.farah), admin_user, today=TODAY
    )

    by_mentor = await service.list_absentees(db_session, admin_user, mentor="Dr. Priya")
    assert [r.student_name for r in by_mentor] == ["Chitra"]

    by_dept = await service.list_absentees(db_session, admin_user, department_id=roster.mba)
    assert [r.student_name for r in by_dept] == ["Farah"]

    mine = await service.list_absentees(db_session, teacher_user)
    assert sorted(r.student_name for r in mine) == ["Arun", "Chitra"]

    dean = make_user(StaffRole.DEAN)
    assert len(await service.list_absentees(db_session, dean)) == 3


async def test_submission_status(db_session, roster, admin_user) -> None:
    await open_days(db_session, MONDAY)
    await service.submit_class_attendance(
        db_session, submit(roster.cse2, MONDAY, roster.arun), admin_user, today=TODAY
    )

    status = await service.submission_status(db_session, MONDAY)

    cse = next(d for d in status if d.department_id == roster.cse)
    assert (cse.submitted, cse.pending) == (1, 1)
    states = {c.class_name: c.state for c in cse.classes}
    assert states == {"II-A": SubmissionState.SUBMITTED, "III-A": SubmissionState.PENDING}
    mba = next(d for d in status if d.department_id == roster.mba)
    assert (mba.submitted, mba.pending) == (0, 1)


async def test_attendance_api(client: AsyncClient, db_session, roster, headers) -> None:
    await open_days(db_session, MONDAY)
    teacher = headers["teacher"]

    created = await client.post(
        "/api/v1/attendance/submissions",
        json={"class_id": str(roster.cse2), "date": "2024-03-04", "absent_student_ids": [str(roster.arun)]},
        headers=teacher,
    )
    assert created.status_code == 201, created.text
    record_id = created.json()["absentees"][0]["id"]

    again = await client.post(
        "/api/v1/attendance/submissions",
        json={"class_id": str(roster.cse2), "date": "2024-03-04"},
        headers=teacher,
    )
    assert again.status_code == 409

    viewer_submit = await client.post(
        "/api/v1/attendance/submissions",
        json={"class_id": str(roster.cse3), "date": "2024-03-04"},
        headers=headers["viewer"],
    )
    assert viewer_submit.status_code == 403

    status = await client.get(
        "/api/v1/attendance/submissions/status", params={"date": "2024-03-04"}, headers=headers["dean"]
    )
    assert status.status_code == 200

    listed = await client.get("/api/v1/attendance/absentees", params={"date": "2024-03-04"}, headers=teacher)
    assert [r["register_no"] for r in listed.json()] == ["CSE2A01"]

    exported = await client.get(
        "/api/v1/attendance/absentees/export", params={"format": "csv", "date": "2024-03-04"}, headers=teacher
    )
    assert exported.status_code == 200
    assert "CSE2A01" in exported.text

    patched = await client.patch(
        f"/api/v1/attendance/records/{record_id}", json={"status": "Informed"}, headers=teacher
    )
    assert patched.json()["status"] == "Informed"

    removed = await client.delete(f"/api/v1/attendance/records/{record_id}", headers=teacher)
    assert removed.status_code == 200
    assert removed.json()["absent_count"] == 0
