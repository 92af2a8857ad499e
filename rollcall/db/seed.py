"""
Seed script: creates tables, a small roster, the current month's working days and the first admin.

Run once with env set:
  SEED_ADMIN_EMAIL=admin@yourcollege.edu
  SEED_ADMIN_PASSWORD=YourSecurePassword

  python -m rollcall.db.seed

Existing rows are left alone, so it is safe to run again.
"""
import asyncio
from datetime import date, timedelta
from typing import Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.api.v1.working_days.service import is_sunday
from rollcall.auth.models import Staff
from rollcall.auth.security import hash_password
from rollcall.core.config import settings
from rollcall.core.enums import AdmissionType, Gender, StaffRole
from rollcall.core.models import Department, SchoolClass, Student, WorkingDay
from rollcall.db.session import AsyncSessionLocal, init_models

# code -> (name, class names)
DEPARTMENTS: Dict[str, tuple] = {
    "CSE": ("Computer Science and Engineering", ["I-A", "II-A", "III-A", "IV-A"]),
    "ECE": ("Electronics and Communication Engineering", ["I-A", "II-A", "III-A", "IV-A"]),
    "MBA": ("Master of Business Administration", ["I", "II"]),
}
STUDENTS_PER_CLASS = 4


async def seed_roster(db: AsyncSession) -> int:
    """Departments, classes and a handful of students per class. Returns students created."""
    created = 0
    for code, (name, class_names) in DEPARTMENTS.items():
        dept = (await db.execute(select(Department).where(Department.code == code))).scalar_one_or_none()
        if not dept:
            dept = Department(code=code, name=name)
            db.add(dept)
            await db.flush()
        for class_name in class_names:
            cls = (
                await db.execute(
                    select(SchoolClass).where(
                        SchoolClass.department_id == dept.id, SchoolClass.name == class_name
                    )
                )
            ).scalar_one_or_none()
            if not cls:
                cls = SchoolClass(department_id=dept.id, name=class_name)
                db.add(cls)
                await db.flush()
            existing = (
                await db.execute(select(func.count(Student.id)).where(Student.class_id == cls.id))
            ).scalar() or 0
            for i in range(existing, STUDENTS_PER_CLASS):
                register_no = f"{code}{class_name.replace('-', '')}{i + 1:03d}"
                db.add(
                    Student(
                        name=f"Student {register_no}",
                        department_id=dept.id,
                        class_id=cls.id,
                        register_no=register_no,
                        gender=(Gender.MALE if i % 2 == 0 else Gender.FEMALE).value,
                        mentor=f"Mentor {code}",
                        admission_type=(AdmissionType.CENTAC if i % 3 else AdmissionType.MANAGEMENT).value,
                    )
                )
                created += 1
    await db.commit()
    return created


async def seed_working_days(db: AsyncSession, month_of: Optional[date] = None) -> int:
    """Open every Monday-Saturday of the month that has no row yet."""
    first = (month_of or date.today()).replace(day=1)
    d = first
    opened = 0
    while d.month == first.month:
        if not is_sunday(d) and not await db.get(WorkingDay, d):
            db.add(WorkingDay(date=d, is_working_day=True, updated_by="seed"))
            opened += 1
        d += timedelta(days=1)
    await db.commit()
    return opened


async def seed_admin(db: AsyncSession, email: Optional[str], password: Optional[str]) -> bool:
    if not email or not password:
        return False
    email = email.strip().lower()
    existing = (await db.execute(select(Staff).where(func.lower(Staff.email) == email))).scalar_one_or_none()
    if existing:
        return False
    db.add(
        Staff(
            name="Administrator",
            email=email,
            password_hash=hash_password(password),
            role=StaffRole.ADMIN.value,
        )
    )
    await db.commit()
    return True


async def main() -> None:
    await init_models()
    async with AsyncSessionLocal() as db:
        students = await seed_roster(db)
        print(f"Roster ready ({students} new students).")
        days = await seed_working_days(db)
        print(f"Opened {days} working days this month.")
        if await seed_admin(db, settings.seed_admin_email, settings.seed_admin_password):
            print(f"Created admin {settings.seed_admin_email}.")
        else:
            print("Admin not created (already exists or SEED_ADMIN_EMAIL/SEED_ADMIN_PASSWORD not set).")


if __name__ == "__main__":
    asyncio.run(main())
