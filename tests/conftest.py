import os
import tempfile
from types import SimpleNamespace
from typing import AsyncGenerator, Dict
from uuid import uuid4

# Settings are read at import time; point them at a throwaway database before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "rollcall-import.db")
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rollcall.main import app
from rollcall.auth.models import Staff
from rollcall.auth.schemas import CurrentUser
from rollcall.auth.security import hash_password
from rollcall.core.enums import StaffRole
from rollcall.core.models import Department, SchoolClass, Student, WorkingDay
from rollcall.db.session import Base, get_db

PASSWORD = "Secret123"


@pytest.fixture()
async def engine(tmp_path):
    """Fresh SQLite file per test so separate sessions see each other's commits."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; one DB session per request, like production."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def roster(db_session: AsyncSession) -> SimpleNamespace:
    """
    CSE: II-A (Arun M, Bala M, Chitra F), III-A (Deepa F, Ezhil M)
    MBA: I (Farah F, Gokul M)
    """
    cse = Department(code="CSE", name="Computer Science and Engineering")
    mba = Department(code="MBA", name="Master of Business Administration")
    db_session.add_all([cse, mba])
    await db_session.flush()
    cse2 = SchoolClass(department_id=cse.id, name="II-A")
    cse3 = SchoolClass(department_id=cse.id, name="III-A")
    mba1 = SchoolClass(department_id=mba.id, name="I")
    db_session.add_all([cse2, cse3, mba1])
    await db_session.flush()

    def student(name, reg, cls, dept, gender, mentor="Dr. Kumar"):
        s = Student(
            name=name,
            register_no=reg,
            class_id=cls.id,
            department_id=dept.id,
            gender=gender,
            mentor=mentor,
        )
        db_session.add(s)
        return s

    students = {
        "arun": student("Arun", "CSE2A01", cse2, cse, "MALE"),
        "bala": student("Bala", "CSE2A02", cse2, cse, "MALE"),
        "chitra": student("Chitra", "CSE2A03", cse2, cse, "FEMALE", mentor="Dr. Priya"),
        "deepa": student("Deepa", "CSE3A01", cse3, cse, "FEMALE"),
        "ezhil": student("Ezhil", "CSE3A02", cse3, cse, "MALE"),
        "farah": student("Farah", "MBA101", mba1, mba, "FEMALE"),
        "gokul": student("Gokul", "MBA102", mba1, mba, "MALE"),
    }
    await db_session.commit()
    return SimpleNamespace(
        cse=cse.id,
        mba=mba.id,
        cse2=cse2.id,
        cse3=cse3.id,
        mba1=mba1.id,
        **{k: v.id for k, v in students.items()},
    )


async def open_days(db: AsyncSession, *days) -> None:
    for d in days:
        db.add(WorkingDay(date=d, is_working_day=True, updated_by="test"))
    await db.commit()


def make_user(role: StaffRole, class_id=None, name: str = "Tester") -> CurrentUser:
    return CurrentUser(
        id=uuid4(),
        name=name,
        email=f"{role.value}@college.edu",
        role=role,
        class_id=class_id,
        session_id=uuid4(),
    )


@pytest.fixture()
def admin_user() -> CurrentUser:
    return make_user(StaffRole.ADMIN, name="Admin")


@pytest.fixture()
def teacher_user(roster) -> CurrentUser:
    return make_user(StaffRole.TEACHER, class_id=roster.cse2, name="Teacher")


@pytest.fixture()
async def staff(db_session: AsyncSession, roster) -> Dict[str, Staff]:
    """One account per role; the teacher owns CSE II-A."""
    hashed = hash_password(PASSWORD)
    accounts = {
        "admin": Staff(name="Admin", email="admin@college.edu", password_hash=hashed, role="admin"),
        "teacher": Staff(
            name="Teacher", email="teacher@college.edu", password_hash=hashed, role="teacher", class_id=roster.cse2
        ),
        "viewer": Staff(name="Viewer", email="viewer@college.edu", password_hash=hashed, role="viewer"),
        "dean": Staff(name="Dean", email="dean@college.edu", password_hash=hashed, role="dean"),
    }
    db_session.add_all(accounts.values())
    await db_session.commit()
    return accounts


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> Dict[str, str]:
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
async def headers(client: AsyncClient, staff) -> Dict[str, Dict[str, str]]:
    return {role: await login(client, account.email) for role, account in staff.items()}
