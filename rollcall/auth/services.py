import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.models import Staff, StaffSession
from rollcall.auth.schemas import CurrentUser, LoginRequest, LoginResponse, StaffInfo
from rollcall.auth.security import create_access_token, token_expiry, verify_password
from rollcall.core.exceptions import PersistenceError, ServiceError

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password."


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # 1. Find staff by email (case-insensitive)
    stmt = select(Staff).where(func.lower(Staff.email) == func.lower(payload.email))
    staff: Optional[Staff] = (await db.execute(stmt)).scalar_one_or_none()
    if not staff or not verify_password(payload.password, staff.password_hash):
        logger.info("Failed login for %s", payload.email)
        raise ServiceError(INVALID_CREDENTIALS, status.HTTP_401_UNAUTHORIZED)

    # 2. Open a server-side session; the token is only valid while this row exists
    issued_at, expires_at = token_expiry()
    session_row = StaffSession(staff_id=staff.id, issued_at=issued_at, expires_at=expires_at)
    try:
        # Drop this staff member's lapsed sessions
        await db.execute(
            delete(StaffSession).where(
                StaffSession.staff_id == staff.id,
                StaffSession.expires_at <= issued_at,
            ).execution_options(synchronize_session=False)
        )
        db.add(session_row)
        await db.flush()
        access_token = create_access_token(
            subject={
                "sub": str(staff.id),
                "sid": str(session_row.id),
                "role": staff.role,
                "iat": int(issued_at.timestamp()),
            },
            expires_at=expires_at,
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError("Failed to persist authentication state") from e

    logger.info("Staff %s logged in as %s", staff.email, staff.role)
    return LoginResponse(
        access_token=access_token,
        staff=StaffInfo.model_validate(staff),
        issued_at=issued_at,
        expires_at=expires_at,
    )


async def logout(db: AsyncSession, current_user: CurrentUser) -> None:
    """Delete the session row so the bearer token stops resolving."""
    try:
        await db.execute(delete(StaffSession).where(StaffSession.id == current_user.session_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError("Failed to end session") from e
    logger.info("Staff %s logged out", current_user.email)


async def load_session(db: AsyncSession, session_id: UUID, staff_id: UUID) -> Optional[Staff]:
    """Return the staff behind a live session, or None when it was revoked or has expired."""
    row = await db.get(StaffSession, session_id)
    if row is None or row.staff_id != staff_id:
        return None
    expires_at = row.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        return None
    return await db.get(Staff, staff_id)
