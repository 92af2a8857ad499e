from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.auth.schemas import CurrentUser
from rollcall.auth.security import decode_access_token
from rollcall.auth.services import load_session
from rollcall.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated staff member and their live session from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    staff_id_str = payload.get("sub")
    session_id_str = payload.get("sid")
    if not staff_id_str or not session_id_str:
        raise credentials_exception

    try:
        staff_id = UUID(staff_id_str)
        session_id = UUID(session_id_str)
    except ValueError:
        raise credentials_exception

    staff = await load_session(db, session_id, staff_id)
    if staff is None:
        raise credentials_exception

    return CurrentUser(
        id=staff.id,
        name=staff.name,
        email=staff.email,
        role=staff.role,
        class_id=staff.class_id,
        session_id=session_id,
    )
