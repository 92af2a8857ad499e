from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import bcrypt
from jose import jwt

from rollcall.core.config import settings


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored hash is invalid/corrupted
        return False


def token_expiry(expires_minutes: Optional[int] = None) -> Tuple[datetime, datetime]:
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    issued_at = datetime.now(timezone.utc)
    return issued_at, issued_at + timedelta(minutes=expires_minutes)


def create_access_token(*, subject: Dict, expires_at: datetime) -> str:
    to_encode = subject.copy()
    to_encode.update({"exp": expires_at})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict:
    """Raises jose.JWTError on a bad signature or expired token."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
