from typing import Dict, Optional, Set
from uuid import UUID

from fastapi import Depends, HTTPException, status

from rollcall.auth.dependencies import get_current_user
from rollcall.auth.schemas import CurrentUser
from rollcall.core.enums import StaffRole
from rollcall.core.exceptions import PermissionDeniedError

CRUD = {"create", "read", "update", "delete"}

# role -> module -> allowed actions
ROLE_PERMISSIONS: Dict[StaffRole, Dict[str, Set[str]]] = {
    StaffRole.ADMIN: {
        "attendance": CRUD,
        "analytics": {"read"},
        "fees": CRUD,
        "staff": CRUD,
        "working_days": CRUD,
        "roster": CRUD,
    },
    StaffRole.TEACHER: {
        "attendance": {"create", "read", "update"},
        "analytics": {"read"},
        "fees": {"create", "read", "update"},
        "working_days": {"read"},
        "roster": {"read"},
    },
    StaffRole.VIEWER: {
        "attendance": {"read"},
        "analytics": {"read"},
        "working_days": {"read"},
        "roster": {"read"},
    },
    StaffRole.DEAN: {
        "attendance": {"read"},
        "analytics": {"read"},
        "working_days": {"read"},
        "roster": {"read"},
    },
}


def has_permission(role: StaffRole, module: str, action: str) -> bool:
    return action in ROLE_PERMISSIONS.get(role, {}).get(module, set())


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("fees", "create"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if not has_permission(current_user.role, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker


def is_class_scoped(current_user: CurrentUser) -> bool:
    return current_user.role == StaffRole.TEACHER


def scoped_class_id(current_user: CurrentUser, requested: Optional[UUID] = None) -> Optional[UUID]:
    """Teachers always see their own class; everyone else gets what they asked for."""
    if is_class_scoped(current_user):
        if current_user.class_id is None:
            raise PermissionDeniedError("Teacher account has no class assigned")
        if requested is not None and requested != current_user.class_id:
            raise PermissionDeniedError("Teachers can only access their own class")
        return current_user.class_id
    return requested


def ensure_class_access(current_user: CurrentUser, class_id: UUID) -> None:
    if is_class_scoped(current_user) and class_id != current_user.class_id:
        raise PermissionDeniedError("Teachers can only access their own class")
