"""
Caller identity, extracted from the headers set by the API gateway.

The identity is passed explicitly into every service call; there is no
process-wide "current user".
"""
from dataclasses import dataclass
from typing import Optional
from fastapi import Header, HTTPException

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def get_identity(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[Identity]:
    """Identity of the caller, or None for a guest"""
    if not x_user_id:
        return None
    return Identity(user_id=x_user_id, email=x_user_email, role=x_user_role)


def require_identity(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Identity:
    """Require an authenticated user"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return Identity(user_id=x_user_id, email=x_user_email, role=x_user_role)


def require_admin(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Identity:
    """Require an authenticated association administrator"""
    identity = require_identity(x_user_id, x_user_email, x_user_role)
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Administrator role required")
    return identity
