"""
Request-scoped dependencies shared by the routers.

Authentication itself lives upstream; the gateway forwards the authenticated
user's id in the X-User-Id header.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.models import Consultant, User
from app.services.storage import FileStorage, get_storage
from database import get_db


def current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: User = Depends(current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def current_consultant(user: User = Depends(current_user), db: Session = Depends(get_db)) -> Consultant:
    consultant = (
        db.query(Consultant).filter(Consultant.user_id == user.id, Consultant.deleted_at.is_(None)).first()
    )
    if consultant is None:
        raise HTTPException(status_code=403, detail="Consultant profile required")
    return consultant


def ensure_can_manage(consultant_id: int, user: User, db: Session) -> None:
    """Admins manage any consultant; a consultant only their own profile."""
    if user.is_admin:
        return
    own = db.query(Consultant.id).filter(Consultant.user_id == user.id).scalar()
    if own != consultant_id:
        raise HTTPException(status_code=403, detail="You can only manage your own schedule")


__all__ = [
    "Clock",
    "FileStorage",
    "current_consultant",
    "current_user",
    "ensure_can_manage",
    "get_clock",
    "get_db",
    "get_storage",
    "require_admin",
]
