from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from tradehub.app.db.models.core_types import Role
from tradehub.app.db.models.models_v1 import User
from tradehub.app.db.session import SessionLocal


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_optional_user(
    x_user_id: int | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User | None:
    if x_user_id is None:
        return None
    user = db.get(User, x_user_id)
    if not user or not user.active:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return user


def require_seller(user: User = Depends(get_current_user)) -> User:
    if user.role not in (Role.seller, Role.admin):
        raise HTTPException(status_code=403, detail="Seller account required")
    return user


def require_buyer(user: User = Depends(get_current_user)) -> User:
    if user.role not in (Role.buyer, Role.admin):
        raise HTTPException(status_code=403, detail="Buyer account required")
    return user
