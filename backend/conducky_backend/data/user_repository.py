from __future__ import annotations

from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from conducky_backend.data.models_user import User


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def create_user(db: Session, username: str, password: str, name: Optional[str] = None) -> User:
    hashed = hash_password(password)
    db_user = User(username=username, hashed_password=hashed, name=name)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user
