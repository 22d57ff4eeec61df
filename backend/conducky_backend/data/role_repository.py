from __future__ import annotations

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from conducky_backend.data.models import UserRole

SYSTEM_SCOPE_ID = "SYSTEM"


class RoleRepository:
    def list_for_user(
        self,
        db: Session,
        user_id: str,
        scope_type: Optional[str] = None,
        scope_id: Optional[str] = None,
    ) -> List[UserRole]:
        stmt = select(UserRole).where(UserRole.user_id == user_id)
        if scope_type is not None:
            stmt = stmt.where(UserRole.scope_type == scope_type)
        if scope_id is not None:
            stmt = stmt.where(UserRole.scope_id == scope_id)
        return list(db.execute(stmt).scalars().all())

    def find(self, db: Session, user_id: str, role_name: str, scope_type: str, scope_id: str) -> Optional[UserRole]:
        stmt = select(UserRole).where(
            UserRole.user_id == user_id,
            UserRole.role_name == role_name,
            UserRole.scope_type == scope_type,
            UserRole.scope_id == scope_id,
        )
        return db.execute(stmt).scalar_one_or_none()

    def add(self, db: Session, role: UserRole) -> UserRole:
        db.add(role)
        db.commit()
        db.refresh(role)
        return role

    def delete(self, db: Session, user_id: str, role_name: str, scope_type: str, scope_id: str) -> int:
        result = db.execute(
            delete(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.role_name == role_name,
                UserRole.scope_type == scope_type,
                UserRole.scope_id == scope_id,
            )
        )
        db.commit()
        return result.rowcount or 0
