from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from conducky_backend.api.auth import get_current_user
from conducky_backend.data.db import get_db
from conducky_backend.data.models_user import User
from conducky_backend.services.rbac_service import RBACService

router = APIRouter(tags=["auth"])


@router.get("/auth/me")
def read_current_user(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db),
) -> dict:
    return {
        "id": current_user.id,
        "username": current_user.username,
        "name": current_user.name,
        "roles": RBACService().get_all_user_roles(db, current_user.id),
    }
