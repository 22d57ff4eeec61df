from __future__ import annotations

from fastapi import APIRouter

from conducky_backend.core.config import settings

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok", "app": settings.app_name}
