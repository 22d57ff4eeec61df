from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from conducky_backend.data.models import AuditLog

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    *,
    event_id: Optional[str],
    user_id: Optional[str],
    action: str,
    target_type: str,
    target_id: str,
    details: Optional[str] = None,
    commit: bool = True,
) -> AuditLog:
    """Records an audit entry; with commit=False it joins the caller's transaction."""
    entry = AuditLog(
        event_id=event_id,
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details,
    )
    db.add(entry)
    if commit:
        db.commit()
    logger.info("audit action=%s target=%s:%s user=%s", action, target_type, target_id, user_id)
    return entry


def list_for_event(db: Session, event_id: str, limit: int = 50, offset: int = 0) -> List[AuditLog]:
    stmt = (
        select(AuditLog)
        .where(AuditLog.event_id == event_id)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(db.execute(stmt).scalars().all())


def list_for_target(db: Session, target_type: str, target_id: str, actions: Sequence[str]) -> List[AuditLog]:
    stmt = (
        select(AuditLog)
        .options(selectinload(AuditLog.user))
        .where(
            AuditLog.target_type == target_type,
            AuditLog.target_id == target_id,
            AuditLog.action.in_(list(actions)),
        )
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    )
    return list(db.execute(stmt).scalars().all())
