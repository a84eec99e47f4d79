"""Append-only audit trail for sign-off activity."""

from datetime import datetime, timezone
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import func
from . import models

# purpose: record who changed which review, confirmation or plan and summarise the trail
# status: active


def log_action(
    db: Session,
    user_id: str | UUID,
    action: str,
    target_type: str | None = None,
    target_id: str | UUID | None = None,
    details: dict | None = None,
    *,
    commit: bool = True,
) -> models.AuditLog:
    """Add an audit entry.

    Services pass ``commit=False``; the route commits the entry together with
    the change it describes.
    """

    log = models.AuditLog(
        user_id=UUID(str(user_id)),
        action=action,
        target_type=target_type,
        target_id=UUID(str(target_id)) if target_id else None,
        details=details or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(log)
    if commit:
        db.commit()
        db.refresh(log)
    return log


def target_history(db: Session, target_type: str, target_id: UUID) -> list[models.AuditLog]:
    """Chronological trail for one review, confirmation row or plan."""

    return (
        db.query(models.AuditLog)
        .filter(
            models.AuditLog.target_type == target_type,
            models.AuditLog.target_id == target_id,
        )
        .order_by(models.AuditLog.created_at)
        .all()
    )


def generate_report(
    db: Session,
    start: datetime,
    end: datetime,
    user_id: UUID | None = None,
    target_type: str | None = None,
) -> list[dict]:
    query = db.query(models.AuditLog).filter(
        models.AuditLog.created_at >= start,
        models.AuditLog.created_at <= end,
    )
    if user_id:
        query = query.filter(models.AuditLog.user_id == user_id)
    if target_type:
        query = query.filter(models.AuditLog.target_type == target_type)
    rows = (
        query.with_entities(models.AuditLog.action, func.count(models.AuditLog.id))
        .group_by(models.AuditLog.action)
        .order_by(models.AuditLog.action)
        .all()
    )
    return [{"action": action, "count": count} for action, count in rows]
