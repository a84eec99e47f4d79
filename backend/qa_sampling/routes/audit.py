from typing import Literal
from uuid import UUID
from datetime import datetime
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends
from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas, audit, rbac

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("/", response_model=list[schemas.AuditLogOut])
async def list_logs(
    user_id: UUID | None = None,
    target_type: str | None = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = db.query(models.AuditLog)
    # admins may inspect anyone's trail; everyone else sees their own
    if user_id and rbac.is_admin(current_user):
        query = query.filter(models.AuditLog.user_id == user_id)
    elif not rbac.is_admin(current_user):
        query = query.filter(models.AuditLog.user_id == current_user.id)
    if target_type:
        query = query.filter(models.AuditLog.target_type == target_type)
    return query.order_by(models.AuditLog.created_at.desc()).all()


@router.get("/targets/{target_type}/{target_id}", response_model=list[schemas.AuditLogOut])
async def target_trail(
    target_type: Literal["evidence_item", "evidence_review", "unit_confirmation", "sample_plan"],
    target_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return audit.target_history(db, target_type, target_id)


@router.get("/report", response_model=list[schemas.AuditReportItem])
async def audit_report(
    start: datetime,
    end: datetime,
    user_id: UUID | None = None,
    target_type: str | None = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if user_id is None or not rbac.is_admin(current_user):
        user_id = current_user.id
    data = audit.generate_report(db, start, end, user_id, target_type)
    return data
