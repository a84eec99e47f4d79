"""Sampled unit progress and confirmation statement APIs."""

from __future__ import annotations

import io

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..database import get_db
from ..rbac import ConfirmationRole
from ..services import confirmations
from ..services.lookups import load_sampled_unit, parse_uuid
from ..services.unit_progress import compute_unit_progress

router = APIRouter(prefix="/api/units", tags=["units"])

# purpose: expose per-unit progress counters and the confirmation roster
# status: active
# depends_on: services.confirmations, services.unit_progress


def _roster_out(
    db: Session, rows: list[models.UnitConfirmation], user: models.User
) -> list[schemas.ConfirmationRowOut]:
    db.commit()
    return [confirmations.serialize_row(row, user.role) for row in rows]


def _row_out(db: Session, row: models.UnitConfirmation, user: models.User) -> schemas.ConfirmationRowOut:
    db.commit()
    db.refresh(row)
    return confirmations.serialize_row(row, user.role)


@router.get("/{unit_id}/progress", response_model=schemas.UnitProgress)
def get_unit_progress(
    unit_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.UnitProgress:
    """Recompute progress counters from the unit's current evidence."""

    sampled_unit = load_sampled_unit(db, parse_uuid(unit_id, "unit"))
    return compute_unit_progress(sampled_unit.evidence)


@router.get("/{unit_id}/confirmation", response_model=list[schemas.ConfirmationRowOut])
def list_unit_confirmations(
    unit_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> list[schemas.ConfirmationRowOut]:
    rows = confirmations.list_confirmations(db, unit_id=parse_uuid(unit_id, "unit"))
    return _roster_out(db, rows, user)


@router.patch("/{unit_id}/confirmation/{role}", response_model=list[schemas.ConfirmationRowOut])
def update_unit_confirmation(
    unit_id: str,
    role: ConfirmationRole,
    update: schemas.ConfirmationUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> list[schemas.ConfirmationRowOut]:
    """Comment on and/or sign off the caller's own confirmation row."""

    rows = confirmations.update_confirmation(
        db,
        unit_id=parse_uuid(unit_id, "unit"),
        role=role,
        update=update,
        actor=user,
    )
    return _roster_out(db, rows, user)


@router.post("/{unit_id}/confirmation/{role}/file", response_model=schemas.ConfirmationRowOut)
async def upload_confirmation_file(
    unit_id: str,
    role: ConfirmationRole,
    upload: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.ConfirmationRowOut:
    unit_uuid = parse_uuid(unit_id, "unit")
    data = await upload.read()
    row = confirmations.attach_file(
        db,
        unit_id=unit_uuid,
        role=role,
        data=data,
        filename=upload.filename or "attachment.bin",
        content_type=upload.content_type,
        actor=user,
    )
    return _row_out(db, row, user)


@router.delete("/{unit_id}/confirmation/{role}/file", response_model=schemas.ConfirmationRowOut)
def delete_confirmation_file(
    unit_id: str,
    role: ConfirmationRole,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.ConfirmationRowOut:
    row = confirmations.delete_file(db, unit_id=parse_uuid(unit_id, "unit"), role=role, actor=user)
    return _row_out(db, row, user)


@router.post("/{unit_id}/confirmation/{role}/reset", response_model=list[schemas.ConfirmationRowOut])
def reset_unit_confirmation(
    unit_id: str,
    role: ConfirmationRole,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> list[schemas.ConfirmationRowOut]:
    """Admin-only reset of a signed-off row back to pending."""

    rows = confirmations.reset_confirmation(db, unit_id=parse_uuid(unit_id, "unit"), role=role, actor=user)
    return _roster_out(db, rows, user)


@router.get("/{unit_id}/confirmation/{role}/file")
def download_confirmation_file(
    unit_id: str,
    role: ConfirmationRole,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> StreamingResponse:
    name, content_type, data = confirmations.read_file(db, unit_id=parse_uuid(unit_id, "unit"), role=role)
    return StreamingResponse(
        io.BytesIO(data),
        media_type=content_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )
