"""Evidence review APIs used by the sample plan evidence table."""

from __future__ import annotations

import io
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..database import get_db
from ..rbac import ReviewRole
from ..services import evidence_reviews, unit_mapping
from ..services.lookups import parse_uuid

router = APIRouter(prefix="/api", tags=["evidence"])

# purpose: expose role-keyed evidence reviews and criterion sign-off
# status: active
# depends_on: services.evidence_reviews, services.unit_mapping


def _evidence_out(db: Session, evidence: models.EvidenceItem) -> schemas.EvidenceItemOut:
    db.commit()
    db.refresh(evidence)
    return evidence_reviews.serialize_evidence(evidence)


@router.get("/plans/{detail_id}/evidence", response_model=list[schemas.EvidenceItemOut])
def list_unit_evidence(
    detail_id: str,
    unit_code: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> list[schemas.EvidenceItemOut]:
    """Return evidence for a sampled learner, optionally narrowed to one unit code."""

    detail_uuid = parse_uuid(detail_id, "plan learner")
    items = evidence_reviews.get_evidence_for_unit(db, detail_id=detail_uuid, unit_code=unit_code)
    return [evidence_reviews.serialize_evidence(item) for item in items]


@router.post(
    "/plans/{detail_id}/units/{unit_id}/evidence",
    response_model=schemas.EvidenceItemOut,
    status_code=201,
)
def link_unit_evidence(
    detail_id: str,
    unit_id: str,
    payload: schemas.EvidenceCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.EvidenceItemOut:
    evidence = evidence_reviews.link_evidence(
        db,
        detail_id=parse_uuid(detail_id, "plan learner"),
        unit_id=parse_uuid(unit_id, "unit"),
        payload=payload,
        actor=user,
    )
    return _evidence_out(db, evidence)


@router.patch("/evidence/{evidence_id}/review", response_model=schemas.EvidenceItemOut)
def update_evidence_review(
    evidence_id: str,
    update: schemas.ReviewUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.EvidenceItemOut:
    """Complete or comment on the caller's own review of an evidence item."""

    evidence = evidence_reviews.upsert_review(
        db,
        evidence_id=parse_uuid(evidence_id, "evidence"),
        update=update,
        actor=user,
    )
    return _evidence_out(db, evidence)


@router.post("/evidence/{evidence_id}/review/{role}/file", response_model=schemas.EvidenceItemOut)
async def upload_review_file(
    evidence_id: str,
    role: ReviewRole,
    upload: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.EvidenceItemOut:
    evidence_uuid = parse_uuid(evidence_id, "evidence")
    data = await upload.read()
    evidence = evidence_reviews.attach_review_file(
        db,
        evidence_id=evidence_uuid,
        role=role,
        data=data,
        filename=upload.filename or "attachment.bin",
        content_type=upload.content_type,
        actor=user,
    )
    return _evidence_out(db, evidence)


@router.delete("/evidence/{evidence_id}/review/{role}/file", response_model=schemas.EvidenceItemOut)
def delete_review_file(
    evidence_id: str,
    role: ReviewRole,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.EvidenceItemOut:
    evidence = evidence_reviews.delete_attached_file(
        db,
        evidence_id=parse_uuid(evidence_id, "evidence"),
        role=role,
        actor=user,
    )
    return _evidence_out(db, evidence)


@router.post(
    "/evidence/{evidence_id}/sub-units/{sub_unit_id}/map",
    response_model=schemas.EvidenceItemOut,
)
def map_evidence_sub_unit(
    evidence_id: str,
    sub_unit_id: str,
    request: schemas.SubUnitMapRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.EvidenceItemOut:
    """Trainer mapping of a sub-unit criterion to the evidence item."""

    evidence = unit_mapping.map_sub_unit(
        db,
        evidence_id=parse_uuid(evidence_id, "evidence"),
        sub_unit_id=parse_uuid(sub_unit_id, "sub-unit"),
        mapped=request.mapped,
        actor=user,
    )
    return _evidence_out(db, evidence)


@router.post(
    "/evidence/{evidence_id}/sub-units/{sub_unit_id}/sign-off",
    response_model=schemas.EvidenceItemOut,
)
def sign_off_evidence_sub_unit(
    evidence_id: str,
    sub_unit_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.EvidenceItemOut:
    evidence = unit_mapping.sign_off_sub_unit(
        db,
        evidence_id=parse_uuid(evidence_id, "evidence"),
        sub_unit_id=parse_uuid(sub_unit_id, "sub-unit"),
        actor=user,
    )
    return _evidence_out(db, evidence)


@router.post("/evidence/{evidence_id}/criteria/sign-off", response_model=schemas.EvidenceItemOut)
def sign_off_evidence_criteria(
    evidence_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.EvidenceItemOut:
    """IQA sign-off of every trainer-mapped criterion on the evidence item."""

    evidence = unit_mapping.sign_off_all_criteria(
        db,
        evidence_id=parse_uuid(evidence_id, "evidence"),
        actor=user,
    )
    return _evidence_out(db, evidence)


@router.get("/evidence/{evidence_id}/review/{role}/file")
def download_review_file(
    evidence_id: str,
    role: ReviewRole,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> StreamingResponse:
    name, content_type, data = evidence_reviews.read_review_file(
        db, evidence_id=parse_uuid(evidence_id, "evidence"), role=role
    )
    return StreamingResponse(
        io.BytesIO(data),
        media_type=content_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )
