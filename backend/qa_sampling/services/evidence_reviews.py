"""Service helpers for evidence items and their role-keyed reviews."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from .. import audit, models, rbac, schemas, storage
from . import unit_mapping
from .lookups import load_evidence, load_plan_learner

# purpose: own evidence review state transitions for every reviewing role
# inputs: authenticated user, evidence identifiers, review payloads and attachments
# outputs: mutated EvidenceItem rows (caller commits) and EvidenceItemOut payloads
# status: active
# depends_on: rbac, storage, services.unit_mapping

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500
EVIDENCE_LINKING_ROLES = frozenset({"Learner", "Trainer"})


def _validate_comment(comment: str | None) -> None:
    if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Comment must be at most {MAX_COMMENT_LENGTH} characters",
        )


def find_review(evidence: models.EvidenceItem, role: str) -> models.EvidenceReview | None:
    for review in evidence.reviews:
        if review.role == role:
            return review
    return None


def _get_or_create_review(db: Session, evidence: models.EvidenceItem, role: str) -> models.EvidenceReview:
    review = find_review(evidence, role)
    if review is None:
        review = models.EvidenceReview(role=role, completed=False, comment="")
        evidence.reviews.append(review)
        db.add(review)
        db.flush()
    return review


def serialize_evidence(evidence: models.EvidenceItem) -> schemas.EvidenceItemOut:
    reviews = {
        review.role: schemas.review_entry_from_row(review)
        for review in evidence.reviews
        if review.role in rbac.REVIEW_ROLES
    }
    methods = [code for code in (evidence.assessment_methods or []) if code in schemas.ASSESSMENT_METHODS]
    return schemas.EvidenceItemOut(
        assignment_id=evidence.id,
        sampled_unit_id=evidence.sampled_unit_id,
        unit_code=evidence.unit_code,
        title=evidence.title,
        description=evidence.description,
        grade=evidence.grade,
        assessment_method=methods,
        created_at=evidence.created_at,
        reviews=reviews,
        mapped_sub_units=[unit_mapping.serialize_mapping(mapping) for mapping in evidence.sub_unit_mappings],
    )


def get_evidence_for_unit(
    db: Session,
    *,
    detail_id: UUID,
    unit_code: str | None = None,
) -> list[models.EvidenceItem]:
    """Return evidence sampled for a plan learner, optionally narrowed to one unit."""

    detail = load_plan_learner(db, detail_id)
    query = (
        db.query(models.EvidenceItem)
        .join(models.SampledUnit, models.EvidenceItem.sampled_unit_id == models.SampledUnit.id)
        .options(
            selectinload(models.EvidenceItem.reviews),
            selectinload(models.EvidenceItem.sub_unit_mappings).selectinload(
                models.EvidenceSubUnitMapping.sub_unit
            ),
        )
        .filter(models.SampledUnit.plan_learner_id == detail.id)
    )
    if unit_code:
        query = query.filter(models.EvidenceItem.unit_code == unit_code)
    return query.order_by(models.EvidenceItem.created_at, models.EvidenceItem.title).all()


def link_evidence(
    db: Session,
    *,
    detail_id: UUID,
    unit_id: UUID,
    payload: schemas.EvidenceCreate,
    actor: models.User,
) -> models.EvidenceItem:
    """Create an evidence item against a sampled unit of a plan learner."""

    rbac.require_roles(actor, EVIDENCE_LINKING_ROLES)
    sampled_unit = (
        db.query(models.SampledUnit)
        .filter(models.SampledUnit.id == unit_id, models.SampledUnit.plan_learner_id == detail_id)
        .first()
    )
    if sampled_unit is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sampled unit not found")

    ref = unit_mapping.normalize_unit_ref(
        unit=payload.unit,
        unit_code=payload.unit_code,
        sub_unit_id=payload.sub_unit_id,
        course_core_type=payload.course_core_type,
    )
    sub_units = unit_mapping.resolve_sub_units(db, sampled_unit, ref)
    for sub_unit_id in payload.mapped_sub_unit_ids:
        sub_units.extend(
            unit_mapping.resolve_sub_units(db, sampled_unit, schemas.UnitRef(kind="subunit", id=sub_unit_id))
        )

    evidence = models.EvidenceItem(
        sampled_unit_id=sampled_unit.id,
        unit_code=sampled_unit.unit_code,
        title=payload.title,
        description=payload.description,
        grade=payload.grade,
        assessment_methods=list(payload.assessment_method),
        created_by=actor.id,
    )
    db.add(evidence)
    unit_mapping.add_learner_mappings(db, evidence, sub_units)
    db.flush()
    audit.log_action(
        db,
        actor.id,
        "evidence_linked",
        "evidence_item",
        evidence.id,
        details={"sampled_unit_id": str(sampled_unit.id), "unit_code": sampled_unit.unit_code},
        commit=False,
    )
    return evidence


def upsert_review(
    db: Session,
    *,
    evidence_id: UUID,
    update: schemas.ReviewUpdate,
    actor: models.User,
) -> models.EvidenceItem:
    """Apply ``update`` to the caller's own review of an evidence item.

    Every check runs before the review row is touched, so a rejected request
    leaves the stored review unchanged.
    """

    evidence = load_evidence(db, evidence_id)
    role = update.role
    rbac.ensure_can_mutate(actor, role)
    _validate_comment(update.comment)

    existing = find_review(evidence, role)
    was_completed = existing is not None and existing.completed
    prior_comment = existing.comment if existing is not None else ""
    comment = update.comment if update.comment is not None else prior_comment

    if was_completed and update.completed is False:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Completed reviews cannot be reopened")
    if (update.completed or was_completed) and not (comment or "").strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="A comment is required before signing off",
        )
    if update.completed and not was_completed and role in rbac.QA_REVIEW_ROLES:
        trainer_review = find_review(evidence, "Trainer")
        if trainer_review is None or not trainer_review.completed:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Trainer review must be completed before IQA review",
            )

    review = _get_or_create_review(db, evidence, role)
    review.comment = comment
    if update.completed and not was_completed:
        review.completed = True
        review.signed_off_at = datetime.now(timezone.utc)
        review.signed_off_by = actor.display_name
        review.signed_off_by_id = actor.id
    db.flush()
    audit.log_action(
        db,
        actor.id,
        "evidence_review_signed_off" if review.completed and not was_completed else "evidence_review_updated",
        "evidence_review",
        review.id,
        details={"evidence_id": str(evidence.id), "role": role},
        commit=False,
    )
    logger.info("Evidence %s review by %s updated (completed=%s)", evidence.id, role, review.completed)
    return evidence


def attach_review_file(
    db: Session,
    *,
    evidence_id: UUID,
    role: str,
    data: bytes,
    filename: str,
    content_type: str | None,
    actor: models.User,
) -> models.EvidenceItem:
    evidence = load_evidence(db, evidence_id)
    rbac.ensure_can_mutate(actor, role)
    if not data:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Uploaded file is empty")

    review = _get_or_create_review(db, evidence, role)
    previous_path = review.storage_path
    storage_path, size = storage.save_binary_payload(
        data,
        filename,
        content_type=content_type or "application/octet-stream",
        namespace=f"evidence/{evidence.id}/{role}",
    )
    review.file_name = filename
    review.file_type = content_type
    review.file_size = size
    review.storage_path = storage_path
    db.flush()
    storage.remove_payload(previous_path)
    audit.log_action(
        db,
        actor.id,
        "evidence_review_file_attached",
        "evidence_review",
        review.id,
        details={"evidence_id": str(evidence.id), "role": role, "file_name": filename},
        commit=False,
    )
    return evidence


def read_review_file(db: Session, *, evidence_id: UUID, role: str) -> tuple[str, str | None, bytes]:
    evidence = load_evidence(db, evidence_id)
    review = find_review(evidence, role)
    if review is None or not review.file_name or not review.storage_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No file attached to this review")
    try:
        data = storage.load_binary_payload(review.storage_path)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stored file is missing") from exc
    return review.file_name, review.file_type, data


def delete_attached_file(
    db: Session,
    *,
    evidence_id: UUID,
    role: str,
    actor: models.User,
) -> models.EvidenceItem:
    evidence = load_evidence(db, evidence_id)
    rbac.ensure_can_mutate(actor, role)
    review = find_review(evidence, role)
    if review is None or not review.file_name:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No file attached to this review")

    storage_path = review.storage_path
    file_name = review.file_name
    review.file_name = None
    review.file_type = None
    review.file_size = None
    review.storage_path = None
    db.flush()
    storage.remove_payload(storage_path)
    audit.log_action(
        db,
        actor.id,
        "evidence_review_file_deleted",
        "evidence_review",
        review.id,
        details={"evidence_id": str(evidence.id), "role": role, "file_name": file_name},
        commit=False,
    )
    return evidence
