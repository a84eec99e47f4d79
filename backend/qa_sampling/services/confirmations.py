"""Unit confirmation statement roster and its sign-off state machine."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import audit, models, rbac, schemas, storage
from .lookups import load_sampled_unit

# purpose: materialise the six-row confirmation roster and enforce owns-its-row sign-off
# inputs: sampled unit identifiers, confirmation role, comment text or attachment
# outputs: UnitConfirmation rows (caller commits) and ConfirmationRowOut payloads
# status: active

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500

_ASSESSOR_STATEMENT = (
    "I confirm that the learner has demonstrated competence by satisfying all the skills and "
    "knowledge for this unit, and has been assessed according to requirements of the qualification."
)

CONFIRMATION_STATEMENTS: tuple[tuple[str, str], ...] = (
    ("Learner", "I confirm that this unit is complete and the evidence provided is a result of my own work"),
    ("Trainer", _ASSESSOR_STATEMENT),
    ("Lead Assessor", _ASSESSOR_STATEMENT),
    ("Employer", "I can confirm that the evidence I have checked as an employer meets the standards."),
    ("IQA", "I can confirm that the evidence I have sampled as an Internal Quality Assurer meets the standards."),
    ("EQA", "Verified as part of External QA Visit."),
)


def new_roster() -> list[models.UnitConfirmation]:
    """Pending rows for every roster role, for attaching to a new sampled unit."""

    return [
        models.UnitConfirmation(
            role=role,
            sequence_index=index,
            statement=statement,
            completed=False,
            comments="",
        )
        for index, (role, statement) in enumerate(CONFIRMATION_STATEMENTS)
    ]


def ensure_roster(db: Session, sampled_unit: models.SampledUnit) -> list[models.UnitConfirmation]:
    """Create any missing roster rows and return all six in roster order.

    Units created without a roster get their rows on first access. The insert
    runs in a savepoint; when another request has already inserted the rows the
    savepoint is rolled back and the committed rows are re-read.
    """

    existing = {row.role: row for row in sampled_unit.confirmations}
    missing = [row for row in new_roster() if row.role not in existing]
    if missing:
        try:
            with db.begin_nested():
                for row in missing:
                    row.sampled_unit_id = sampled_unit.id
                    db.add(row)
        except IntegrityError:
            logger.info("Confirmation roster for unit %s was created concurrently", sampled_unit.id)
        db.expire(sampled_unit, ["confirmations"])
        existing = {row.role: row for row in sampled_unit.confirmations}
    return [existing[role] for role, _ in CONFIRMATION_STATEMENTS]


def _roster_row(db: Session, sampled_unit: models.SampledUnit, role: str) -> models.UnitConfirmation:
    for row in ensure_roster(db, sampled_unit):
        if row.role == role:
            return row
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Confirmation role not found")


def _ensure_unlocked(row: models.UnitConfirmation) -> None:
    if row.completed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{row.role} confirmation is signed off and locked",
        )


def _validate_comment(text: str) -> None:
    if len(text) > MAX_COMMENT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Comment must be at most {MAX_COMMENT_LENGTH} characters",
        )


def serialize_row(row: models.UnitConfirmation, current_role: str | None) -> schemas.ConfirmationRowOut:
    file_meta = None
    if row.file_name:
        file_meta = schemas.FileMeta(file_name=row.file_name, file_type=row.file_type, file_size=row.file_size)
    return schemas.ConfirmationRowOut(
        assignment_review_id=row.id,
        sampled_unit_id=row.sampled_unit_id,
        role=row.role,
        sequence_index=row.sequence_index,
        statement=row.statement,
        completed=bool(row.completed),
        comments=row.comments or "",
        signed_off_by=row.signed_off_by,
        dated=row.dated,
        file=file_meta,
        can_edit=rbac.can_mutate(current_role, row.role) and not row.completed,
    )


def list_confirmations(db: Session, *, unit_id: UUID) -> list[models.UnitConfirmation]:
    return ensure_roster(db, load_sampled_unit(db, unit_id))


def _log(db: Session, actor: models.User, action: str, row: models.UnitConfirmation, **details) -> None:
    audit.log_action(
        db,
        actor.id,
        action,
        "unit_confirmation",
        row.id,
        details={"sampled_unit_id": str(row.sampled_unit_id), "role": row.role, **details},
        commit=False,
    )


def add_comment(
    db: Session,
    *,
    unit_id: UUID,
    role: str,
    text: str,
    actor: models.User,
) -> models.UnitConfirmation:
    sampled_unit = load_sampled_unit(db, unit_id)
    rbac.ensure_can_mutate(actor, role)
    _validate_comment(text)
    row = _roster_row(db, sampled_unit, role)
    _ensure_unlocked(row)
    row.comments = text
    db.flush()
    _log(db, actor, "confirmation_commented", row)
    return row


def toggle_confirmation(
    db: Session,
    *,
    unit_id: UUID,
    role: str,
    actor: models.User,
) -> list[models.UnitConfirmation]:
    """Move the caller's row from Pending to Completed.

    A prior non-empty comment is required and a completed row cannot be
    toggled back; only ``reset_confirmation`` returns it to Pending.
    """

    sampled_unit = load_sampled_unit(db, unit_id)
    rbac.ensure_can_mutate(actor, role)
    row = _roster_row(db, sampled_unit, role)
    _ensure_unlocked(row)
    if not (row.comments or "").strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Add a comment before signing off",
        )
    row.completed = True
    row.signed_off_by = actor.display_name
    row.signed_off_by_id = actor.id
    row.dated = datetime.now(timezone.utc)
    db.flush()
    _log(db, actor, "confirmation_signed_off", row)
    logger.info("Unit %s confirmation signed off by %s", sampled_unit.id, role)
    return ensure_roster(db, sampled_unit)


def update_confirmation(
    db: Session,
    *,
    unit_id: UUID,
    role: str,
    update: schemas.ConfirmationUpdate,
    actor: models.User,
) -> list[models.UnitConfirmation]:
    """Apply a combined comment / completion update, validating before writing."""

    sampled_unit = load_sampled_unit(db, unit_id)
    rbac.ensure_can_mutate(actor, role)
    if update.comment is not None:
        _validate_comment(update.comment)
    row = _roster_row(db, sampled_unit, role)
    if update.comment is None and update.completed is None:
        return ensure_roster(db, sampled_unit)
    _ensure_unlocked(row)
    if update.completed:
        comment = update.comment if update.comment is not None else row.comments
        if not (comment or "").strip():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Add a comment before signing off",
            )

    if update.comment is not None:
        add_comment(db, unit_id=unit_id, role=role, text=update.comment, actor=actor)
    if update.completed:
        return toggle_confirmation(db, unit_id=unit_id, role=role, actor=actor)
    return ensure_roster(db, sampled_unit)


def attach_file(
    db: Session,
    *,
    unit_id: UUID,
    role: str,
    data: bytes,
    filename: str,
    content_type: str | None,
    actor: models.User,
) -> models.UnitConfirmation:
    sampled_unit = load_sampled_unit(db, unit_id)
    rbac.ensure_can_mutate(actor, role)
    if not data:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Uploaded file is empty")
    row = _roster_row(db, sampled_unit, role)
    _ensure_unlocked(row)

    previous_path = row.storage_path
    storage_path, size = storage.save_binary_payload(
        data,
        filename,
        content_type=content_type or "application/octet-stream",
        namespace=f"confirmations/{sampled_unit.id}/{role.replace(' ', '_')}",
    )
    row.file_name = filename
    row.file_type = content_type
    row.file_size = size
    row.storage_path = storage_path
    db.flush()
    storage.remove_payload(previous_path)
    _log(db, actor, "confirmation_file_attached", row, file_name=filename)
    return row


def delete_file(
    db: Session,
    *,
    unit_id: UUID,
    role: str,
    actor: models.User,
) -> models.UnitConfirmation:
    sampled_unit = load_sampled_unit(db, unit_id)
    rbac.ensure_can_mutate(actor, role)
    row = _roster_row(db, sampled_unit, role)
    _ensure_unlocked(row)
    if not row.file_name:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No file attached to this confirmation")

    storage_path = row.storage_path
    file_name = row.file_name
    row.file_name = None
    row.file_type = None
    row.file_size = None
    row.storage_path = None
    db.flush()
    storage.remove_payload(storage_path)
    _log(db, actor, "confirmation_file_deleted", row, file_name=file_name)
    return row


def read_file(db: Session, *, unit_id: UUID, role: str) -> tuple[str, str | None, bytes]:
    """Return ``(file_name, file_type, data)`` for a row's attachment."""

    sampled_unit = load_sampled_unit(db, unit_id)
    row = _roster_row(db, sampled_unit, role)
    if not row.file_name or not row.storage_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No file attached to this confirmation")
    try:
        data = storage.load_binary_payload(row.storage_path)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stored file is missing") from exc
    return row.file_name, row.file_type, data


def reset_confirmation(
    db: Session,
    *,
    unit_id: UUID,
    role: str,
    actor: models.User,
) -> list[models.UnitConfirmation]:
    """Privileged admin action returning a signed-off row to Pending.

    Comments and attachments are kept; only the sign-off is cleared.
    """

    sampled_unit = load_sampled_unit(db, unit_id)
    rbac.require_admin(actor)
    row = _roster_row(db, sampled_unit, role)
    if not row.completed:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{row.role} confirmation is not signed off")
    previous_signer = row.signed_off_by
    previous_dated = row.dated.isoformat() if row.dated else None
    row.completed = False
    row.signed_off_by = None
    row.signed_off_by_id = None
    row.dated = None
    db.flush()
    _log(
        db,
        actor,
        "confirmation_reset",
        row,
        previous_signed_off_by=previous_signer,
        previous_dated=previous_dated,
    )
    logger.warning("Unit %s %s confirmation reset by admin %s", sampled_unit.id, role, actor.id)
    return ensure_roster(db, sampled_unit)
