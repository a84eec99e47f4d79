"""Unit / sub-unit hierarchy and criterion-level IQA sign-off."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import audit, models, rbac, schemas
from .lookups import load_evidence, load_plan_learner, parse_uuid
from .plan_learners import dedupe_units
from .unit_progress import compute_unit_progress

# purpose: resolve unit references and manage trainer mapping / IQA sign-off of sub-units
# status: active
# depends_on: services.lookups, services.unit_progress

QUALIFICATION_COURSE_TYPE = "qualification"
SUB_UNIT_SIGN_OFF_TYPES = frozenset({"code", "qualification"})


def normalize_unit_ref(
    *,
    unit: schemas.UnitRef | None = None,
    unit_code: str | None = None,
    sub_unit_id: str | None = None,
    course_core_type: str | None = None,
) -> schemas.UnitRef | None:
    """Collapse the accepted unit addressing styles into a single ``UnitRef``.

    Legacy clients on Qualification courses put the sub-unit id in
    ``unit_code`` and leave ``sub_unit_id`` empty.
    """

    if unit is not None:
        return unit
    if sub_unit_id:
        return schemas.UnitRef(kind="subunit", id=parse_uuid(sub_unit_id, "sub-unit"))
    if unit_code and (course_core_type or "").strip().casefold() == QUALIFICATION_COURSE_TYPE:
        return schemas.UnitRef(kind="subunit", id=parse_uuid(unit_code, "sub-unit"))
    return None


def _owned_sub_unit(db: Session, sampled_unit: models.SampledUnit, sub_unit_id: UUID) -> models.CourseSubUnit:
    sub_unit = db.get(models.CourseSubUnit, sub_unit_id)
    if sub_unit is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sub-unit not found")
    if sampled_unit.course_unit_id is None or sub_unit.unit_id != sampled_unit.course_unit_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Sub-unit does not belong to the sampled unit",
        )
    return sub_unit


def resolve_sub_units(
    db: Session, sampled_unit: models.SampledUnit, ref: schemas.UnitRef | None
) -> list[models.CourseSubUnit]:
    """Return the sub-units a reference points at within ``sampled_unit``."""

    if ref is None:
        return []
    if ref.kind == "unit":
        if sampled_unit.course_unit_id != ref.id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Unit reference does not match the sampled unit",
            )
        return []
    return [_owned_sub_unit(db, sampled_unit, ref.id)]


def _find_mapping(evidence: models.EvidenceItem, sub_unit_id: UUID) -> models.EvidenceSubUnitMapping | None:
    for mapping in evidence.sub_unit_mappings:
        if mapping.sub_unit_id == sub_unit_id:
            return mapping
    return None


def add_learner_mappings(
    db: Session, evidence: models.EvidenceItem, sub_units: list[models.CourseSubUnit]
) -> None:
    for sub_unit in sub_units:
        mapping = _find_mapping(evidence, sub_unit.id)
        if mapping is None:
            mapping = models.EvidenceSubUnitMapping(sub_unit_id=sub_unit.id, sub_unit=sub_unit)
            evidence.sub_unit_mappings.append(mapping)
            db.add(mapping)
        mapping.learner_mapped = True


def serialize_mapping(mapping: models.EvidenceSubUnitMapping) -> schemas.MappedSubUnit:
    sub_unit = mapping.sub_unit
    signer = mapping.signed_off_by
    return schemas.MappedSubUnit(
        sub_unit_id=mapping.sub_unit_id,
        code=sub_unit.code if sub_unit is not None else "",
        title=sub_unit.title if sub_unit is not None else None,
        learner_mapped=bool(mapping.learner_mapped),
        trainer_mapped=bool(mapping.trainer_mapped),
        signed_off=bool(mapping.signed_off),
        signed_off_at=mapping.signed_off_at,
        signed_off_by=signer.display_name if signer is not None else None,
    )


def map_sub_unit(
    db: Session,
    *,
    evidence_id: UUID,
    sub_unit_id: UUID,
    mapped: bool,
    actor: models.User,
) -> models.EvidenceItem:
    """Record the Trainer's mapping decision for one sub-unit of an evidence item."""

    evidence = load_evidence(db, evidence_id)
    rbac.ensure_can_mutate(actor, "Trainer")
    sub_unit = _owned_sub_unit(db, evidence.sampled_unit, sub_unit_id)
    mapping = _find_mapping(evidence, sub_unit.id)
    if mapping is not None and mapping.signed_off and not mapped:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Signed-off criteria cannot be unmapped",
        )
    if mapping is None:
        mapping = models.EvidenceSubUnitMapping(sub_unit_id=sub_unit.id, sub_unit=sub_unit)
        evidence.sub_unit_mappings.append(mapping)
        db.add(mapping)
    mapping.trainer_mapped = mapped
    db.flush()
    audit.log_action(
        db,
        actor.id,
        "sub_unit_mapped" if mapped else "sub_unit_unmapped",
        "evidence_item",
        evidence.id,
        details={"sub_unit_id": str(sub_unit.id), "code": sub_unit.code},
        commit=False,
    )
    return evidence


def _sign_off(mapping: models.EvidenceSubUnitMapping, actor: models.User, when: datetime) -> None:
    mapping.signed_off = True
    mapping.signed_off_at = when
    mapping.signed_off_by_id = actor.id
    mapping.signed_off_by = actor


def sign_off_sub_unit(
    db: Session,
    *,
    evidence_id: UUID,
    sub_unit_id: UUID,
    actor: models.User,
) -> models.EvidenceItem:
    """IQA sign-off of one trainer-mapped criterion. Sign-off cannot be undone."""

    evidence = load_evidence(db, evidence_id)
    rbac.ensure_can_mutate(actor, "IQA")
    mapping = _find_mapping(evidence, sub_unit_id)
    if mapping is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sub-unit is not mapped to this evidence")
    if not mapping.trainer_mapped:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Criterion must be mapped by the trainer before sign-off",
        )
    if mapping.signed_off:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Criterion already signed off")
    _sign_off(mapping, actor, datetime.now(timezone.utc))
    db.flush()
    audit.log_action(
        db,
        actor.id,
        "sub_unit_signed_off",
        "evidence_item",
        evidence.id,
        details={"sub_unit_id": str(sub_unit_id)},
        commit=False,
    )
    return evidence


def sign_off_all_criteria(db: Session, *, evidence_id: UUID, actor: models.User) -> models.EvidenceItem:
    evidence = load_evidence(db, evidence_id)
    rbac.ensure_can_mutate(actor, "IQA")
    trainer_mapped = [mapping for mapping in evidence.sub_unit_mappings if mapping.trainer_mapped]
    if not trainer_mapped:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No trainer-mapped criteria to sign off",
        )
    now = datetime.now(timezone.utc)
    pending = [mapping for mapping in trainer_mapped if not mapping.signed_off]
    if not pending:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="All trainer-mapped criteria are already signed off",
        )
    for mapping in pending:
        _sign_off(mapping, actor, now)
    db.flush()
    audit.log_action(
        db,
        actor.id,
        "criteria_signed_off",
        "evidence_item",
        evidence.id,
        details={"sub_unit_ids": [str(mapping.sub_unit_id) for mapping in pending]},
        commit=False,
    )
    return evidence


def get_unit_mapping(db: Session, *, detail_id: UUID) -> list[schemas.UnitMappingNode]:
    """Return the unit / sub-unit tree sampled for one plan learner."""

    detail = load_plan_learner(db, detail_id)
    nodes = []
    for sampled_unit in dedupe_units(detail.units):
        course_unit = sampled_unit.course_unit
        unit_type = course_unit.unit_type if course_unit is not None else "unit"
        children = []
        if course_unit is not None:
            children = [
                schemas.UnitMappingNode(
                    ref=schemas.UnitRef(kind="subunit", id=sub_unit.id),
                    code=sub_unit.code,
                    title=sub_unit.title,
                    unit_type="subunit",
                )
                for sub_unit in course_unit.sub_units
            ]
        nodes.append(
            schemas.UnitMappingNode(
                ref=schemas.UnitRef(kind="unit", id=course_unit.id) if course_unit is not None else None,
                code=sampled_unit.unit_code,
                title=sampled_unit.unit_name or (course_unit.title if course_unit is not None else None),
                unit_type=unit_type,
                sampled_unit_id=sampled_unit.id,
                signed_off_via_sub_units=(unit_type or "").casefold() in SUB_UNIT_SIGN_OFF_TYPES,
                progress=compute_unit_progress(sampled_unit.evidence),
                children=children,
            )
        )
    return nodes
