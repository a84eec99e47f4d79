"""Sample plan creation and sampled learner maintenance."""

from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import audit, models, rbac, schemas, storage
from .confirmations import new_roster
from .lookups import load_plan, load_plan_learner
from .plan_learners import COMPLETED_STATUS, dedupe_units

# purpose: persist plans and the learners/units an IQA selects for sampling
# status: active

logger = logging.getLogger(__name__)

PLANNING_ROLES = frozenset({"IQA", "LIQA"})


def create_plan(db: Session, *, payload: schemas.PlanCreate, actor: models.User) -> models.SamplePlan:
    rbac.require_roles(actor, PLANNING_ROLES)
    if db.get(models.Course, payload.course_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    plan = models.SamplePlan(
        name=payload.name,
        course_id=payload.course_id,
        iqa_id=payload.iqa_id or actor.id,
    )
    db.add(plan)
    db.flush()
    audit.log_action(db, actor.id, "sample_plan_created", "sample_plan", plan.id, commit=False)
    return plan


def apply_sampled_learners(
    db: Session,
    *,
    plan_id: UUID,
    payload: schemas.ApplySampledLearners,
    actor: models.User,
) -> models.SamplePlan:
    """Attach learners and their sampled units to a plan.

    Units repeated within one learner are collapsed by unit code and linked to
    the course catalogue unit with the same code when one exists.
    """

    rbac.require_roles(actor, PLANNING_ROLES)
    plan = load_plan(db, plan_id)
    catalogue = {
        unit.unit_code: unit
        for unit in db.query(models.CourseUnit).filter(models.CourseUnit.course_id == plan.course_id)
    }

    for learner_in in payload.learners:
        learner = models.SamplePlanLearner(
            learner_id=learner_in.learner_id,
            learner_name=learner_in.learner_name,
            assessor_name=learner_in.assessor_name,
            status=learner_in.status,
            risk_level=learner_in.risk_level,
            sample_type=learner_in.sample_type,
            planned_date=learner_in.planned_date,
            assessment_methods=dict(learner_in.assessment_methods),
        )
        for unit_in in dedupe_units(learner_in.units):
            course_unit = catalogue.get(unit_in.unit_code)
            learner.units.append(
                models.SampledUnit(
                    course_unit_id=course_unit.id if course_unit is not None else None,
                    unit_code=unit_in.unit_code,
                    unit_name=unit_in.unit_name or (course_unit.title if course_unit is not None else None),
                    sample_history=[entry.model_dump(mode="json") for entry in unit_in.sample_history],
                    confirmations=new_roster(),
                )
            )
        plan.learners.append(learner)
        db.add(learner)

    db.flush()
    audit.log_action(
        db,
        actor.id,
        "sample_plan_learners_applied",
        "sample_plan",
        plan.id,
        details={"learners": len(payload.learners)},
        commit=False,
    )
    return plan


def _load_plan_learner(db: Session, plan_id: UUID, detail_id: UUID) -> models.SamplePlanLearner:
    detail = load_plan_learner(db, detail_id)
    if detail.plan_id != plan_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sample plan learner not found")
    return detail


def update_plan_learner(
    db: Session,
    *,
    plan_id: UUID,
    detail_id: UUID,
    update: schemas.PlanLearnerUpdate,
    actor: models.User,
) -> models.SamplePlanLearner:
    """Apply the edit-sample form to one sampled learner.

    Only fields present in the request are written. Setting ``status`` to
    ``Completed`` without a completion date stamps today's date.
    """

    rbac.require_roles(actor, PLANNING_ROLES)
    load_plan(db, plan_id)
    detail = _load_plan_learner(db, plan_id, detail_id)

    changes = update.model_dump(exclude_unset=True)
    for field in ("assessment_methods", "iqa_conclusion"):
        if field in changes and changes[field] is None:
            changes[field] = {}
    for field, value in changes.items():
        setattr(detail, field, value)
    if "status" in changes and detail.status == COMPLETED_STATUS and detail.completed_date is None:
        detail.completed_date = date.today()
        changes["completed_date"] = detail.completed_date
    db.flush()
    audit.log_action(
        db,
        actor.id,
        "sample_plan_learner_updated",
        "sample_plan",
        plan_id,
        details={"detail_id": str(detail.id), "fields": sorted(changes)},
        commit=False,
    )
    logger.info("Sampled learner %s updated: %s", detail.id, ", ".join(sorted(changes)) or "no changes")
    return detail


def _has_sign_off(detail: models.SamplePlanLearner) -> bool:
    for unit in detail.units:
        if any(row.completed for row in unit.confirmations):
            return True
        for evidence in unit.evidence:
            if any(review.completed for review in evidence.reviews):
                return True
            if any(mapping.signed_off for mapping in evidence.sub_unit_mappings):
                return True
    return False


def _stored_paths(detail: models.SamplePlanLearner) -> list[str]:
    paths = []
    for unit in detail.units:
        paths.extend(row.storage_path for row in unit.confirmations if row.storage_path)
        for evidence in unit.evidence:
            paths.extend(review.storage_path for review in evidence.reviews if review.storage_path)
    return paths


def remove_sampled_learner(
    db: Session,
    *,
    plan_id: UUID,
    detail_id: UUID,
    actor: models.User,
) -> None:
    """Remove a learner from the plan with its units, evidence and attachments.

    Learners carrying any sign-off are kept; the sign-off must be reset first.
    """

    rbac.require_roles(actor, PLANNING_ROLES)
    load_plan(db, plan_id)
    detail = _load_plan_learner(db, plan_id, detail_id)
    if _has_sign_off(detail):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Sampled learner has signed-off work and cannot be removed",
        )

    paths = _stored_paths(detail)
    learner_name = detail.learner_name
    db.delete(detail)
    db.flush()
    for path in paths:
        storage.remove_payload(path)
    audit.log_action(
        db,
        actor.id,
        "sample_plan_learner_removed",
        "sample_plan",
        plan_id,
        details={"detail_id": str(detail_id), "learner_name": learner_name},
        commit=False,
    )
    logger.info("Sampled learner %s removed from plan %s", detail_id, plan_id)
