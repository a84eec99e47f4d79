"""Sample plan listing and learner application APIs."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..database import get_db
from ..services import plan_learners, sample_plans, unit_mapping
from ..services.lookups import load_plan, parse_uuid

router = APIRouter(prefix="/api/plans", tags=["sample-plans"])

# purpose: serve the plan listing summary and maintain sampled learners
# status: active


@router.post("", response_model=schemas.PlanOut, status_code=201)
def create_sample_plan(
    payload: schemas.PlanCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    plan = sample_plans.create_plan(db, payload=payload, actor=user)
    db.commit()
    db.refresh(plan)
    return plan


@router.post("/{plan_id}/learners", response_model=schemas.PlanLearnersResponse, status_code=201)
def apply_plan_learners(
    plan_id: str,
    payload: schemas.ApplySampledLearners,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.PlanLearnersResponse:
    """Attach sampled learners and their units to a plan."""

    plan = sample_plans.apply_sampled_learners(
        db,
        plan_id=parse_uuid(plan_id, "plan"),
        payload=payload,
        actor=user,
    )
    db.commit()
    db.refresh(plan)
    return plan_learners.summarize(plan, plan.learners)


@router.get("/{plan_id}/learners", response_model=schemas.PlanLearnersResponse)
def list_plan_learners(
    plan_id: str,
    only_incomplete: bool = False,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.PlanLearnersResponse:
    """Return the learner rows, planned-date tabs and summary for a plan."""

    plan = load_plan(db, parse_uuid(plan_id, "plan"))
    return plan_learners.summarize(
        plan,
        plan.learners,
        only_incomplete=only_incomplete,
        search_text=search,
    )


@router.patch("/{plan_id}/learners/{detail_id}", response_model=schemas.PlanLearnersResponse)
def update_plan_learner(
    plan_id: str,
    detail_id: str,
    update: schemas.PlanLearnerUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.PlanLearnersResponse:
    """Save the edit-sample form for one learner and return the refreshed listing."""

    plan_uuid = parse_uuid(plan_id, "plan")
    sample_plans.update_plan_learner(
        db,
        plan_id=plan_uuid,
        detail_id=parse_uuid(detail_id, "plan learner"),
        update=update,
        actor=user,
    )
    db.commit()
    plan = load_plan(db, plan_uuid)
    return plan_learners.summarize(plan, plan.learners)


@router.delete("/{plan_id}/learners/{detail_id}", status_code=204)
def remove_plan_learner(
    plan_id: str,
    detail_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> Response:
    sample_plans.remove_sampled_learner(
        db,
        plan_id=parse_uuid(plan_id, "plan"),
        detail_id=parse_uuid(detail_id, "plan learner"),
        actor=user,
    )
    db.commit()
    return Response(status_code=204)


@router.get("/{detail_id}/unit-mapping", response_model=list[schemas.UnitMappingNode])
def get_plan_unit_mapping(
    detail_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> list[schemas.UnitMappingNode]:
    return unit_mapping.get_unit_mapping(db, detail_id=parse_uuid(detail_id, "plan learner"))
