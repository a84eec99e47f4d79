"""Record loaders shared by the sign-off services."""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from .. import models


def parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label} identifier") from exc


def load_plan(db: Session, plan_id: UUID) -> models.SamplePlan:
    plan = (
        db.query(models.SamplePlan)
        .options(selectinload(models.SamplePlan.learners).selectinload(models.SamplePlanLearner.units))
        .filter(models.SamplePlan.id == plan_id)
        .first()
    )
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sample plan not found")
    return plan


def load_plan_learner(db: Session, detail_id: UUID) -> models.SamplePlanLearner:
    detail = db.get(models.SamplePlanLearner, detail_id)
    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sample plan learner not found")
    return detail


def load_sampled_unit(db: Session, unit_id: UUID) -> models.SampledUnit:
    unit = db.get(models.SampledUnit, unit_id)
    if unit is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sampled unit not found")
    return unit


def load_evidence(db: Session, evidence_id: UUID) -> models.EvidenceItem:
    evidence = (
        db.query(models.EvidenceItem)
        .options(
            selectinload(models.EvidenceItem.reviews),
            selectinload(models.EvidenceItem.sub_unit_mappings).selectinload(
                models.EvidenceSubUnitMapping.sub_unit
            ),
            selectinload(models.EvidenceItem.sampled_unit),
        )
        .filter(models.EvidenceItem.id == evidence_id)
        .first()
    )
    if evidence is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence not found")
    return evidence
