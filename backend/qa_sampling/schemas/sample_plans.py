"""Sample plan and sampled learner schemas."""

# purpose: define plan creation, learner application and plan listing payloads
# status: active

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

SampleType = Literal["Portfolio", "ObserveAssessor", "LearnerInterview", "EmployerInterview", "Final"]


class PlanCreate(BaseModel):
    name: str = Field(min_length=1)
    course_id: UUID
    iqa_id: Optional[UUID] = None


class PlanOut(BaseModel):
    id: UUID
    name: str
    course_id: UUID
    iqa_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class SampleHistoryEntry(BaseModel):
    planned_date: Optional[date] = None
    completed_date: Optional[date] = None
    sample_type: Optional[SampleType] = None


class SampledUnitIn(BaseModel):
    unit_code: str = Field(min_length=1)
    unit_name: Optional[str] = None
    sample_history: list[SampleHistoryEntry] = Field(default_factory=list)


class SampledLearnerIn(BaseModel):
    learner_id: Optional[UUID] = None
    learner_name: str = Field(min_length=1)
    assessor_name: Optional[str] = None
    status: str = "InProgress"
    risk_level: Optional[str] = None
    sample_type: Optional[SampleType] = None
    planned_date: Optional[date] = None
    assessment_methods: dict[str, bool] = Field(default_factory=dict)
    units: list[SampledUnitIn] = Field(default_factory=list)


class ApplySampledLearners(BaseModel):
    learners: list[SampledLearnerIn] = Field(min_length=1)


class PlanLearnerUpdate(BaseModel):
    """Partial update of a sampled learner; omitted fields are left unchanged."""

    status: Optional[str] = None
    sample_type: Optional[SampleType] = None
    planned_date: Optional[date] = None
    completed_date: Optional[date] = None
    assessment_methods: Optional[dict[str, bool]] = None
    iqa_conclusion: Optional[dict[str, bool]] = None
    assessor_decision_correct: Optional[bool] = None
    feedback: Optional[str] = Field(default=None, max_length=2000)


class PlanLearnerUnit(BaseModel):
    id: Optional[UUID] = None
    unit_code: str
    unit_name: Optional[str] = None
    status: Optional[str] = None
    sample_history: list[SampleHistoryEntry] = Field(default_factory=list)


class PlanLearnerRow(BaseModel):
    id: Optional[UUID] = None
    learner_name: str
    assessor_name: Optional[str] = None
    status: Optional[str] = None
    risk_level: Optional[str] = None
    sample_type: Optional[str] = None
    planned_date: Optional[date] = None
    completed_date: Optional[date] = None
    iqa_conclusion: dict[str, bool] = Field(default_factory=dict)
    assessor_decision_correct: Optional[bool] = None
    feedback: Optional[str] = None
    units: list[PlanLearnerUnit] = Field(default_factory=list)


class PlanSummary(BaseModel):
    plan_id: Optional[UUID] = None
    plan_name: Optional[str] = None
    total_learners: int = 0
    completed_learners: int = 0
    visible_learners: int = 0
    total_units: int = 0


class PlanLearnersResponse(BaseModel):
    plan_summary: PlanSummary
    visible_rows: list[PlanLearnerRow] = Field(default_factory=list)
    planned_dates: list[date] = Field(default_factory=list)
    has_planned_date: bool = False
