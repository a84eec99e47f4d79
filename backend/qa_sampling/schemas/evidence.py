"""Evidence review and criterion mapping schemas."""

# purpose: request and response models for evidence reviews, unit mapping and progress
# status: active

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..rbac import ReviewRole

AssessmentMethodCode = Literal["WO", "WP", "PW", "VI", "LB", "PD", "PT", "TE", "RJ", "OT", "RPL"]

ASSESSMENT_METHODS: dict[str, str] = {
    "WO": "Workplace Observation",
    "WP": "Workplace Projects/Projects away from Work",
    "PW": "Portfolio of Work",
    "VI": "Viva",
    "LB": "Log Book/Assignments",
    "PD": "Professional Discussions",
    "PT": "Practical Test",
    "TE": "Tests/Examinations",
    "RJ": "Reflective Journal",
    "OT": "Other",
    "RPL": "Recognised Prior Learning",
}


class FileMeta(BaseModel):
    file_name: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None


class ReviewEntry(BaseModel):
    """One role's judgement on an evidence item."""

    completed: bool = False
    comment: str = ""
    signed_off_at: Optional[datetime] = None
    signed_off_by: Optional[str] = None
    file: Optional[FileMeta] = None


class ReviewUpdate(BaseModel):
    role: ReviewRole
    # None leaves the completion state untouched
    completed: Optional[bool] = None
    # None leaves the stored comment untouched
    comment: Optional[str] = None


class UnitRef(BaseModel):
    """Discriminated reference to either a catalogue unit or one of its sub-units."""

    kind: Literal["unit", "subunit"]
    id: UUID


class MappedSubUnit(BaseModel):
    sub_unit_id: UUID
    code: str
    title: Optional[str] = None
    learner_mapped: bool = False
    trainer_mapped: bool = False
    signed_off: bool = False
    signed_off_at: Optional[datetime] = None
    signed_off_by: Optional[str] = None


class EvidenceItemOut(BaseModel):
    assignment_id: UUID
    sampled_unit_id: UUID
    unit_code: str
    title: str
    description: Optional[str] = None
    grade: Optional[str] = None
    assessment_method: list[AssessmentMethodCode] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    reviews: dict[ReviewRole, ReviewEntry] = Field(default_factory=dict)
    mapped_sub_units: list[MappedSubUnit] = Field(default_factory=list)


class EvidenceCreate(BaseModel):
    """Payload linking a piece of evidence to a sampled unit.

    ``unit`` is the preferred way to target a unit or sub-unit. Older clients
    send ``unit_code``/``sub_unit_id`` with ``course_core_type`` instead; those
    fields are accepted and normalised into a ``UnitRef`` by the service.
    """

    title: str = Field(min_length=1)
    description: Optional[str] = None
    grade: Optional[str] = None
    assessment_method: list[AssessmentMethodCode] = Field(default_factory=list)
    unit: Optional[UnitRef] = None
    mapped_sub_unit_ids: list[UUID] = Field(default_factory=list)
    unit_code: Optional[str] = None
    sub_unit_id: Optional[str] = None
    course_core_type: Optional[str] = None

    @field_validator("assessment_method")
    @classmethod
    def _dedupe_methods(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class SubUnitMapRequest(BaseModel):
    mapped: bool = True


class UnitProgress(BaseModel):
    pending_trainer_map: int = 0
    pending_iqa_map: int = 0
    iqa_checked: int = 0
    total: int = 0


class UnitMappingNode(BaseModel):
    ref: Optional[UnitRef] = None
    code: str
    title: Optional[str] = None
    unit_type: str = "unit"
    sampled_unit_id: Optional[UUID] = None
    # "code" and "qualification" units are signed off through their sub-units
    signed_off_via_sub_units: bool = False
    progress: Optional[UnitProgress] = None
    children: list["UnitMappingNode"] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


def review_entry_from_row(row: Any) -> ReviewEntry:
    file_meta = None
    if getattr(row, "file_name", None):
        file_meta = FileMeta(file_name=row.file_name, file_type=row.file_type, file_size=row.file_size)
    return ReviewEntry(
        completed=bool(row.completed),
        comment=row.comment or "",
        signed_off_at=row.signed_off_at,
        signed_off_by=row.signed_off_by,
        file=file_meta,
    )
