import uuid
import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String)
    # one of rbac.USER_ROLES; the portal role the user signs as
    role = Column(String, nullable=False, default="Learner")
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


class Course(Base):
    __tablename__ = "courses"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    # "Qualification" or "Standard"; legacy payloads overload unit_code on Qualification courses
    course_core_type = Column(String, nullable=False, default="Standard")
    created_at = Column(DateTime, default=_utcnow)

    units = relationship(
        "CourseUnit",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseUnit.unit_code",
    )


class CourseUnit(Base):
    __tablename__ = "course_units"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_id = Column(UUID(as_uuid=True), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_code = Column(String, nullable=False)
    title = Column(String, nullable=False)
    # "unit", "code" or "qualification"; the latter two are signed off per sub-unit
    unit_type = Column(String, nullable=False, default="unit")

    course = relationship("Course", back_populates="units")
    sub_units = relationship(
        "CourseSubUnit",
        back_populates="unit",
        cascade="all, delete-orphan",
        order_by="CourseSubUnit.code",
    )

    __table_args__ = (
        sa.UniqueConstraint("course_id", "unit_code"),
    )


class CourseSubUnit(Base):
    __tablename__ = "course_sub_units"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    unit_id = Column(UUID(as_uuid=True), ForeignKey("course_units.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String, nullable=False)
    title = Column(String)

    unit = relationship("CourseUnit", back_populates="sub_units")


class SamplePlan(Base):
    __tablename__ = "sample_plans"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    course_id = Column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    iqa_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    course = relationship("Course")
    iqa = relationship("User", foreign_keys=[iqa_id])
    learners = relationship(
        "SamplePlanLearner",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="SamplePlanLearner.learner_name",
    )


class SamplePlanLearner(Base):
    __tablename__ = "sample_plan_learners"

    # purpose: one sampled learner within a plan (the plan "detail")

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("sample_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    learner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    learner_name = Column(String, nullable=False)
    assessor_name = Column(String)
    status = Column(String, default="InProgress")
    risk_level = Column(String)
    sample_type = Column(String)
    planned_date = Column(Date, nullable=True)
    assessment_methods = Column(JSON, default=dict)
    completed_date = Column(Date, nullable=True)
    iqa_conclusion = Column(JSON, default=dict)
    assessor_decision_correct = Column(Boolean, nullable=True)
    feedback = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    plan = relationship("SamplePlan", back_populates="learners")
    learner = relationship("User", foreign_keys=[learner_id])
    units = relationship(
        "SampledUnit",
        back_populates="plan_learner",
        cascade="all, delete-orphan",
        order_by="SampledUnit.unit_code",
    )


class SampledUnit(Base):
    __tablename__ = "sampled_units"

    # purpose: a learner unit under QA review; owns its evidence and confirmation roster

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_learner_id = Column(
        UUID(as_uuid=True),
        ForeignKey("sample_plan_learners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_unit_id = Column(UUID(as_uuid=True), ForeignKey("course_units.id"), nullable=True)
    unit_code = Column(String, nullable=False)
    unit_name = Column(String)
    status = Column(String, default="Incomplete")
    sample_history = Column(JSON, default=list)
    created_at = Column(DateTime, default=_utcnow)

    plan_learner = relationship("SamplePlanLearner", back_populates="units")
    course_unit = relationship("CourseUnit")
    evidence = relationship(
        "EvidenceItem",
        back_populates="sampled_unit",
        cascade="all, delete-orphan",
        order_by="EvidenceItem.created_at",
    )
    confirmations = relationship(
        "UnitConfirmation",
        back_populates="sampled_unit",
        cascade="all, delete-orphan",
        order_by="UnitConfirmation.sequence_index",
    )

    __table_args__ = (
        sa.UniqueConstraint("plan_learner_id", "unit_code"),
    )


class EvidenceItem(Base):
    __tablename__ = "evidence_items"

    # purpose: learner evidence linked to a sampled unit; never hard-deleted

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sampled_unit_id = Column(UUID(as_uuid=True), ForeignKey("sampled_units.id"), nullable=False, index=True)
    unit_code = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    grade = Column(String)
    assessment_methods = Column(JSON, default=list)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)

    sampled_unit = relationship("SampledUnit", back_populates="evidence")
    reviews = relationship(
        "EvidenceReview",
        back_populates="evidence",
        cascade="all, delete-orphan",
    )
    sub_unit_mappings = relationship(
        "EvidenceSubUnitMapping",
        back_populates="evidence",
        cascade="all, delete-orphan",
    )


class EvidenceReview(Base):
    __tablename__ = "evidence_reviews"

    # purpose: a single role's judgement on an evidence item

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    evidence_id = Column(
        UUID(as_uuid=True),
        ForeignKey("evidence_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    comment = Column(String(500), default="", nullable=False)
    signed_off_at = Column(DateTime, nullable=True)
    signed_off_by = Column(String, nullable=True)
    signed_off_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    file_name = Column(String, nullable=True)
    file_type = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    storage_path = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    evidence = relationship("EvidenceItem", back_populates="reviews")

    __table_args__ = (
        sa.UniqueConstraint("evidence_id", "role"),
    )


class EvidenceSubUnitMapping(Base):
    __tablename__ = "evidence_sub_unit_mappings"

    # purpose: criterion-level mapping of evidence to a sub-unit, with IQA sign-off

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    evidence_id = Column(
        UUID(as_uuid=True),
        ForeignKey("evidence_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sub_unit_id = Column(UUID(as_uuid=True), ForeignKey("course_sub_units.id"), nullable=False)
    learner_mapped = Column(Boolean, default=False, nullable=False)
    trainer_mapped = Column(Boolean, default=False, nullable=False)
    signed_off = Column(Boolean, default=False, nullable=False)
    signed_off_at = Column(DateTime, nullable=True)
    signed_off_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    evidence = relationship("EvidenceItem", back_populates="sub_unit_mappings")
    sub_unit = relationship("CourseSubUnit")
    signed_off_by = relationship("User", foreign_keys=[signed_off_by_id])

    __table_args__ = (
        sa.UniqueConstraint("evidence_id", "sub_unit_id"),
    )


class UnitConfirmation(Base):
    __tablename__ = "unit_confirmations"

    # purpose: one row of the per-unit confirmation statement roster
    # depends_on: sampled_units

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sampled_unit_id = Column(
        UUID(as_uuid=True),
        ForeignKey("sampled_units.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String, nullable=False)
    sequence_index = Column(Integer, nullable=False)
    statement = Column(Text, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    comments = Column(String(500), default="", nullable=False)
    signed_off_by = Column(String, nullable=True)
    signed_off_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    dated = Column(DateTime, nullable=True)
    file_name = Column(String, nullable=True)
    file_type = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    storage_path = Column(String, nullable=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    sampled_unit = relationship("SampledUnit", back_populates="confirmations")

    __table_args__ = (
        sa.UniqueConstraint("sampled_unit_id", "role"),
        sa.UniqueConstraint("sampled_unit_id", "sequence_index"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    action = Column(String, nullable=False)
    target_type = Column(String)
    target_id = Column(UUID(as_uuid=True))
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)
