"""Pydantic schemas consolidating backend API contracts."""

# purpose: aggregate request and response schemas for FastAPI surfaces and services
# status: active

from datetime import datetime
from typing import Optional, Any, Dict
from pydantic import BaseModel, EmailStr, ConfigDict
from uuid import UUID

from ..rbac import UserRole
from .confirmations import ConfirmationRowOut, ConfirmationUpdate
from .evidence import (
    ASSESSMENT_METHODS,
    AssessmentMethodCode,
    EvidenceCreate,
    EvidenceItemOut,
    FileMeta,
    MappedSubUnit,
    ReviewEntry,
    ReviewUpdate,
    SubUnitMapRequest,
    UnitMappingNode,
    UnitProgress,
    UnitRef,
    review_entry_from_row,
)
from .sample_plans import (
    ApplySampledLearners,
    PlanCreate,
    PlanLearnerRow,
    PlanLearnersResponse,
    PlanLearnerUnit,
    PlanLearnerUpdate,
    PlanOut,
    PlanSummary,
    SampledLearnerIn,
    SampledUnitIn,
    SampleHistoryEntry,
    SampleType,
)


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    role: UserRole = "Learner"


class RoleAssignment(BaseModel):
    role: UserRole


class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str]
    role: str
    is_admin: bool = False
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuditLogOut(BaseModel):
    id: UUID
    user_id: Optional[UUID]
    action: str
    target_type: Optional[str] = None
    target_id: Optional[UUID] = None
    details: Dict[str, Any] = {}
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditReportItem(BaseModel):
    action: str
    count: int
