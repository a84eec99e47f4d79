"""Unit confirmation statement schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from ..rbac import ConfirmationRole
from .evidence import FileMeta


class ConfirmationRowOut(BaseModel):
    """A single role-bound statement in a unit's sign-off table."""

    assignment_review_id: UUID
    sampled_unit_id: UUID
    role: ConfirmationRole
    sequence_index: int
    statement: str
    completed: bool = False
    comments: str = ""
    signed_off_by: Optional[str] = None
    dated: Optional[datetime] = None
    file: Optional[FileMeta] = None
    # hint for clients; the server re-checks ownership on every write
    can_edit: bool = False


class ConfirmationUpdate(BaseModel):
    completed: Optional[bool] = None
    comment: Optional[str] = None
