from __future__ import annotations

from typing import Iterable, Literal, get_args

from fastapi import HTTPException, status

from . import models

# purpose: centralize role ownership checks for evidence reviews and confirmation rows
# status: active

ReviewRole = Literal["IQA", "LIQA", "EQA", "Admin", "Trainer", "Employer", "Learner"]
ConfirmationRole = Literal["Learner", "Trainer", "Lead Assessor", "Employer", "IQA", "EQA"]
UserRole = Literal[
    "Learner",
    "Trainer",
    "Lead Assessor",
    "Employer",
    "IQA",
    "LIQA",
    "EQA",
    "Admin",
]

REVIEW_ROLES: tuple[str, ...] = get_args(ReviewRole)
CONFIRMATION_ROLES: tuple[str, ...] = get_args(ConfirmationRole)
USER_ROLES: tuple[str, ...] = get_args(UserRole)

# roles that act on evidence only after the trainer has mapped it
QA_REVIEW_ROLES = frozenset({"IQA", "LIQA"})


def can_mutate(current_role: str | None, row_role: str) -> bool:
    """Return True when the caller owns the row for ``row_role``.

    Ownership is strict equality. Admin is not granted write access to rows it
    does not own; the only privileged path is the audited confirmation reset.
    """

    return current_role is not None and current_role == row_role


def row_permissions(current_role: str | None, roles: Iterable[str] = CONFIRMATION_ROLES) -> dict[str, bool]:
    """Return the per-row editability hint rendered by clients."""

    return {role: can_mutate(current_role, role) for role in roles}


def is_admin(user: models.User) -> bool:
    return bool(user.is_admin) or user.role == "Admin"


def ensure_can_mutate(user: models.User, row_role: str) -> None:
    if not can_mutate(user.role, row_role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role {user.role} may not modify the {row_role} entry",
        )


def require_admin(user: models.User) -> None:
    if not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")


def require_roles(user: models.User, roles: Iterable[str]) -> None:
    allowed = set(roles)
    if user.role not in allowed and not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
