from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas, auth, audit, rbac

router = APIRouter(prefix="/api/users", tags=["users"])


@router.put("/{user_id}/role", response_model=schemas.UserOut)
async def assign_role(
    user_id: UUID,
    assignment: schemas.RoleAssignment,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    rbac.require_admin(current_user)
    user = db.get(models.User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    previous = user.role
    user.role = assignment.role
    db.add(user)
    audit.log_action(
        db,
        current_user.id,
        "role_assigned",
        "user",
        user.id,
        details={"from": previous, "to": assignment.role},
        commit=False,
    )
    db.commit()
    db.refresh(user)
    return user
