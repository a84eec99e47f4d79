import itertools

import pytest
from fastapi import HTTPException

from qa_sampling import models, rbac


def test_owner_may_mutate_own_row():
    for role in rbac.CONFIRMATION_ROLES:
        assert rbac.can_mutate(role, role)


def test_no_role_may_mutate_another_roles_row():
    roles = rbac.USER_ROLES
    for current, row_role in itertools.product(roles, rbac.CONFIRMATION_ROLES):
        if current != row_role:
            assert not rbac.can_mutate(current, row_role)


def test_missing_role_never_mutates():
    assert not rbac.can_mutate(None, "Learner")


def test_row_permissions_marks_only_own_row():
    permissions = rbac.row_permissions("Employer")
    assert list(permissions) == list(rbac.CONFIRMATION_ROLES)
    assert [role for role, allowed in permissions.items() if allowed] == ["Employer"]
    assert not any(rbac.row_permissions("Admin").values())


def test_admin_is_not_granted_row_ownership():
    admin = models.User(email="a@example.com", hashed_password="x", role="Admin", is_admin=True)
    with pytest.raises(HTTPException) as exc:
        rbac.ensure_can_mutate(admin, "IQA")
    assert exc.value.status_code == 403
    rbac.require_admin(admin)


def test_require_roles():
    trainer = models.User(email="t@example.com", hashed_password="x", role="Trainer", is_admin=False)
    rbac.require_roles(trainer, {"Trainer", "Learner"})
    with pytest.raises(HTTPException) as exc:
        rbac.require_roles(trainer, {"IQA"})
    assert exc.value.status_code == 403
