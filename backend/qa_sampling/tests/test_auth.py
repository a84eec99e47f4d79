from urllib.parse import quote

from .conftest import client, create_user_headers, seed_sampled_learner


def _register(client, email, **extra):
    return client.post("/api/auth/register", json={"email": email, "password": "secret", **extra})


def test_register_and_login(client):
    resp = _register(client, "learner@example.com", full_name="Lee Learner")
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    assert token
    resp2 = client.post("/api/auth/login", json={"email": "learner@example.com", "password": "secret"})
    assert resp2.status_code == 200

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "Learner"
    assert me.json()["full_name"] == "Lee Learner"


def test_register_cannot_claim_staff_roles(client):
    for index, role in enumerate(["IQA", "Trainer", "Employer", "EQA", "Admin"]):
        resp = _register(client, f"claim{index}@example.com", role=role)
        assert resp.status_code == 403, role
    assert client.post(
        "/api/auth/login", json={"email": "claim0@example.com", "password": "secret"}
    ).status_code == 401

    unknown = _register(client, "ghost@example.com", role="Auditor")
    assert unknown.status_code == 422


def test_self_registered_learner_cannot_sign_off_iqa_row(client):
    ids = seed_sampled_learner()
    token = _register(client, "sneaky@example.com").json()["access_token"]
    resp = client.patch(
        f"/api/units/{ids['unit_id']}/confirmation/IQA",
        json={"comment": "Looks fine", "completed": True},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 403


def test_admin_assigns_staff_role(client):
    token = _register(client, "new-iqa@example.com").json()["access_token"]
    user_headers = {"Authorization": f"Bearer {token}"}
    user_id = client.get("/api/auth/me", headers=user_headers).json()["id"]
    admin_headers, _ = create_user_headers("IQA", is_admin=True)
    trainer_headers, _ = create_user_headers("Trainer")

    denied = client.put(f"/api/users/{user_id}/role", json={"role": "IQA"}, headers=trainer_headers)
    assert denied.status_code == 403
    self_promote = client.put(f"/api/users/{user_id}/role", json={"role": "IQA"}, headers=user_headers)
    assert self_promote.status_code == 403

    assigned = client.put(f"/api/users/{user_id}/role", json={"role": "Lead Assessor"}, headers=admin_headers)
    assert assigned.status_code == 200
    assert assigned.json()["role"] == "Lead Assessor"
    assert client.get("/api/auth/me", headers=user_headers).json()["role"] == "Lead Assessor"

    logs = client.get("/api/audit/", params={"target_type": "user"}, headers=admin_headers).json()
    assert any(log["action"] == "role_assigned" and log["target_id"] == user_id for log in logs)

    ids = seed_sampled_learner()
    signed = client.patch(
        f"/api/units/{ids['unit_id']}/confirmation/{quote('Lead Assessor')}",
        json={"comment": "Assessed", "completed": True},
        headers=user_headers,
    )
    assert signed.status_code == 200


def test_login_wrong_password(client):
    _register(client, "wrong-pass@example.com")
    resp = client.post("/api/auth/login", json={"email": "wrong-pass@example.com", "password": "wrong"})
    assert resp.status_code == 401


def test_requests_without_token_are_rejected(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401
