import uuid
from urllib.parse import quote

from qa_sampling import models
from qa_sampling.services import confirmations
from qa_sampling.services.confirmations import CONFIRMATION_STATEMENTS

from .conftest import TestingSessionLocal, client, create_user_headers, seed_sampled_learner


def _url(unit_id, role, suffix=""):
    return f"/api/units/{unit_id}/confirmation/{quote(role)}{suffix}"


def _row(rows, role):
    return next(row for row in rows if row["role"] == role)


def test_roster_is_materialised_in_order(client):
    ids = seed_sampled_learner()
    headers, _ = create_user_headers("Employer")
    resp = client.get(f"/api/units/{ids['unit_id']}/confirmation", headers=headers)
    assert resp.status_code == 200
    rows = resp.json()
    assert [row["role"] for row in rows] == ["Learner", "Trainer", "Lead Assessor", "Employer", "IQA", "EQA"]
    assert [row["statement"] for row in rows] == [statement for _, statement in CONFIRMATION_STATEMENTS]
    assert all(row["completed"] is False for row in rows)
    assert [row["role"] for row in rows if row["can_edit"]] == ["Employer"]

    again = client.get(f"/api/units/{ids['unit_id']}/confirmation", headers=headers).json()
    assert [row["assignment_review_id"] for row in again] == [row["assignment_review_id"] for row in rows]


def test_roster_created_by_another_session_is_reused():
    ids = seed_sampled_learner(with_roster=False)
    unit_id = uuid.UUID(ids["unit_id"])
    first = TestingSessionLocal()
    second = TestingSessionLocal()
    try:
        stale_unit = second.get(models.SampledUnit, unit_id)
        assert stale_unit.confirmations == []

        created = confirmations.list_confirmations(first, unit_id=unit_id)
        first.commit()
        created_ids = [row.id for row in created]

        rows = confirmations.ensure_roster(second, stale_unit)
        second.commit()
        assert [row.id for row in rows] == created_ids
        assert [row.role for row in rows] == [role for role, _ in CONFIRMATION_STATEMENTS]
        count = (
            second.query(models.UnitConfirmation)
            .filter(models.UnitConfirmation.sampled_unit_id == unit_id)
            .count()
        )
        assert count == len(CONFIRMATION_STATEMENTS)
    finally:
        first.close()
        second.close()


def test_unit_without_roster_gets_rows_on_first_read(client):
    ids = seed_sampled_learner(with_roster=False)
    headers, _ = create_user_headers("IQA")
    rows = client.get(f"/api/units/{ids['unit_id']}/confirmation", headers=headers).json()
    assert [row["role"] for row in rows] == [role for role, _ in CONFIRMATION_STATEMENTS]


def test_employer_cannot_toggle_iqa_row(client):
    ids = seed_sampled_learner()
    headers, _ = create_user_headers("Employer")
    resp = client.patch(_url(ids["unit_id"], "IQA"), json={"completed": True, "comment": "Looks fine"}, headers=headers)
    assert resp.status_code == 403


def test_overlong_comment_keeps_row_pending(client):
    ids = seed_sampled_learner()
    headers, _ = create_user_headers("IQA")
    resp = client.patch(_url(ids["unit_id"], "IQA"), json={"comment": "c" * 501}, headers=headers)
    assert resp.status_code == 422

    rows = client.get(f"/api/units/{ids['unit_id']}/confirmation", headers=headers).json()
    iqa = _row(rows, "IQA")
    assert iqa["completed"] is False
    assert iqa["comments"] == ""


def test_sign_off_requires_prior_comment(client):
    ids = seed_sampled_learner()
    headers, _ = create_user_headers("Learner")
    resp = client.patch(_url(ids["unit_id"], "Learner"), json={"completed": True}, headers=headers)
    assert resp.status_code == 422
    blank = client.patch(_url(ids["unit_id"], "Learner"), json={"completed": True, "comment": "   "}, headers=headers)
    assert blank.status_code == 422

    rows = client.get(f"/api/units/{ids['unit_id']}/confirmation", headers=headers).json()
    assert _row(rows, "Learner")["completed"] is False


def test_comment_then_sign_off_locks_row(client):
    ids = seed_sampled_learner()
    headers, _ = create_user_headers("Lead Assessor", full_name="Lena Lead")
    url = _url(ids["unit_id"], "Lead Assessor")

    commented = client.patch(url, json={"comment": "Countersigned"}, headers=headers)
    assert commented.status_code == 200
    assert _row(commented.json(), "Lead Assessor")["comments"] == "Countersigned"

    signed = client.patch(url, json={"completed": True}, headers=headers)
    assert signed.status_code == 200
    row = _row(signed.json(), "Lead Assessor")
    assert row["completed"] is True
    assert row["signed_off_by"] == "Lena Lead"
    assert row["dated"] is not None
    assert row["can_edit"] is False

    assert client.patch(url, json={"completed": True}, headers=headers).status_code == 409
    assert client.patch(url, json={"completed": False}, headers=headers).status_code == 409
    assert client.patch(url, json={"comment": "changed"}, headers=headers).status_code == 409
    upload = client.post(
        url + "/file",
        files={"upload": ("sig.pdf", b"%PDF-1.4", "application/pdf")},
        headers=headers,
    )
    assert upload.status_code == 409


def test_confirmation_file_upload_and_delete(client, upload_dir):
    ids = seed_sampled_learner()
    headers, _ = create_user_headers("Employer")
    url = _url(ids["unit_id"], "Employer", "/file")

    uploaded = client.post(url, files={"upload": ("review.pdf", b"%PDF-1.4 data", "application/pdf")}, headers=headers)
    assert uploaded.status_code == 200, uploaded.text
    assert uploaded.json()["file"]["file_name"] == "review.pdf"
    assert uploaded.json()["role"] == "Employer"

    downloaded = client.get(url, headers=headers)
    assert downloaded.status_code == 200
    assert downloaded.content == b"%PDF-1.4 data"
    assert downloaded.headers["content-type"] == "application/pdf"

    deleted = client.delete(url, headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["file"] is None
    assert not any(upload_dir.rglob("*review.pdf"))
    assert client.delete(url, headers=headers).status_code == 404
    assert client.get(url, headers=headers).status_code == 404


def test_admin_reset_returns_row_to_pending(client):
    ids = seed_sampled_learner()
    iqa_headers, _ = create_user_headers("IQA")
    admin_headers, admin_id = create_user_headers("Admin", is_admin=True)
    url = _url(ids["unit_id"], "IQA")

    client.patch(url, json={"comment": "Sampled", "completed": True}, headers=iqa_headers)

    # admin has no write access to rows it does not own
    assert client.patch(url, json={"comment": "override"}, headers=admin_headers).status_code == 403
    assert client.post(url + "/reset", headers=iqa_headers).status_code == 403

    reset = client.post(url + "/reset", headers=admin_headers)
    assert reset.status_code == 200
    row = _row(reset.json(), "IQA")
    assert row["completed"] is False
    assert row["signed_off_by"] is None
    assert row["dated"] is None
    assert row["comments"] == "Sampled"

    logs = client.get("/api/audit/", params={"target_type": "unit_confirmation"}, headers=admin_headers).json()
    reset_logs = [log for log in logs if log["action"] == "confirmation_reset"]
    assert len(reset_logs) == 1 and reset_logs[0]["user_id"] == admin_id

    # a pending row has nothing to reset
    pending = client.post(url + "/reset", headers=admin_headers)
    assert pending.status_code == 409
    logs = client.get("/api/audit/", params={"target_type": "unit_confirmation"}, headers=admin_headers).json()
    assert [log["action"] for log in logs].count("confirmation_reset") == 1

    again = client.patch(url, json={"completed": True}, headers=iqa_headers)
    assert again.status_code == 200
    assert _row(again.json(), "IQA")["completed"] is True


def test_unknown_unit_and_role(client):
    headers, _ = create_user_headers("Trainer")
    assert client.get(f"/api/units/{uuid.uuid4()}/confirmation", headers=headers).status_code == 404
    assert client.get("/api/units/bogus/confirmation", headers=headers).status_code == 400
    ids = seed_sampled_learner()
    assert client.patch(_url(ids["unit_id"], "LIQA"), json={"comment": "x"}, headers=headers).status_code == 422
