import uuid

from .conftest import client, create_evidence, create_user_headers, seed_sampled_learner


def _review(client, evidence_id, headers, **body):
    return client.patch(f"/api/evidence/{evidence_id}/review", json=body, headers=headers)


def test_link_evidence_and_list_for_unit(client):
    ids = seed_sampled_learner()
    learner_headers, _ = create_user_headers("Learner")

    resp = client.post(
        f"/api/plans/{ids['detail_id']}/units/{ids['unit_id']}/evidence",
        json={
            "title": "Witness statement",
            "assessment_method": ["WO", "PD", "WO"],
            "mapped_sub_unit_ids": [ids["sub_unit_ids"][0]],
        },
        headers=learner_headers,
    )
    assert resp.status_code == 201, resp.text
    item = resp.json()
    assert item["unit_code"] == "U1"
    assert item["assessment_method"] == ["WO", "PD"]
    assert item["reviews"] == {}
    assert [m["code"] for m in item["mapped_sub_units"]] == ["1.1"]
    assert item["mapped_sub_units"][0]["learner_mapped"] is True

    listed = client.get(
        f"/api/plans/{ids['detail_id']}/evidence",
        params={"unit_code": "U1"},
        headers=learner_headers,
    )
    assert listed.status_code == 200
    assert [e["assignment_id"] for e in listed.json()] == [item["assignment_id"]]

    other_unit = client.get(
        f"/api/plans/{ids['detail_id']}/evidence",
        params={"unit_code": "U99"},
        headers=learner_headers,
    )
    assert other_unit.json() == []


def test_link_evidence_rejects_unknown_method_and_foreign_sub_unit(client):
    ids = seed_sampled_learner()
    other = seed_sampled_learner()
    learner_headers, _ = create_user_headers("Learner")
    url = f"/api/plans/{ids['detail_id']}/units/{ids['unit_id']}/evidence"

    bad_method = client.post(url, json={"title": "E", "assessment_method": ["XX"]}, headers=learner_headers)
    assert bad_method.status_code == 422

    foreign = client.post(
        url,
        json={"title": "E", "mapped_sub_unit_ids": [other["sub_unit_ids"][0]]},
        headers=learner_headers,
    )
    assert foreign.status_code == 422


def test_link_evidence_requires_learner_or_trainer(client):
    ids = seed_sampled_learner()
    employer_headers, _ = create_user_headers("Employer")
    resp = client.post(
        f"/api/plans/{ids['detail_id']}/units/{ids['unit_id']}/evidence",
        json={"title": "E"},
        headers=employer_headers,
    )
    assert resp.status_code == 403


def test_trainer_sign_off_flow(client):
    ids = seed_sampled_learner()
    evidence_id = create_evidence(ids)
    trainer_headers, _ = create_user_headers("Trainer", full_name="Tina Trainer")

    missing_comment = _review(client, evidence_id, trainer_headers, role="Trainer", completed=True)
    assert missing_comment.status_code == 422

    commented = _review(client, evidence_id, trainer_headers, role="Trainer", completed=False, comment="Mapped to 1.1")
    assert commented.status_code == 200
    assert commented.json()["reviews"]["Trainer"]["completed"] is False
    assert commented.json()["reviews"]["Trainer"]["signed_off_at"] is None

    # the prior comment satisfies the sign-off requirement
    signed = _review(client, evidence_id, trainer_headers, role="Trainer", completed=True)
    assert signed.status_code == 200
    entry = signed.json()["reviews"]["Trainer"]
    assert entry["completed"] is True
    assert entry["comment"] == "Mapped to 1.1"
    assert entry["signed_off_by"] == "Tina Trainer"
    assert entry["signed_off_at"] is not None

    reopen = _review(client, evidence_id, trainer_headers, role="Trainer", completed=False)
    assert reopen.status_code == 409


def test_comment_can_be_edited_after_sign_off(client):
    ids = seed_sampled_learner()
    evidence_id = create_evidence(ids)
    trainer_headers, _ = create_user_headers("Trainer")

    signed = _review(client, evidence_id, trainer_headers, role="Trainer", completed=True, comment="ok")
    assert signed.status_code == 200
    signed_at = signed.json()["reviews"]["Trainer"]["signed_off_at"]

    edited = _review(client, evidence_id, trainer_headers, role="Trainer", comment="typo fixed")
    assert edited.status_code == 200, edited.text
    entry = edited.json()["reviews"]["Trainer"]
    assert entry["comment"] == "typo fixed"
    assert entry["completed"] is True
    assert entry["signed_off_at"] == signed_at

    cleared = _review(client, evidence_id, trainer_headers, role="Trainer", comment="  ")
    assert cleared.status_code == 422
    assert client.get(
        f"/api/plans/{ids['detail_id']}/evidence", headers=trainer_headers
    ).json()[0]["reviews"]["Trainer"]["comment"] == "typo fixed"


def test_review_of_another_role_is_forbidden(client):
    ids = seed_sampled_learner()
    evidence_id = create_evidence(ids)
    employer_headers, _ = create_user_headers("Employer")
    admin_headers, _ = create_user_headers("Admin", is_admin=True)

    resp = _review(client, evidence_id, employer_headers, role="Trainer", completed=True, comment="ok")
    assert resp.status_code == 403
    admin = _review(client, evidence_id, admin_headers, role="IQA", completed=True, comment="ok")
    assert admin.status_code == 403


def test_overlong_comment_leaves_review_unchanged(client):
    ids = seed_sampled_learner()
    evidence_id = create_evidence(ids, reviews={"Trainer": True})
    iqa_headers, _ = create_user_headers("IQA")

    resp = _review(client, evidence_id, iqa_headers, role="IQA", completed=False, comment="x" * 501)
    assert resp.status_code == 422

    listed = client.get(f"/api/plans/{ids['detail_id']}/evidence", headers=iqa_headers).json()
    assert "IQA" not in listed[0]["reviews"]

    ok = _review(client, evidence_id, iqa_headers, role="IQA", completed=False, comment="x" * 500)
    assert ok.status_code == 200


def test_iqa_cannot_complete_before_trainer(client):
    ids = seed_sampled_learner()
    evidence_id = create_evidence(ids)
    iqa_headers, _ = create_user_headers("IQA")
    liqa_headers, _ = create_user_headers("LIQA")

    blocked = _review(client, evidence_id, iqa_headers, role="IQA", completed=True, comment="Valid")
    assert blocked.status_code == 409
    blocked_liqa = _review(client, evidence_id, liqa_headers, role="LIQA", completed=True, comment="Valid")
    assert blocked_liqa.status_code == 409

    trainer_headers, _ = create_user_headers("Trainer")
    _review(client, evidence_id, trainer_headers, role="Trainer", completed=True, comment="Mapped")
    allowed = _review(client, evidence_id, iqa_headers, role="IQA", completed=True, comment="Valid")
    assert allowed.status_code == 200
    assert allowed.json()["reviews"]["IQA"]["completed"] is True


def test_progress_reflects_latest_reviews(client):
    ids = seed_sampled_learner()
    first = create_evidence(ids, title="E1")
    second = create_evidence(ids, title="E2")
    create_evidence(ids, title="E3")
    trainer_headers, _ = create_user_headers("Trainer")
    iqa_headers, _ = create_user_headers("IQA")

    progress_url = f"/api/units/{ids['unit_id']}/progress"
    assert client.get(progress_url, headers=trainer_headers).json() == {
        "pending_trainer_map": 3,
        "pending_iqa_map": 0,
        "iqa_checked": 0,
        "total": 3,
    }

    _review(client, first, trainer_headers, role="Trainer", completed=True, comment="ok")
    _review(client, second, trainer_headers, role="Trainer", completed=True, comment="ok")
    _review(client, first, iqa_headers, role="IQA", completed=True, comment="Sufficient")

    assert client.get(progress_url, headers=iqa_headers).json() == {
        "pending_trainer_map": 1,
        "pending_iqa_map": 1,
        "iqa_checked": 1,
        "total": 3,
    }


def test_review_file_upload_and_delete(client, upload_dir):
    ids = seed_sampled_learner()
    evidence_id = create_evidence(ids)
    trainer_headers, _ = create_user_headers("Trainer")
    employer_headers, _ = create_user_headers("Employer")

    upload = client.post(
        f"/api/evidence/{evidence_id}/review/Trainer/file",
        files={"upload": ("notes.txt", b"observation notes", "text/plain")},
        headers=trainer_headers,
    )
    assert upload.status_code == 200, upload.text
    file_meta = upload.json()["reviews"]["Trainer"]["file"]
    assert file_meta == {"file_name": "notes.txt", "file_type": "text/plain", "file_size": 17}
    assert any(upload_dir.rglob("*notes.txt"))

    downloaded = client.get(f"/api/evidence/{evidence_id}/review/Trainer/file", headers=employer_headers)
    assert downloaded.status_code == 200
    assert downloaded.content == b"observation notes"
    assert 'filename="notes.txt"' in downloaded.headers["content-disposition"]

    forbidden = client.delete(f"/api/evidence/{evidence_id}/review/Trainer/file", headers=employer_headers)
    assert forbidden.status_code == 403

    deleted = client.delete(f"/api/evidence/{evidence_id}/review/Trainer/file", headers=trainer_headers)
    assert deleted.status_code == 200
    assert deleted.json()["reviews"]["Trainer"]["file"] is None
    assert not any(upload_dir.rglob("*notes.txt"))

    again = client.delete(f"/api/evidence/{evidence_id}/review/Trainer/file", headers=trainer_headers)
    assert again.status_code == 404
    missing = client.get(f"/api/evidence/{evidence_id}/review/Trainer/file", headers=trainer_headers)
    assert missing.status_code == 404


def test_unknown_and_malformed_identifiers(client):
    trainer_headers, _ = create_user_headers("Trainer")
    missing = _review(client, uuid.uuid4(), trainer_headers, role="Trainer", completed=False, comment="x")
    assert missing.status_code == 404
    malformed = _review(client, "not-a-uuid", trainer_headers, role="Trainer", completed=False, comment="x")
    assert malformed.status_code == 400
    unknown_role = _review(client, uuid.uuid4(), trainer_headers, role="Assessor", completed=False)
    assert unknown_role.status_code == 422
    missing_plan = client.get(f"/api/plans/{uuid.uuid4()}/evidence", headers=trainer_headers)
    assert missing_plan.status_code == 404


def test_review_changes_are_audited(client):
    ids = seed_sampled_learner()
    evidence_id = create_evidence(ids)
    trainer_headers, _ = create_user_headers("Trainer")
    _review(client, evidence_id, trainer_headers, role="Trainer", completed=True, comment="Mapped")

    logs = client.get("/api/audit/", headers=trainer_headers).json()
    assert any(
        log["action"] == "evidence_review_signed_off" and log["details"]["evidence_id"] == evidence_id
        for log in logs
    )
