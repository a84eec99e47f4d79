import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path
import shutil

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from qa_sampling import models
from qa_sampling.auth import create_access_token
from qa_sampling.main import app
from qa_sampling.database import Base, get_db
from qa_sampling.services.confirmations import new_roster

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def upload_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    os.environ["UPLOAD_DIR"] = str(d)
    yield d
    shutil.rmtree(d, ignore_errors=True)

@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def create_user_headers(role: str = "Learner", *, is_admin: bool = False, full_name: str | None = None):
    """Insert a user directly and return (headers, user_id) for API calls."""

    email = f"{role.replace(' ', '-').lower()}+{uuid.uuid4()}@example.com"
    token = create_access_token({"sub": email})
    db = TestingSessionLocal()
    try:
        user = models.User(
            email=email,
            hashed_password="placeholder",
            full_name=full_name or f"{role} User",
            role=role,
            is_admin=is_admin,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        user_id = str(user.id)
    finally:
        db.close()
    return {"Authorization": f"Bearer {token}"}, user_id


def seed_sampled_learner(
    *,
    unit_code: str = "U1",
    sub_unit_codes: tuple[str, ...] = ("1.1", "1.2"),
    unit_type: str = "unit",
    course_core_type: str = "Standard",
    with_roster: bool = True,
):
    """Create a course unit with sub-units and one sampled learner on a plan.

    ``with_roster=False`` leaves the unit without confirmation rows. Returns a
    dict of string identifiers for the created rows.
    """

    db = TestingSessionLocal()
    try:
        course = models.Course(name=f"Course {uuid.uuid4().hex[:6]}", course_core_type=course_core_type)
        course_unit = models.CourseUnit(unit_code=unit_code, title=f"Unit {unit_code}", unit_type=unit_type)
        course_unit.sub_units = [models.CourseSubUnit(code=code, title=f"Criterion {code}") for code in sub_unit_codes]
        course.units.append(course_unit)
        plan = models.SamplePlan(name="Spring sample", course=course)
        learner = models.SamplePlanLearner(learner_name="Lee Learner", assessor_name="Ada Assessor")
        sampled_unit = models.SampledUnit(unit_code=unit_code, unit_name=f"Unit {unit_code}", course_unit=course_unit)
        if with_roster:
            sampled_unit.confirmations = new_roster()
        learner.units.append(sampled_unit)
        plan.learners.append(learner)
        db.add_all([course, plan])
        db.commit()
        return {
            "course_id": str(course.id),
            "course_unit_id": str(course_unit.id),
            "sub_unit_ids": [str(sub.id) for sub in course_unit.sub_units],
            "plan_id": str(plan.id),
            "detail_id": str(learner.id),
            "unit_id": str(sampled_unit.id),
        }
    finally:
        db.close()


def create_evidence(ids: dict, *, title: str = "Observation record", reviews: dict | None = None) -> str:
    """Insert an evidence item with optional pre-set reviews ({role: completed})."""

    db = TestingSessionLocal()
    try:
        evidence = models.EvidenceItem(
            sampled_unit_id=uuid.UUID(ids["unit_id"]),
            unit_code="U1",
            title=title,
            assessment_methods=["WO"],
        )
        for role, completed in (reviews or {}).items():
            evidence.reviews.append(
                models.EvidenceReview(role=role, completed=completed, comment="seeded" if completed else "")
            )
        db.add(evidence)
        db.commit()
        return str(evidence.id)
    finally:
        db.close()
