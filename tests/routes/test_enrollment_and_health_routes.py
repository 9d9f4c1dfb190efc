from __future__ import annotations

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from marketplace.core.constants import API_VERSION
from marketplace.core.ulid_helper import generate_ulid
from marketplace.database import get_db
from marketplace.main import app
from marketplace.services.enrollment_service import EnrollmentService


def _override_db(factory):
    def _get_db():
        session = factory()
        try:
            yield session
            session.commit()
        finally:
            session.close()

    return _get_db


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_db] = _override_db(session_factory)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def enrollment(db, course):
    created = EnrollmentService(db).try_create(generate_ulid(), course.id)
    db.commit()
    return created


def test_health_reports_database_ok(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"
    assert body["version"] == API_VERSION


def test_health_degraded_when_database_unreachable(tmp_path):
    missing_dir = tmp_path / "missing" / "db.sqlite"
    broken = sessionmaker(bind=create_engine(f"sqlite:///{missing_dir}"))
    app.dependency_overrides[get_db] = _override_db(broken)
    try:
        response = TestClient(app).get("/api/v1/health")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"


def test_list_student_enrollments(client, enrollment):
    response = client.get(f"/api/v1/enrollments/students/{enrollment.student_id}")

    assert response.status_code == 200
    assert [e["course_id"] for e in response.json()] == [enrollment.course_id]


def test_update_progress_to_completion(client, enrollment):
    response = client.patch(
        f"/api/v1/enrollments/{enrollment.course_id}/progress",
        json={"student_id": enrollment.student_id, "progress": 100},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["completed_at"] is not None
    assert body["last_accessed_at"] is not None


def test_update_progress_out_of_range(client, enrollment):
    response = client.patch(
        f"/api/v1/enrollments/{enrollment.course_id}/progress",
        json={"student_id": enrollment.student_id, "progress": 120},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PROGRESS"


def test_update_progress_unknown_enrollment(client, course):
    response = client.patch(
        f"/api/v1/enrollments/{course.id}/progress",
        json={"student_id": generate_ulid(), "progress": 10},
    )

    assert response.status_code == 404
