from unittest import mock

import httpx
import pytest
import pytest_asyncio

from uwuweb.core.database import get_session
from uwuweb.core.jwt_auth import jwt_manager
from uwuweb.attendance.models import JustificationStatus
from uwuweb.attendance.services.file_storage import get_file_storage
from uwuweb.main import app

TEST_PASSWORD = "correct horse battery"
PDF_BYTES = b"%PDF-1.4\n%api test\n"


@pytest_asyncio.fixture
async def client(session_factory, storage, school):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_file_storage] = lambda: storage

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth(school, username):
    user = school.users[username]
    role = {
        "admin": "admin",
        "mojca": "teacher",
        "jure": "teacher",
        "petra": "parent",
    }.get(username, "student")
    token = jwt_manager.create_access_token(user_id=user.id, role=role)
    return {"Authorization": f"Bearer {token}"}


class TestAuth:
    async def test_login_and_me(self, client, school):
        response = await client.post(
            "/api/v1/auth/login", json={"username": "mojca", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["role"] == "teacher"

        me = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {body['access_token']}"},
        )
        assert me.status_code == 200
        assert me.json() == {
            "user_id": school.users["mojca"].id,
            "username": "mojca",
            "role": "teacher",
            "scoped_id": school.teachers.mojca.id,
        }

    async def test_wrong_password(self, client):
        response = await client.post(
            "/api/v1/auth/login", json={"username": "mojca", "password": "nope"}
        )

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "AUTHENTICATION_ERROR"
        assert body["message"] == "Invalid username or password"
        assert body["path"] == "/api/v1/auth/login"

    async def test_missing_and_invalid_token(self, client):
        assert (await client.get("/api/v1/auth/me")).status_code == 401

        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    async def test_outdated_role_in_token(self, client, school):
        token = jwt_manager.create_access_token(
            user_id=school.users["ana"].id, role="teacher"
        )

        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401


class TestJustificationFlow:
    async def test_submit_review_and_download(self, client, school):
        attendance_id = school.records.ana_absent.id

        submitted = await client.post(
            "/api/v1/justifications/submit",
            data={"attendance_id": str(attendance_id), "justification_text": "sick"},
            files={"justification_file": ("note.pdf", PDF_BYTES, "application/pdf")},
            headers=auth(school, "ana"),
        )
        assert submitted.status_code == 200
        assert submitted.json()["file_uploaded"] is True

        pending = await client.get(
            "/api/v1/justifications",
            params={"status": "pending"},
            headers=auth(school, "mojca"),
        )
        assert pending.status_code == 200
        items = pending.json()["justifications"]
        assert [item["id"] for item in items] == [attendance_id]
        assert items[0]["formatted_date"] == "04.03.2024"
        assert items[0]["has_justification_file"] is True

        download = await client.get(
            f"/api/v1/justifications/{attendance_id}/file",
            headers=auth(school, "mojca"),
        )
        assert download.status_code == 200
        assert download.content == PDF_BYTES
        assert download.headers["content-type"] == "application/pdf"
        assert "Ana_Novak_1A_justification.pdf" in download.headers["content-disposition"]

        decided = await client.post(
            "/api/v1/justifications/decide",
            json={"attendance_id": attendance_id, "approved": True},
            headers=auth(school, "mojca"),
        )
        assert decided.status_code == 200

        detail = await client.get(
            f"/api/v1/justifications/{attendance_id}", headers=auth(school, "petra")
        )
        assert detail.status_code == 200
        justification = detail.json()["justification"]
        assert justification["justification_status"] == JustificationStatus.approved.value
        assert justification["teacher_username"] == "mojca"

    async def test_invalid_file_is_rejected(self, client, school, storage):
        response = await client.post(
            "/api/v1/justifications/submit",
            data={"attendance_id": str(school.records.ana_absent.id)},
            files={"justification_file": ("note.pdf", b"MZ not really a pdf", "application/pdf")},
            headers=auth(school, "ana"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert not storage.base_dir.exists() or not any(storage.base_dir.iterdir())

    async def test_reject_without_reason(self, client, school):
        response = await client.post(
            "/api/v1/justifications/decide",
            json={"attendance_id": school.records.ana_absent.id, "approved": False},
            headers=auth(school, "mojca"),
        )

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_decision_permissions(self, client, school):
        attendance_id = school.records.ana_absent.id
        await client.post(
            "/api/v1/justifications/submit",
            data={"attendance_id": str(attendance_id), "justification_text": "sick"},
            headers=auth(school, "ana"),
        )
        decision = {"attendance_id": attendance_id, "approved": False, "reject_reason": "no"}

        not_assigned = await client.post(
            "/api/v1/justifications/decide", json=decision, headers=auth(school, "jure")
        )
        student = await client.post(
            "/api/v1/justifications/decide", json=decision, headers=auth(school, "ana")
        )

        assert not_assigned.status_code == 403
        assert student.status_code == 403
        assert student.json()["details"] == {"role": "student"}

    async def test_teacher_cannot_submit(self, client, school):
        response = await client.post(
            "/api/v1/justifications/submit",
            data={"attendance_id": str(school.records.ana_absent.id), "justification_text": "x"},
            headers=auth(school, "mojca"),
        )

        assert response.status_code == 403

    async def test_unknown_record(self, client, school):
        response = await client.get(
            "/api/v1/justifications/9999", headers=auth(school, "admin")
        )

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"


class TestAttendance:
    async def test_period_lifecycle(self, client, school):
        headers = auth(school, "mojca")

        created = await client.post(
            "/api/v1/attendance/periods",
            json={
                "class_subject_id": school.class_subjects.math_1a.id,
                "period_date": "2024-03-06",
                "period_label": "4",
            },
            headers=headers,
        )
        assert created.status_code == 201
        period_id = created.json()["id"]

        bulk = await client.post(
            "/api/v1/attendance/records/bulk",
            json={
                "period_id": period_id,
                "entries": [
                    {"enrollment_id": school.enrollments.ana.id, "status": "A"},
                    {"enrollment_id": school.enrollments.bor.id, "status": "P"},
                ],
            },
            headers=headers,
        )
        assert bulk.status_code == 200
        assert bulk.json()["saved"] == 2

        deleted = await client.delete(
            f"/api/v1/attendance/periods/{period_id}", headers=headers
        )
        assert deleted.status_code == 200
        assert deleted.json()["deleted_records"] == 2

    async def test_students_cannot_record(self, client, school):
        response = await client.post(
            "/api/v1/attendance/records",
            json={
                "period_id": school.periods.period_1.id,
                "enrollment_id": school.enrollments.ana.id,
                "status": "P",
            },
            headers=auth(school, "ana"),
        )

        assert response.status_code == 403

    async def test_student_report(self, client, school):
        response = await client.get(
            f"/api/v1/attendance/students/{school.students.ana.id}",
            params={"status": "A"},
            headers=auth(school, "petra"),
        )

        assert response.status_code == 200
        body = response.json()
        assert [r["id"] for r in body["records"]] == [school.records.ana_absent.id]
        assert body["summary"]["absent"] == 1
        assert body["summary"]["attendance_rate"] == 0

    async def test_report_date_range(self, client, school):
        response = await client.get(
            f"/api/v1/attendance/students/{school.students.ana.id}",
            params={"date_from": "2024-03-05", "date_to": "2024-03-01"},
            headers=auth(school, "admin"),
        )

        assert response.status_code == 400


class TestAmbient:
    async def test_security_headers_and_request_id(self, client, school):
        response = await client.get("/api/v1/auth/me", headers=auth(school, "ana"))

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Cache-Control"] == "no-store"
        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.parametrize(
        "side_effect, status, database",
        [
            (None, "healthy", "connected"),
            (ConnectionError("db down"), "degraded", "unavailable"),
        ],
    )
    async def test_health(self, client, side_effect, status, database):
        from uwuweb.core.database import db_manager

        check = mock.AsyncMock(return_value=True, side_effect=side_effect)
        with mock.patch.object(db_manager, "check_connection", check):
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == status
        assert response.json()["database"] == database

    async def test_health_reports_error_counts(self, client):
        from uwuweb.core.database import db_manager
        from uwuweb.core.logging_utils import ErrorTracker

        tracker = ErrorTracker()
        tracker.track_error("HTTP_500", "boom", {"path": "/api/v1/justifications/1"})
        tracker.track_error("HTTP_500", "boom again")

        check = mock.AsyncMock(return_value=True)
        with mock.patch.object(db_manager, "check_connection", check), \
                mock.patch("uwuweb.main.error_tracker", tracker):
            response = await client.get("/health")

        errors = response.json()["errors"]
        assert errors == {"total": 2, "by_type": {"HTTP_500": 2}}
        assert "boom" not in response.text
