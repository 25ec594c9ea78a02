"""
Tests for routes/grades.py and the app's error mapping.
"""

import os
import sys
import pytest
import httpx
from bson import ObjectId

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from main import app

CYCLE = 2025


@pytest.fixture
async def client(service):
    app.state.grading_service = service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _payload(school, **overrides):
    body = {
        "student": str(school.zeta),
        "subject": str(school.math),
        "course": str(school.basico),
        "period": 1,
        "cycle": CYCLE,
        "classwork": 50,
        "exam": 30,
        "recorded_by": str(school.teacher),
    }
    body.update(overrides)
    return body


class TestGradeEndpoints:

    async def test_register(self, client, school):
        resp = await client.post("/api/grades/", json=_payload(school))
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["grade"]["total"] == 80

    async def test_duplicate_maps_to_409(self, client, school):
        await client.post("/api/grades/", json=_payload(school))
        resp = await client.post("/api/grades/", json=_payload(school, classwork=10))
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "DUPLICATE"

    async def test_out_of_range_maps_to_422(self, client, school):
        resp = await client.post("/api/grades/", json=_payload(school, exam=41))
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_missing_body_field_uses_error_envelope(self, client, school):
        resp = await client.post("/api/grades/", json={"subject": str(school.math)})
        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert any(d["field"] == "body.student" for d in body["error"]["details"])

    async def test_bad_query_type_uses_error_envelope(self, client):
        resp = await client.get("/api/grades/", params={"cycle": "abc"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_subject_of_another_course_maps_to_422(self, client, school):
        resp = await client.post("/api/grades/", json=_payload(school, subject=str(school.physics)))
        assert resp.status_code == 422

    async def test_not_enrolled_maps_to_400(self, client, school):
        resp = await client.post("/api/grades/", json=_payload(school, student=str(school.unenrolled)))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "PRECONDITION_FAILED"

    async def test_edit_and_delete(self, client, school):
        created = (await client.post("/api/grades/", json=_payload(school))).json()["grade"]

        resp = await client.put(f"/api/grades/{created['id']}", json={"exam": 20})
        assert resp.status_code == 200
        assert resp.json()["grade"]["total"] == 70

        resp = await client.delete(f"/api/grades/{created['id']}")
        assert resp.json()["grade"]["active"] is False

        resp = await client.put(f"/api/grades/{created['id']}", json={"exam": 25})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INACTIVE"

    async def test_unknown_grade_is_404(self, client):
        resp = await client.get(f"/api/grades/{ObjectId()}")
        assert resp.status_code == 404

    async def test_list(self, client, school):
        await client.post("/api/grades/", json=_payload(school))
        resp = await client.get("/api/grades/", params={"cycle": CYCLE, "period": 1})
        assert resp.json()["total"] == 1


class TestReportEndpoints:

    async def test_student_summary(self, client, school):
        await client.post("/api/grades/", json=_payload(school))
        resp = await client.get(f"/api/grades/student/{school.zeta}/{CYCLE}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["total_subjects"] == 3
        math = next(s for s in body["subjects"] if s["subject"] == "Matemática")
        assert math["periods"]["1"] == 80
        assert math["periods"]["2"] is None

    async def test_summary_without_enrollment(self, client, school):
        resp = await client.get(f"/api/grades/student/{school.unenrolled}/{CYCLE}")
        assert resp.status_code == 404

    async def test_roster(self, client, school):
        await client.post("/api/grades/", json=_payload(school))
        resp = await client.get(
            f"/api/grades/roster/{school.basico}/{school.math}/1", params={"cycle": CYCLE}
        )
        body = resp.json()
        assert body["total_students"] == 3
        assert body["present_count"] == 1

    async def test_transcript_pdf(self, client, school):
        await client.post("/api/grades/", json=_payload(school))
        resp = await client.get(f"/api/grades/transcript/{school.zeta}/{CYCLE}")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert "boleta_E-001_2025.pdf" in resp.headers["content-disposition"]
        assert resp.content[:5] == b"%PDF-"

    async def test_transcript_without_enrollment(self, client, school):
        resp = await client.get(f"/api/grades/transcript/{school.zeta}/2030")
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/json")


class TestAppEndpoints:

    async def test_health(self, client):
        resp = await client.get("/api/health")
        assert resp.json()["status"] == "ok"

    async def test_config_lists_passing_scores(self, client):
        body = (await client.get("/api/config")).json()
        assert body["passing_scores"]["DIVERSIFICADO"] == 70
        assert body["passing_scores"]["BASICO"] == 60
