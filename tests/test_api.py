import pytest
from httpx import ASGITransport, AsyncClient

from app.api import deps
from app.main import app
from app.models import RecDocument

HEADERS = {"X-Actor-Id": "DK_0498", "X-Actor-Name": "Priya Recruiter"}


@pytest.fixture()
async def client(session_factory, reference_rows):
    async def _session_override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db_session] = _session_override
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture()
def ids(reference_rows):
    return {
        "candidate_id": reference_rows["candidate"].candidate_id,
        "project_id": reference_rows["project"].project_id,
        "role_id": reference_rows["role"].role_id,
    }


async def _nominate(client, ids):
    response = await client.post(
        "/assignments",
        json={**ids, "recruiter_person_id": "DK_0498"},
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["x-request-id"]

    tagged = await client.get("/health", headers={"X-Request-Id": "req-42"})
    assert tagged.headers["x-request-id"] == "req-42"


async def test_nominate_and_transition(client, ids):
    assignment = await _nominate(client, ids)
    assert assignment["sub_status"] == "nominated_initial"
    assert assignment["main_status_label"] == "Nominated"

    duplicate = await client.post("/assignments", json=ids, headers=HEADERS)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "conflict"

    moved = await client.post(
        f"/assignments/{assignment['assignment_id']}/sub-status",
        json={"sub_status": "pending_documents", "reason": "Waiting on passport"},
        headers=HEADERS,
    )
    assert moved.status_code == 200
    assert moved.json()["sub_status"] == "pending_documents"
    assert moved.json()["is_sent_for_document_verification"] is True

    history = await client.get(f"/assignments/{assignment['assignment_id']}/history")
    assert [row["status_sub_name"] for row in history.json()] == ["pending_documents", "nominated_initial"]
    assert history.json()[0]["changed_by_name"] == "Priya Recruiter"


async def test_error_shapes(client, ids):
    missing = await client.get("/assignments/9999")
    assert missing.status_code == 404
    assert missing.json() == {"detail": {"code": "not_found", "message": "Assignment 9999 not found"}}

    assignment = await _nominate(client, ids)
    unknown = await client.post(
        f"/assignments/{assignment['assignment_id']}/sub-status",
        json={"sub_status": "teleported"},
        headers=HEADERS,
    )
    assert unknown.status_code == 400
    assert unknown.json()["detail"]["code"] == "invalid_request"

    mismatched = await client.post(
        f"/assignments/{assignment['assignment_id']}/main-status",
        json={"main_status": "final", "sub_status": "on_hold"},
        headers=HEADERS,
    )
    assert mismatched.status_code == 409


async def test_interview_flow(client, ids):
    assignment = await _nominate(client, ids)
    body = {"assignment_id": assignment["assignment_id"], "scheduled_time": "2030-01-10T10:00:00"}

    created = await client.post("/interviews", json=body, headers=HEADERS)
    assert created.status_code == 201, created.text
    interview = created.json()
    assert interview["duration_minutes"] == 60
    assert interview["outcome"] is None
    assert interview["meeting_link"]

    overlap = await client.post(
        "/interviews",
        json={**body, "scheduled_time": "2030-01-10T10:15:00"},
        headers=HEADERS,
    )
    assert overlap.status_code == 409
    assert overlap.json()["detail"]["code"] == "slot_conflict"
    assert overlap.json()["detail"]["conflicting_interview_id"] == interview["interview_id"]

    outcome = await client.patch(
        f"/interviews/{interview['interview_id']}/outcome",
        json={"outcome": "passed", "sub_status": "interview_passed", "reason": "Strong clinical answers"},
        headers=HEADERS,
    )
    assert outcome.status_code == 200
    assert outcome.json()["outcome"] == "passed"

    history = await client.get(f"/interviews/{interview['interview_id']}/history")
    assert [row["status"] for row in history.json()] == ["passed", "scheduled"]

    current = await client.get(f"/assignments/{assignment['assignment_id']}")
    assert current.json()["sub_status"] == "interview_passed"

    dashboard = await client.get("/dashboard/interviews")
    assert dashboard.status_code == 200
    assert set(dashboard.json()) == {
        "this_week_count",
        "this_month_completed_count",
        "this_month_passed_count",
        "pass_rate",
    }


async def test_bulk_schedule_reports_per_item(client, ids):
    assignment = await _nominate(client, ids)
    response = await client.post(
        "/interviews/bulk",
        json={
            "items": [
                {"assignment_id": assignment["assignment_id"], "scheduled_time": "2030-02-01T09:00:00"},
                {"assignment_id": assignment["assignment_id"], "duration_minutes": 0},
            ]
        },
        headers=HEADERS,
    )
    assert response.status_code == 200
    results = response.json()
    assert [result["success"] for result in results] == [True, False]
    assert results[1]["code"] == "validation_error"
    assert results[0]["data"]["assignment_id"] == assignment["assignment_id"]


async def test_bulk_schedule_tolerates_non_object_items(client, ids):
    assignment = await _nominate(client, ids)
    response = await client.post(
        "/interviews/bulk",
        json={
            "items": [
                {"assignment_id": assignment["assignment_id"], "scheduled_time": "2030-02-01T09:00:00"},
                None,
                {"assignment_id": assignment["assignment_id"], "scheduled_time": "2030-02-02T09:00:00"},
            ]
        },
        headers=HEADERS,
    )
    assert response.status_code == 200
    results = response.json()
    assert [result["index"] for result in results] == [0, 1, 2]
    assert [result["success"] for result in results] == [True, False, True]
    assert results[1]["error"] == "Validation failed"
    assert results[1]["code"] == "validation_error"
    assert results[1]["details"]


async def test_listing_rejects_inverted_range(client):
    response = await client.get(
        "/interviews/upcoming",
        params={"date_from": "2024-05-02T00:00:00", "date_to": "2024-05-01T00:00:00"},
    )
    assert response.status_code == 422


async def test_processing_flow(client, ids, session_factory):
    assignment = await _nominate(client, ids)
    assignment_id = assignment["assignment_id"]

    started = await client.post(f"/processing/{assignment_id}/start", headers=HEADERS)
    assert started.status_code == 200
    assert len(started.json()) == 11
    assert started.json()[0]["status"] == "IN_PROGRESS"

    gate = await client.patch(f"/processing/{assignment_id}/steps/VISA", json={"status": "DONE"}, headers=HEADERS)
    assert gate.status_code == 409
    detail = gate.json()["detail"]
    assert detail["code"] == "gate_not_satisfied"
    assert detail["reasons"] == ["Submission date not recorded"]
    assert detail["submission_required"] is True

    submitted = await client.post(
        f"/processing/{assignment_id}/steps/VISA/submission-date",
        json={"submitted_at": "2024-06-01T09:00:00"},
        headers=HEADERS,
    )
    assert submitted.status_code == 200
    evaluation = await client.get(f"/processing/{assignment_id}/steps/VISA/gate")
    assert evaluation.json()["ready"] is True

    blank = await client.post(f"/processing/{assignment_id}/steps/TRAVEL/cancel", json={"reason": ""}, headers=HEADERS)
    assert blank.status_code == 422

    async with session_factory() as session:
        document = RecDocument(candidate_id=ids["candidate_id"], doc_type="passport")
        session.add(document)
        await session.commit()
        document_id = document.document_id

    url = f"/processing/{assignment_id}/steps/VISA/verifications"
    first = await client.post(url, json={"document_id": document_id}, headers=HEADERS)
    assert first.status_code == 201
    second = await client.post(url, json={"document_id": document_id}, headers=HEADERS)
    assert second.status_code == 200
    assert second.json()["detail"]["code"] == "already_in_processing"
    assert second.json()["detail"]["verification_id"] == first.json()["document_verification_id"]

    detail = await client.get(f"/processing/{assignment_id}")
    assert detail.json()["current_step_key"] == "MEDICAL_CERTIFICATE"

    verification_id = first.json()["document_verification_id"]
    reject_url = f"/processing/{assignment_id}/verifications/{verification_id}/reject"
    rejected = await client.post(reject_url, json={"reason": "Passport expired"}, headers=HEADERS)
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    repeat = await client.post(reject_url, json={"reason": "Passport expired"}, headers=HEADERS)
    assert repeat.status_code == 409
