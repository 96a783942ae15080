from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import placement_data_service
from apps_script_client import AppsScriptClient
from main import app
from placement_data_service import PlacementDataService, set_placement_data_service
from placement_errors import BackendResponseError, BackendTransportError
from recruiter_session import RecruiterSessionStore

STUDENTS = [
    {"regNo": "R1", "name": "Asha", "email": "asha@x.com", "department": "CSE", "company": "Acme", "phone": "101"},
    {"regNo": "R2", "name": "Ravi", "email": "ravi@x.com", "department": "ECE", "company": "Acme", "phone": "102"},
    {"regNo": "G1", "name": "Gopal", "email": "gopal@x.com", "department": "CSE", "company": "Globex", "phone": "201"},
]


@pytest.fixture
def backend(monkeypatch):
    def no_csv(url, timeout=None):
        raise BackendTransportError("HTTP error! status: 404")

    monkeypatch.setattr(placement_data_service, "download_csv", no_csv)

    fake = MagicMock(spec=AppsScriptClient)

    def fake_get(action, **params):
        if action == "getStudents":
            return {"success": True, "students": STUDENTS}
        if action == "getVerifications":
            return {"success": True, "verifications": []}
        if action == "checkStudentExists":
            return {"success": True, "exists": params["registrationNumber"] == "R1"}
        return {"success": True, "submissions": []}

    fake.get.side_effect = fake_get
    fake.post.return_value = {"success": True, "message": "ok"}

    set_placement_data_service(PlacementDataService(fake, cache_ttl_seconds=300))
    RecruiterSessionStore.reset()
    yield fake
    RecruiterSessionStore.reset()
    set_placement_data_service(None)


@pytest.fixture
def client(backend):
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["recruiter_sessions"] == 0


def test_companies(client):
    response = client.get("/api/companies")
    assert response.json() == {"success": True, "companies": ["Acme", "Globex"]}


def test_students_by_company_uses_wire_names(client):
    response = client.get("/api/students/company/acme")

    students = response.json()["students"]
    assert [s["regNo"] for s in students] == ["R1", "R2"]


def test_check_student(client):
    assert client.get("/api/check-student/R1").json()["exists"] is True
    assert client.get("/api/check-student/R9").json()["exists"] is False


def test_student_submission_validation_errors(client, backend):
    response = client.post(
        "/api/student-submission",
        json={"registrationNumber": "R1", "name": "Asha", "isPlaced": "no", "course": "CSE", "phone": "1"},
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "errors": ["Email address is required"]}
    backend.post.assert_not_called()


def test_student_submission_is_saved(client, backend):
    response = client.post(
        "/api/student-submission",
        json={
            "registrationNumber": "R1",
            "name": "Asha",
            "isPlaced": "yes",
            "company": "Acme",
            "course": "CSE",
            "phone": "9876543210",
            "email": "asha@x.com",
        },
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["submissionId"].startswith("SUB_")
    action, payload = backend.post.call_args.args
    assert action == "addStudentSubmission"
    assert payload["studentData"][:3] == ["R1", "Asha", "Acme"]


def test_insert_rows_rejects_other_actions(client):
    response = client.post("/api/insert-rows", json={"action": "delete", "values": [["a"]]})
    assert response.status_code == 400


def test_backend_error_message_is_passed_through(client, backend):
    backend.post.side_effect = BackendResponseError("Sheet is locked", action="write")

    response = client.post("/api/insert-rows", json={"action": "write", "values": [["a"]]})

    assert response.status_code == 502
    assert response.json()["error"] == "Sheet is locked"


def test_unknown_session_is_404(client):
    assert client.get("/api/recruiter/sessions/nope").status_code == 404


def test_recruiter_flow(client, backend):
    created = client.post("/api/recruiter/sessions").json()
    session_id = created["sessionId"]
    base = f"/api/recruiter/sessions/{session_id}"
    assert created["loaded"] is True
    assert created["rosterSize"] == 0

    summary = client.patch(f"{base}/recruiter", json={"field": "company", "value": "Acme"}).json()
    assert summary["rosterSize"] == 2
    client.patch(f"{base}/recruiter", json={"field": "name", "value": "Priya"})
    client.patch(f"{base}/recruiter", json={"field": "email", "value": "priya@acme.com"})

    updated = client.patch(f"{base}/feedback/R2", json={"status": "Joined", "stillWithUs": True})
    assert updated.json()["changed"] is True
    assert updated.json()["student"]["status"] == "Joined"

    listing = client.get(f"{base}/students", params={"status": "Joined"}).json()
    assert [s["regNo"] for s in listing["students"]] == ["R2"]

    result = client.post(f"{base}/submit").json()
    assert result["success"] is True
    assert result["submitted"] == 1
    action, payload = backend.post.call_args.args
    assert action == "write"
    assert payload["values"][0][:2] == ["Ravi", "R2"]

    assert client.delete(base).json() == {"success": True}
    assert client.get(base).status_code == 404


def test_feedback_patch_rejects_unknown_fields(client):
    session_id = client.post("/api/recruiter/sessions").json()["sessionId"]
    base = f"/api/recruiter/sessions/{session_id}"
    client.patch(f"{base}/recruiter", json={"field": "company", "value": "Acme"})

    response = client.patch(f"{base}/feedback/R1", json={"salary": 10})

    assert response.status_code == 422


def test_verify_requires_status(client, backend):
    session_id = client.post("/api/recruiter/sessions").json()["sessionId"]
    base = f"/api/recruiter/sessions/{session_id}"
    client.patch(f"{base}/recruiter", json={"field": "company", "value": "Acme"})

    response = client.post(
        f"{base}/students/R1/verify",
        json={"recruiterName": "Priya", "recruiterEmail": "priya@acme.com"},
    )

    assert response.status_code == 400
    assert response.json()["errors"] == ["Please select a status"]


def test_feedback_patch_cannot_mark_student_verified(client):
    session_id = client.post("/api/recruiter/sessions").json()["sessionId"]
    base = f"/api/recruiter/sessions/{session_id}"
    client.patch(f"{base}/recruiter", json={"field": "company", "value": "Acme"})

    response = client.patch(f"{base}/feedback/R1", json={"isVerified": True, "verificationDate": "2024-05-01"})

    assert response.status_code == 422
    listing = client.get(f"{base}/students", params={"verification": "verified"}).json()
    assert listing["students"] == []


def test_failed_roster_load_registers_no_session(client, backend):
    def students_down(action, **params):
        raise BackendTransportError("down")

    backend.get.side_effect = students_down

    response = client.post("/api/recruiter/sessions")

    assert response.status_code == 502
    assert RecruiterSessionStore.count() == 0


def test_update_student_overwrites_row(client, backend):
    response = client.post(
        "/api/update-student",
        json={
            "registrationNumber": "R1",
            "name": "Asha",
            "isPlaced": "yes",
            "company": "Globex",
            "course": "CSE",
            "phone": "9876543210",
            "email": "asha@x.com",
        },
    )

    assert response.status_code == 200
    assert response.json()["submissionId"].startswith("SUB_")
    action, payload = backend.post.call_args.args
    assert action == "updateExistingStudent"
    assert payload["studentData"][:3] == ["R1", "Asha", "Globex"]


def test_verify_student_submission(client, backend):
    response = client.post(
        "/api/verify-student",
        json={"verificationData": {"registrationNumber": "R1", "recruiterName": "Priya", "rating": "5"}},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    backend.post.assert_called_once_with(
        "verifyStudent",
        {"verificationData": {"registrationNumber": "R1", "recruiterName": "Priya", "rating": "5", "status": "Pending"}},
    )


def test_verify_student_submission_requires_recruiter(client, backend):
    response = client.post("/api/verify-student", json={"verificationData": {"registrationNumber": "R1"}})

    assert response.status_code == 400
    assert response.json()["errors"] == ["Recruiter name is required"]
    backend.post.assert_not_called()
