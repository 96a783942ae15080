import json
from unittest.mock import MagicMock

import pytest
import requests

import apps_script_client
from apps_script_client import AppsScriptClient, download_csv
from placement_errors import BackendResponseError, BackendTransportError, MalformedResponseError

BASE_URL = "https://script.example.com/exec"


def fake_response(payload=None, *, status=200, text=None):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    if payload is None:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    response.text = text if text is not None else json.dumps(payload)
    return response


def test_get_sends_action_and_params(monkeypatch):
    mock_get = MagicMock(return_value=fake_response({"success": True, "exists": True}))
    monkeypatch.setattr(apps_script_client.requests, "get", mock_get)

    data = AppsScriptClient(base_url=BASE_URL).get("checkStudentExists", registrationNumber="R1")

    assert data["exists"] is True
    _, kwargs = mock_get.call_args
    assert kwargs["params"] == {"action": "checkStudentExists", "registrationNumber": "R1"}


def test_post_merges_action_into_json_body(monkeypatch):
    mock_post = MagicMock(return_value=fake_response({"success": True, "message": "ok"}))
    monkeypatch.setattr(apps_script_client.requests, "post", mock_post)

    AppsScriptClient(base_url=BASE_URL).post("write", {"values": [["a"]]})

    _, kwargs = mock_post.call_args
    assert json.loads(kwargs["data"]) == {"action": "write", "values": [["a"]]}
    assert kwargs["headers"]["Content-Type"] == "application/json"


def test_success_false_raises_with_backend_message(monkeypatch):
    monkeypatch.setattr(
        apps_script_client.requests,
        "get",
        MagicMock(return_value=fake_response({"success": False, "error": "Sheet not found"})),
    )

    with pytest.raises(BackendResponseError) as excinfo:
        AppsScriptClient(base_url=BASE_URL).get("getStudents")

    assert excinfo.value.error == "Sheet not found"
    assert excinfo.value.action == "getStudents"


def test_non_json_body_is_malformed(monkeypatch):
    monkeypatch.setattr(
        apps_script_client.requests,
        "get",
        MagicMock(return_value=fake_response(None, text="<html>")),
    )

    with pytest.raises(MalformedResponseError):
        AppsScriptClient(base_url=BASE_URL).get("getStudents")


def test_http_error_without_json_is_transport_error(monkeypatch):
    monkeypatch.setattr(
        apps_script_client.requests,
        "get",
        MagicMock(return_value=fake_response(None, status=500, text="boom")),
    )

    with pytest.raises(BackendTransportError, match="500"):
        AppsScriptClient(base_url=BASE_URL).get("getStudents")


def test_network_failure_is_transport_error(monkeypatch):
    monkeypatch.setattr(
        apps_script_client.requests,
        "post",
        MagicMock(side_effect=requests.ConnectionError("refused")),
    )

    with pytest.raises(BackendTransportError):
        AppsScriptClient(base_url=BASE_URL).post("write", {"values": []})


def test_missing_base_url_fails_without_network(monkeypatch):
    mock_get = MagicMock()
    monkeypatch.setattr(apps_script_client.requests, "get", mock_get)

    with pytest.raises(BackendTransportError):
        AppsScriptClient(base_url="").get("getStudents")

    mock_get.assert_not_called()


def test_download_csv_returns_text_and_bypasses_caches(monkeypatch):
    mock_get = MagicMock(return_value=fake_response(None, text="Name\nA\n"))
    monkeypatch.setattr(apps_script_client.requests, "get", mock_get)

    assert download_csv("https://sheet.example.com/csv", timeout=5) == "Name\nA\n"
    _, kwargs = mock_get.call_args
    assert kwargs["headers"] == {"Cache-Control": "no-cache"}
    assert kwargs["timeout"] == 5


def test_download_csv_http_error(monkeypatch):
    monkeypatch.setattr(
        apps_script_client.requests,
        "get",
        MagicMock(return_value=fake_response(None, status=404, text="")),
    )

    with pytest.raises(BackendTransportError):
        download_csv("https://sheet.example.com/csv")
