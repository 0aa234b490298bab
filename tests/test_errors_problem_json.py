from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")


def _create_test_client() -> TestClient:
    from scanly.db import init_db
    from scanly.errors import PermissionStoreError
    from scanly.main import create_app

    init_db()
    app = create_app()

    # Under /api/ so the route guard does not redirect anonymous callers.
    @app.get("/api/test/trigger-http")
    def trigger_http_error():
        raise HTTPException(status_code=404, detail="Missing resource")

    @app.get("/api/test/trigger-coded")
    def trigger_coded_error():
        raise HTTPException(status_code=409, detail={"code": "duplicate", "message": "Already exists"})

    @app.get("/api/test/trigger-validation")
    def trigger_validation_error(item_id: int):  # pragma: no cover - signature triggers validation
        return {"item_id": item_id}

    @app.get("/api/test/trigger-store")
    def trigger_store_error():
        raise PermissionStoreError("database is locked")

    @app.get("/api/test/trigger-unhandled")
    def trigger_unhandled_error():
        raise RuntimeError("boom")

    return TestClient(app, raise_server_exceptions=False)


def _assert_problem_response(response, *, expected_status: int, expected_code: str) -> None:
    assert response.status_code == expected_status
    content_type = response.headers.get("content-type")
    assert content_type is not None
    assert content_type.startswith("application/problem+json")

    trace_id = response.headers.get("X-Trace-Id")
    assert trace_id, "Trace identifier header is missing"

    payload = response.json()
    assert payload["status"] == expected_status
    assert payload["code"] == expected_code
    assert payload["trace_id"] == trace_id
    assert payload["title"] == payload["message"]
    assert payload["type"].endswith(f"#{expected_code}")


def test_http_exception_uses_problem_json() -> None:
    client = _create_test_client()
    response = client.get("/api/test/trigger-http")

    _assert_problem_response(response, expected_status=404, expected_code="http_error")
    assert response.json()["message"] == "Missing resource"


def test_dict_detail_keeps_its_code() -> None:
    client = _create_test_client()
    response = client.get("/api/test/trigger-coded")

    _assert_problem_response(response, expected_status=409, expected_code="duplicate")
    assert response.json()["details"]["message"] == "Already exists"


def test_validation_exception_uses_problem_json() -> None:
    client = _create_test_client()
    response = client.get("/api/test/trigger-validation", params={"item_id": "not-an-int"})

    _assert_problem_response(response, expected_status=422, expected_code="validation_error")
    payload = response.json()
    assert "details" in payload
    assert isinstance(payload["details"].get("errors"), list)


def test_store_error_maps_to_service_unavailable() -> None:
    client = _create_test_client()
    response = client.get("/api/test/trigger-store")

    _assert_problem_response(response, expected_status=503, expected_code="permission_store_unavailable")


def test_unhandled_exception_uses_problem_json() -> None:
    client = _create_test_client()
    response = client.get("/api/test/trigger-unhandled")

    _assert_problem_response(response, expected_status=500, expected_code="internal_error")
    payload = response.json()
    assert payload["message"] == "An unexpected error occurred"


def test_permission_error_body() -> None:
    from scanly.errors import permission_error

    body = permission_error("delete", "qr_code")
    assert body["code"] == "PERMISSION_DENIED"
    assert body["message"] == "You don't have permission to delete this qr_code"
    assert (body["resource"], body["action"]) == ("qr_code", "delete")
