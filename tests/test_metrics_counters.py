from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families

from tests.factories import allow_menu, create_menu_item, create_user, grant


OWNER_HEADER = {"Authorization": "Bearer user:metrics-owner"}
VIEWER_HEADER = {"Authorization": "Bearer user:metrics-viewer"}


def _read_metric(
    client: TestClient,
    metric: str,
    labels: Optional[Dict[str, str]] = None,
) -> float:
    response = client.get("/metrics")
    response.raise_for_status()
    text = response.text
    for family in text_string_to_metric_families(text):
        for sample in family.samples:
            if sample.name != metric:
                continue
            sample_labels = dict(sample.labels)
            if labels is None and not sample_labels:
                return float(sample.value)
            if labels is not None and sample_labels == labels:
                return float(sample.value)
    return 0.0


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.delenv("DISABLE_PERMISSION_ENFORCEMENT", raising=False)
    monkeypatch.delenv("API_RATE_LIMIT", raising=False)
    from scanly.config import clear_settings_cache

    clear_settings_cache()


@pytest.fixture
def client() -> TestClient:
    from scanly.db import init_db
    from scanly.main import create_app

    init_db()
    create_user(user_id="metrics-owner", role="user", group_id=5)
    create_user(user_id="metrics-viewer", role="viewer", group_id=5)
    grant("user", "qr_code", "update", "own")
    admin = create_menu_item(menu_id="admin", path="/admin")
    allow_menu(admin, role="viewer", can_view=False)
    return TestClient(create_app(), follow_redirects=False)


def test_permission_decision_counter_increments(client: TestClient):
    labels = {"resource": "qr_code", "action": "update", "outcome": "allow", "reason": "owner_match"}
    baseline = _read_metric(client, "permission_decisions_total", labels=labels)
    body = {"resourceType": "qr_codes", "permissionType": "update", "resourceOwnerId": "metrics-owner"}
    response = client.post("/api/permissions/check", json=body, headers=OWNER_HEADER)
    assert response.json()["hasPermission"] is True
    value = _read_metric(client, "permission_decisions_total", labels=labels)
    assert value >= baseline + 1


def test_failsafe_counter_increments(client: TestClient):
    labels = {"reason": "no_record_deny", "decision": "deny"}
    baseline = _read_metric(client, "permission_failsafe_total", labels=labels)
    body = {"resourceType": "short_url", "permissionType": "delete"}
    response = client.post("/api/permissions/check", json=body, headers=VIEWER_HEADER)
    assert response.json() == {"hasPermission": False, "reason": "no_record_deny", "scope": None}
    value = _read_metric(client, "permission_failsafe_total", labels=labels)
    assert value >= baseline + 1


def test_route_guard_and_cache_counters_increment(client: TestClient):
    deny = {"outcome": "deny", "reason": "parent-locked"}
    miss = {"result": "miss"}
    hit = {"result": "hit"}
    baseline_deny = _read_metric(client, "route_guard_decisions_total", labels=deny)
    baseline_miss = _read_metric(client, "menu_tree_cache_total", labels=miss)
    baseline_hit = _read_metric(client, "menu_tree_cache_total", labels=hit)

    assert client.get("/admin/users", headers=VIEWER_HEADER).status_code == 307
    assert client.get("/admin/roles", headers=VIEWER_HEADER).status_code == 307

    assert _read_metric(client, "route_guard_decisions_total", labels=deny) >= baseline_deny + 2
    assert _read_metric(client, "menu_tree_cache_total", labels=miss) >= baseline_miss + 1
    assert _read_metric(client, "menu_tree_cache_total", labels=hit) >= baseline_hit + 1


def test_request_counter_collapses_opaque_ids(client: TestClient):
    path = "/api/qr-codes/0123456789abcdef0123456789abcdef"
    labels = {"method": "GET", "path": "/api/qr-codes/:id", "status": "404"}
    baseline = _read_metric(client, "api_requests_total", labels=labels)
    assert client.get(path, headers=OWNER_HEADER).status_code == 404
    assert _read_metric(client, "api_requests_total", labels=labels) >= baseline + 1
