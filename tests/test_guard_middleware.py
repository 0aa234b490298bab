from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from tests.factories import allow_menu, create_menu_item, create_user


VIEWER = {"Authorization": "Bearer user:viewer-0001"}
ADMIN = {"Authorization": "Bearer user:admin-00001"}


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    for name in ("API_RATE_LIMIT", "API_RATE_LIMIT_WINDOW_SEC", "DISABLE_PERMISSION_ENFORCEMENT", "MENU_CACHE_BACKEND"):
        monkeypatch.delenv(name, raising=False)

    from scanly.config import clear_settings_cache

    clear_settings_cache()
    try:
        yield
    finally:
        clear_settings_cache()


def _seed_menus() -> None:
    dashboard = create_menu_item(menu_id="dashboard", path="/dashboard", sort_order=1)
    admin = create_menu_item(menu_id="admin", path="/admin", sort_order=2)
    for role in ("viewer", "admin"):
        allow_menu(dashboard, role=role)
    allow_menu(admin, role="viewer", can_view=False)
    allow_menu(admin, role="admin")


@pytest.fixture()
def client() -> TestClient:
    from scanly.db import init_db
    from scanly.main import create_app

    init_db()
    create_user(user_id="viewer-0001", role="viewer", group_id=2)
    create_user(user_id="admin-00001", role="admin", group_id=1)
    _seed_menus()
    return TestClient(create_app(), follow_redirects=False)


def _location(response):
    parts = urlsplit(response.headers["location"])
    return parts.path, {k: v[0] for k, v in parse_qs(parts.query).items()}


def test_anonymous_page_request_redirects_to_login(client):
    response = client.get("/dashboard")

    assert response.status_code == 307
    path, query = _location(response)
    assert path == "/login"
    assert query["callbackUrl"] == "http://testserver/dashboard"


def test_locked_parent_redirects_to_forbidden_page(client):
    response = client.get("/admin/users", headers=VIEWER)

    assert response.status_code == 307
    assert _location(response) == ("/403", {"from": "/admin/users", "reason": "parent-locked"})


def test_locked_node_redirects_with_locked_reason(client):
    response = client.get("/admin/", headers=VIEWER)
    assert _location(response) == ("/403", {"from": "/admin", "reason": "locked"})


def test_forbidden_page_renders_redirect_details(client):
    response = client.get("/admin/users", headers=VIEWER, follow_redirects=True)

    assert response.status_code == 403
    assert response.json()["from"] == "/admin/users"
    assert response.json()["reason"] == "parent-locked"


def test_allowed_and_unknown_paths_pass_through(client):
    # No page routes exist, so passing the guard ends in the app's 404.
    assert client.get("/admin/users", headers=ADMIN).status_code == 404
    assert client.get("/dashboard", headers=VIEWER).status_code == 404
    assert client.get("/unrelated/path", headers=VIEWER).status_code == 404


def test_menu_tree_is_cached_per_user_and_role(client):
    client.get("/dashboard", headers=VIEWER)

    cache = client.app.state.route_guard.cache
    cached = cache.get("viewer-0001", "viewer")
    assert [node["id"] for node in cached] == ["dashboard", "admin"]
    assert cache.get("admin-00001", "admin") is None


def test_kill_switch_lets_everything_through(client, monkeypatch):
    from scanly.config import clear_settings_cache

    monkeypatch.setenv("DISABLE_PERMISSION_ENFORCEMENT", "true")
    clear_settings_cache()

    response = client.get("/admin/users", headers=VIEWER)
    assert response.status_code == 404
    assert response.headers["x-permission-enforcement"] == "disabled"


def test_public_paths_skip_the_guard(client):
    assert client.get("/health").status_code == 200
    assert client.get("/login").status_code == 404
    assert client.get("/forbidden").status_code == 403


def test_api_paths_are_not_redirected(client):
    response = client.get("/api/qr-codes/some-id")
    assert response.status_code == 401


def test_api_requests_are_rate_limited_per_user(monkeypatch):
    from scanly.config import clear_settings_cache
    from scanly.db import init_db
    from scanly.main import create_app

    monkeypatch.setenv("API_RATE_LIMIT", "2")
    clear_settings_cache()
    init_db()
    create_user(user_id="admin-00001", role="admin", group_id=1)
    create_user(user_id="viewer-0001", role="viewer", group_id=2)
    client = TestClient(create_app())

    first = client.get("/api/qr-codes/missing", headers=ADMIN)
    assert first.status_code == 404
    assert first.headers["X-RateLimit-Limit"] == "2"
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert client.get("/api/qr-codes/missing", headers=ADMIN).status_code == 404

    limited = client.get("/api/qr-codes/missing", headers=ADMIN)
    assert limited.status_code == 429
    assert int(limited.headers["Retry-After"]) >= 1
    assert limited.json()["code"] == "rate_limited"

    # Separate budget per user; auth endpoints are exempt.
    assert client.get("/api/qr-codes/missing", headers=VIEWER).status_code != 429
    for _ in range(3):
        assert client.get("/api/auth/me", headers=ADMIN).status_code == 200


def _warm_caches(client):
    client.get("/dashboard", headers=VIEWER)
    client.get("/dashboard", headers=ADMIN)
    cache = client.app.state.route_guard.cache
    assert cache.get("viewer-0001", "viewer") is not None
    assert cache.get("admin-00001", "admin") is not None
    return cache


def test_cache_invalidation_requires_identity(client):
    assert client.post("/api/menus/cache/invalidate").status_code == 401


def test_user_can_invalidate_only_their_own_cache(client):
    cache = _warm_caches(client)

    response = client.post("/api/menus/cache/invalidate", headers=VIEWER)

    assert response.status_code == 200
    assert response.json() == {"removed": 1}
    assert cache.get("viewer-0001", "viewer") is None
    assert cache.get("admin-00001", "admin") is not None


@pytest.mark.parametrize("params", [{"user_id": "admin-00001"}, {"role": "admin"}])
def test_user_cannot_invalidate_other_caches(client, params):
    cache = _warm_caches(client)

    response = client.post("/api/menus/cache/invalidate", params=params, headers=VIEWER)

    assert response.status_code == 403
    assert cache.get("admin-00001", "admin") is not None


def test_admin_can_invalidate_by_role_or_everything(client):
    cache = _warm_caches(client)

    by_role = client.post("/api/menus/cache/invalidate", params={"role": "viewer"}, headers=ADMIN)
    assert by_role.json() == {"removed": 1}
    assert cache.get("viewer-0001", "viewer") is None
    assert cache.get("admin-00001", "admin") is not None

    everything = client.post("/api/menus/cache/invalidate", headers=ADMIN)
    assert everything.json() == {"removed": 1}
    assert cache.get("admin-00001", "admin") is None
