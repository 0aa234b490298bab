from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    monkeypatch.delenv("SESSION_COOKIE_NAMES", raising=False)
    monkeypatch.delenv("LEGACY_AUTH_COOKIE", raising=False)
    from scanly.config import clear_settings_cache

    clear_settings_cache()


def test_scrub_credentials_masks_auth_headers_and_session_cookies():
    from scanly.observability.sentry import _scrub_credentials

    event = {
        "request": {
            "headers": {"Authorization": "Bearer user:abc", "Cookie": "scanly_auth=abc", "Accept": "*/*"},
            "cookies": {"scanly.session-token": "jwt", "scanly_auth": "abc", "theme": "dark"},
        }
    }

    scrubbed = _scrub_credentials(event, {})

    assert scrubbed["request"]["headers"] == {
        "Authorization": "[scrubbed]",
        "Cookie": "[scrubbed]",
        "Accept": "*/*",
    }
    assert scrubbed["request"]["cookies"] == {
        "scanly.session-token": "[scrubbed]",
        "scanly_auth": "[scrubbed]",
        "theme": "dark",
    }


def test_scrub_credentials_ignores_events_without_request():
    from scanly.observability.sentry import _scrub_credentials

    event = {"message": "boom"}
    assert _scrub_credentials(event, {}) is event


def test_init_sentry_is_disabled_without_dsn():
    from fastapi import FastAPI

    from scanly.observability.sentry import init_sentry

    app = FastAPI()
    assert init_sentry(app) is False
    assert not getattr(app.state, "sentry_enabled", False)


def test_context_filter_adds_request_and_user_ids():
    from scanly.observability.logging import ContextFilter, bind_request_id, bind_user_id

    rid = bind_request_id()
    bind_user_id("user-42")
    record = logging.LogRecord("scanly", logging.INFO, __file__, 1, "hello", None, None)

    assert ContextFilter().filter(record) is True
    assert record.request_id == rid
    assert record.user_id == "user-42"

    bind_user_id(None)
    ContextFilter().filter(record)
    assert record.user_id == ""


def test_setup_logging_emits_json(capsys):
    from scanly.observability.logging import bind_request_id, setup_logging

    root = logging.getLogger()
    previous = (root.handlers[:], root.level)
    try:
        setup_logging()
        bind_request_id("req-1")
        logging.getLogger("scanly.test").warning("Permission denied", extra={"role": "viewer"})
        line = capsys.readouterr().err.strip().splitlines()[-1]
    finally:
        root.handlers, level = previous
        root.setLevel(level)

    payload = json.loads(line)
    assert payload["message"] == "Permission denied"
    assert payload["request_id"] == "req-1"
    assert payload["role"] == "viewer"
