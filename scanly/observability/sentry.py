import os
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from ..config import get_legacy_auth_cookie, get_session_cookie_names

_SCRUBBED = "[scrubbed]"


def _scrub_credentials(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Drop bearer tokens and auth cookies before events leave the process."""

    request = event.get("request")
    if not isinstance(request, dict):
        return event
    headers = request.get("headers")
    if isinstance(headers, dict):
        for key in list(headers):
            if key.lower() in ("authorization", "cookie"):
                headers[key] = _SCRUBBED
    cookies = request.get("cookies")
    if isinstance(cookies, dict):
        sensitive = set(get_session_cookie_names()) | {get_legacy_auth_cookie()}
        for name in list(cookies):
            if name in sensitive:
                cookies[name] = _SCRUBBED
    return event


def init_sentry(app) -> bool:
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return False
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        environment=os.getenv("SENTRY_ENVIRONMENT", "dev"),
        release=os.getenv("SENTRY_RELEASE"),
        before_send=_scrub_credentials,
    )
    app.state.sentry_enabled = True
    return True
