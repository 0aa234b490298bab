import time
from typing import Callable

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request
from starlette.responses import Response


REQUEST_COUNTER = Counter(
    "api_requests_total",
    "HTTP requests total",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "api_request_duration_seconds",
    "HTTP request latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

PERMISSION_DECISIONS = Counter(
    "permission_decisions_total",
    "Permission decisions by resource, action and outcome",
    ["resource", "action", "outcome", "reason"],
)

PERMISSION_FAILSAFE = Counter(
    "permission_failsafe_total",
    "Permission checks answered by the fail-safe policy",
    ["reason", "decision"],
)

MENU_TREE_CACHE = Counter(
    "menu_tree_cache_total",
    "Menu tree cache lookups",
    ["result"],
)

ROUTE_GUARD_DECISIONS = Counter(
    "route_guard_decisions_total",
    "Route guard outcomes",
    ["outcome", "reason"],
)


def record_permission_decision(resource: str, action: str, allowed: bool, reason: str) -> None:
    PERMISSION_DECISIONS.labels(resource, action, "allow" if allowed else "deny", reason).inc()


def record_failsafe(reason: str, allowed: bool) -> None:
    PERMISSION_FAILSAFE.labels(reason, "allow" if allowed else "deny").inc()


def record_menu_cache(hit: bool) -> None:
    MENU_TREE_CACHE.labels("hit" if hit else "miss").inc()


def record_guard_decision(allowed: bool, reason: str) -> None:
    ROUTE_GUARD_DECISIONS.labels("allow" if allowed else "deny", reason).inc()


async def metrics_endpoint(_: Request) -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


async def request_metrics_middleware(request: Request, call_next: Callable):
    start = time.time()
    response = await call_next(request)
    elapsed = time.time() - start
    path = request.url.path
    # QR and short-url ids are uuids; collapse any long opaque segment
    if path.count("/") > 2:
        parts = path.split("/")
        parts = [":id" if (p.isdigit() or len(p) >= 20) else p for p in parts]
        path = "/".join(parts)
    REQUEST_COUNTER.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.observe(elapsed)
    return response
