"""Path-level enforcement driven by the caller's menu tree.

For a request path the guard finds the matching menu node in the role's
tree (cached per user and role) and:

* denies with ``locked`` when that node is explicitly locked;
* allows when it is present and not locked;
* when no node matches, denies with ``parent-locked`` if the first path
  segment is an explicitly locked node, otherwise allows. Unknown paths stay
  reachable so new routes work before menu configuration catches up.

:func:`install_route_guard` wires the guard, identity extraction and the
per-user API rate limiter into the application as HTTP middleware.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol, Sequence
from urllib.parse import urlencode

import httpx
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from .auth.identity import Identity, IdentityExtractor
from .cache import MenuTreeCache
from .config import is_permission_enforcement_disabled
from .db import get_session_ctx
from .menus import MenuNode, build_menu_tree, flatten
from .observability.logging import bind_user_id
from .observability.metrics import record_guard_decision
from .security.ratelimit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

REASON_LOCKED = "locked"
REASON_PARENT_LOCKED = "parent-locked"
REASON_ALLOWED = "allowed"
REASON_NOT_FOUND = "not-found"
REASON_TREE_UNAVAILABLE = "tree-unavailable"

FORBIDDEN_PATH = "/403"
LOGIN_PATH = "/login"
MENU_STRUCTURE_PATH = "/api/menus/structure"

PUBLIC_PATHS = frozenset(
    {
        "/login",
        "/register",
        "/forgot-password",
        "/403",
        "/404",
        "/forbidden",
        "/health",
        "/metrics",
        "/docs",
        "/redoc",
        "/openapi.json",
        MENU_STRUCTURE_PATH,
    }
)
PUBLIC_PREFIXES = ("/.well-known/", "/api/auth/", "/docs/", "/health/")


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    reason: str
    path: str
    node_path: Optional[str] = None


def normalize_path(path: str) -> str:
    if not path:
        return "/"
    if path != "/" and path.endswith("/"):
        return path.rstrip("/") or "/"
    return path


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES) or path == "/api/auth"


def find_node(flat: Sequence[MenuNode], path: str) -> Optional[MenuNode]:
    target = normalize_path(path)
    for node in flat:
        if node.path and normalize_path(node.path) == target:
            return node
    return None


def evaluate_path(tree: Sequence[Any], path: str) -> GuardDecision:
    """Decide access to ``path`` from a tree of :class:`MenuNode` or JSON mappings."""

    # Entries that are neither nodes nor mappings are dropped.
    nodes = [
        node if isinstance(node, MenuNode) else MenuNode.from_mapping(node)
        for node in (tree if isinstance(tree, (list, tuple)) else [])
        if isinstance(node, (MenuNode, Mapping))
    ]
    flat = flatten(nodes)
    normalized = normalize_path(path)
    node = find_node(flat, normalized)
    if node is not None:
        if node.locked:
            return GuardDecision(False, REASON_LOCKED, normalized, node.path)
        return GuardDecision(True, REASON_ALLOWED, normalized, node.path)

    segments = [segment for segment in normalized.split("/") if segment]
    if segments:
        first_segment = "/" + segments[0]
        for candidate in flat:
            if candidate.path == first_segment and candidate.locked:
                return GuardDecision(False, REASON_PARENT_LOCKED, normalized, candidate.path)
    return GuardDecision(True, REASON_NOT_FOUND, normalized)


def _mapping_nodes(nodes: List[Any]) -> List[Any]:
    kept = [node for node in nodes if isinstance(node, Mapping)]
    if len(kept) != len(nodes):
        logger.error("Menu tree payload has malformed nodes", extra={"dropped_nodes": len(nodes) - len(kept)})
    return kept


class MenuTreeLoader(Protocol):
    async def load(self, request: Request, identity: Identity) -> Optional[List[Any]]:
        """Return the caller's menu tree as JSON-compatible nodes, or ``None`` if unavailable."""


class DatabaseMenuTreeLoader:
    async def load(self, request: Request, identity: Identity) -> Optional[List[Any]]:
        def _build() -> Optional[List[Any]]:
            try:
                with get_session_ctx() as session:
                    return [node.to_dict() for node in build_menu_tree(session, identity.role)]
            except SQLAlchemyError:
                logger.error("Menu tree query failed", extra={"role": identity.role}, exc_info=True)
                return None

        return await asyncio.to_thread(_build)


class HttpMenuTreeLoader:
    """Fetch the tree from the menu structure endpoint with the caller's credentials."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        endpoint: str = MENU_STRUCTURE_PATH,
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.endpoint = endpoint
        self.timeout = timeout
        self.transport = transport

    async def load(self, request: Request, identity: Identity) -> Optional[List[Any]]:
        base_url = self.base_url or str(request.base_url)
        headers = {}
        for name in ("cookie", "authorization"):
            value = request.headers.get(name)
            if value:
                headers[name] = value
        try:
            async with httpx.AsyncClient(
                base_url=base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(self.endpoint, headers=headers)
        except httpx.HTTPError:
            logger.error("Menu tree fetch failed", extra={"endpoint": self.endpoint}, exc_info=True)
            return None
        if response.status_code >= 400:
            logger.error(
                "Menu tree endpoint returned an error",
                extra={"status_code": response.status_code, "response_text": response.text[:200]},
            )
            return None
        try:
            data = response.json()
        except json.JSONDecodeError:
            logger.warning("Menu tree payload is not JSON")
            return None
        if isinstance(data, dict):
            for key in ("menus", "tree"):
                if isinstance(data.get(key), list):
                    return _mapping_nodes(data[key])
            logger.warning("Menu tree payload has no node list", extra={"payload_keys": sorted(data)})
            return None
        if isinstance(data, list):
            return _mapping_nodes(data)
        logger.warning("Menu tree payload has unexpected type", extra={"payload_type": type(data).__name__})
        return None


class RouteGuard:
    def __init__(self, loader: MenuTreeLoader, cache: MenuTreeCache) -> None:
        self.loader = loader
        self.cache = cache

    async def tree_for(self, request: Request, identity: Identity) -> Optional[List[Any]]:
        tree = self.cache.get(identity.user_id, identity.role)
        if tree is not None:
            return tree
        tree = await self.loader.load(request, identity)
        if tree is not None:
            self.cache.set(identity.user_id, identity.role, tree)
        return tree

    async def check(self, request: Request, identity: Identity) -> GuardDecision:
        path = normalize_path(request.url.path)
        tree = await self.tree_for(request, identity)
        if tree is None:
            decision = GuardDecision(True, REASON_TREE_UNAVAILABLE, path)
        else:
            decision = evaluate_path(tree, path)
        if not decision.allowed:
            logger.warning(
                "Route guard denied path",
                extra={
                    "path": decision.path,
                    "role": identity.role,
                    "node_path": decision.node_path,
                    "guard_reason": decision.reason,
                },
            )
        elif decision.reason == REASON_NOT_FOUND:
            logger.debug("No menu node for path; allowing", extra={"path": decision.path})
        record_guard_decision(decision.allowed, decision.reason)
        return decision


def forbidden_redirect(request: Request, decision: GuardDecision) -> RedirectResponse:
    query = urlencode({"from": decision.path, "reason": decision.reason})
    return RedirectResponse(f"{FORBIDDEN_PATH}?{query}", status_code=307)


def login_redirect(request: Request) -> RedirectResponse:
    query = urlencode({"callbackUrl": str(request.url)})
    return RedirectResponse(f"{LOGIN_PATH}?{query}", status_code=307)


def _resolve_identity(request: Request, extractor: IdentityExtractor) -> Optional[Identity]:
    with get_session_ctx() as session:
        return extractor.get_identity(request, session)


def install_route_guard(
    app: FastAPI,
    guard: RouteGuard,
    extractor: IdentityExtractor,
    limiter: FixedWindowRateLimiter,
) -> None:
    app.state.route_guard = guard
    app.state.identity_extractor = extractor
    app.state.rate_limiter = limiter

    @app.middleware("http")
    async def enforce_route_permissions(request: Request, call_next):
        path = request.url.path
        if is_public_path(path):
            return await call_next(request)

        identity = await asyncio.to_thread(_resolve_identity, request, extractor)
        request.state.identity = identity
        bind_user_id(identity.user_id if identity else None)

        if path.startswith("/api/"):
            # API routes answer 401/403 themselves; only rate limiting happens here.
            if identity is None:
                return await call_next(request)
            result = limiter.hit(f"u:{identity.user_id}")
            if not result.allowed:
                retry_after = result.retry_after(limiter.now())
                headers = result.headers()
                headers["Retry-After"] = str(retry_after)
                return JSONResponse(
                    {"code": "rate_limited", "message": "Rate limit exceeded", "retry_after": retry_after},
                    status_code=429,
                    headers=headers,
                )
            response: Response = await call_next(request)
            for key, value in result.headers().items():
                response.headers[key] = value
            return response

        if identity is None:
            return login_redirect(request)

        if is_permission_enforcement_disabled():
            response = await call_next(request)
            response.headers["x-permission-enforcement"] = "disabled"
            return response

        decision = await guard.check(request, identity)
        if not decision.allowed:
            return forbidden_redirect(request, decision)
        return await call_next(request)


__all__ = [
    "REASON_LOCKED",
    "REASON_PARENT_LOCKED",
    "GuardDecision",
    "normalize_path",
    "is_public_path",
    "find_node",
    "evaluate_path",
    "MenuTreeLoader",
    "DatabaseMenuTreeLoader",
    "HttpMenuTreeLoader",
    "RouteGuard",
    "forbidden_redirect",
    "install_route_guard",
]
