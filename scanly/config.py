"""Environment-driven settings for permission enforcement and identity resolution."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Tuple

_TRUE_VALUES = {"1", "true", "yes", "on"}

DEFAULT_SESSION_COOKIE_NAMES: Tuple[str, ...] = (
    "scanly.session-token",
    "__Secure-scanly.session-token",
)
DEFAULT_ROLE_VARIANTS: Tuple[str, ...] = ("as_given", "lower", "upper")


def _read_flag(name: str) -> bool | None:
    """Return the parsed boolean value for ``name`` if explicitly set."""

    value = os.getenv(name)
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized.lower() in _TRUE_VALUES


def _read_number(name: str, default: float) -> float:
    value = (os.getenv(name) or "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _read_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    items = tuple(part.strip() for part in value.split(",") if part.strip())
    return items or default


__all__ = [
    "is_permission_enforcement_disabled",
    "get_menu_cache_ttl_seconds",
    "get_menu_cache_backend",
    "get_redis_url",
    "get_api_rate_limit",
    "get_api_rate_limit_window",
    "get_session_jwt_secret",
    "get_session_jwt_algorithm",
    "get_session_cookie_names",
    "get_legacy_auth_cookie",
    "get_role_variant_strategies",
]


@lru_cache(maxsize=1)
def is_permission_enforcement_disabled() -> bool:
    """Return ``True`` when the route guard should let every path through."""

    flag = _read_flag("DISABLE_PERMISSION_ENFORCEMENT")
    if flag is None:
        return False
    return flag


@lru_cache(maxsize=1)
def get_menu_cache_ttl_seconds() -> float:
    ttl = _read_number("MENU_CACHE_TTL_SECONDS", 30.0)
    return ttl if ttl >= 0 else 30.0


@lru_cache(maxsize=1)
def get_menu_cache_backend() -> str:
    return (os.getenv("MENU_CACHE_BACKEND") or "memory").strip().lower() or "memory"


@lru_cache(maxsize=1)
def get_redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/0")


@lru_cache(maxsize=1)
def get_api_rate_limit() -> int:
    """Return the per-user request budget for ``/api/`` paths. ``0`` disables limiting."""

    return max(0, int(_read_number("API_RATE_LIMIT", 1000)))


@lru_cache(maxsize=1)
def get_api_rate_limit_window() -> float:
    window = _read_number("API_RATE_LIMIT_WINDOW_SEC", 60.0)
    return window if window > 0 else 60.0


@lru_cache(maxsize=1)
def get_session_jwt_secret() -> str | None:
    """Return the signing secret for session tokens, or ``None`` when unset."""

    secret = os.getenv("SESSION_JWT_SECRET")
    if secret is None or not secret.strip():
        return None
    return secret


@lru_cache(maxsize=1)
def get_session_jwt_algorithm() -> str:
    return (os.getenv("SESSION_JWT_ALGORITHM") or "HS256").strip() or "HS256"


@lru_cache(maxsize=1)
def get_session_cookie_names() -> Tuple[str, ...]:
    return _read_list("SESSION_COOKIE_NAMES", DEFAULT_SESSION_COOKIE_NAMES)


@lru_cache(maxsize=1)
def get_legacy_auth_cookie() -> str:
    return (os.getenv("LEGACY_AUTH_COOKIE") or "scanly_auth").strip() or "scanly_auth"


@lru_cache(maxsize=1)
def get_role_variant_strategies() -> Tuple[str, ...]:
    """Return the ordered role-variant transforms used for record lookups.

    Values outside the known transforms are ignored by the permission service,
    so a typo degrades to fewer lookups rather than an error.
    """

    return _read_list("PERMISSION_ROLE_VARIANTS", DEFAULT_ROLE_VARIANTS)


def clear_settings_cache() -> None:
    """Reset every cached reader; used by tests and the app factory."""

    for reader in (
        is_permission_enforcement_disabled,
        get_menu_cache_ttl_seconds,
        get_menu_cache_backend,
        get_redis_url,
        get_api_rate_limit,
        get_api_rate_limit_window,
        get_session_jwt_secret,
        get_session_jwt_algorithm,
        get_session_cookie_names,
        get_legacy_auth_cookie,
        get_role_variant_strategies,
    ):
        reader.cache_clear()
