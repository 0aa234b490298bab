"""Resource and action vocabulary shared by the permission checks."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Mapping

# Canonical resource names are singular snake_case.
RESOURCE_ALIASES: Mapping[str, str] = {
    "qr_codes": "qr_code",
    "qr_code": "qr_code",
    "qr": "qr_code",
    "short_urls": "short_url",
    "short_url": "short_url",
    "urls": "short_url",
    "url": "short_url",
    "qr_analytics": "qr_analytics",
    "url_analytics": "url_analytics",
    "analytics": "analytics",
    "scan_events": "scan_events",
    "click_events": "click_events",
    "users": "users",
    "user_analytics": "users",
    "group_users": "group_users",
}

ANALYTICS_RESOURCES: FrozenSet[str] = frozenset(
    {"analytics", "qr_analytics", "url_analytics", "scan_events", "click_events"}
)

USERS_RESOURCE = "users"


class PermissionType(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"
    EXPORT = "export"


def canonicalize(resource_type: str) -> str:
    """Map a resource alias onto its canonical name; unknown names pass through."""

    text = "" if resource_type is None else str(resource_type)
    return RESOURCE_ALIASES.get(text.lower(), text)


def normalize_permission_type(permission_type: str) -> str:
    """Return the action used for scope lookups; ``export`` resolves as ``read``."""

    value = str(getattr(permission_type, "value", permission_type)).strip().lower()
    if value == PermissionType.EXPORT.value:
        return PermissionType.READ.value
    return value


def is_analytics_resource(resource_type: str) -> bool:
    return canonicalize(resource_type) in ANALYTICS_RESOURCES


__all__ = [
    "RESOURCE_ALIASES",
    "ANALYTICS_RESOURCES",
    "USERS_RESOURCE",
    "PermissionType",
    "canonicalize",
    "normalize_permission_type",
    "is_analytics_resource",
]
