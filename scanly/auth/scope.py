"""Scope evaluation for a resolved permission row.

Group ids of ``0`` and ``None`` both mean "no group". A caller or resource
without a group never matches any group, including another group-less party.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from .resources import USERS_RESOURCE, PermissionType

logger = logging.getLogger(__name__)


class Scope(str, Enum):
    NONE = "none"
    OWN = "own"
    GROUP = "group"
    ALL = "all"


KNOWN_SCOPES = frozenset(scope.value for scope in Scope)
_CREATE_SCOPES = frozenset({Scope.ALL.value, Scope.GROUP.value, Scope.OWN.value})


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Distinguishes "no resource group supplied" from "the resource has no group".
UNSET: Any = _Unset()

GroupLookup = Callable[[str], Optional[int]]


def normalize_group_id(value: Any) -> Optional[int]:
    """Return ``value`` as an int group id, or ``None`` for 0/None/blank."""

    if value is None or value is UNSET:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        group_id = int(value)
    except (TypeError, ValueError):
        return None
    return group_id or None


def groups_match(caller_group_id: Any, resource_group_id: Any) -> bool:
    caller = normalize_group_id(caller_group_id)
    resource = normalize_group_id(resource_group_id)
    return caller is not None and caller == resource


def evaluate_scope(
    scope: Optional[str],
    normalized_type: str,
    caller_user_id: Optional[str],
    caller_group_id: Any,
    resource_owner_id: Optional[str] = None,
    resource_group_id: Any = UNSET,
    *,
    resource_type: Optional[str] = None,
    group_lookup: Optional[GroupLookup] = None,
) -> Tuple[bool, str]:
    """Return ``(allowed, reason)`` for ``scope`` applied to the given parties."""

    scope_value = str(getattr(scope, "value", scope) or "").strip().lower()

    if scope_value not in KNOWN_SCOPES:
        logger.error(
            "Unknown permission scope; denying",
            extra={"scope": scope, "permission_type": normalized_type, "resource_type": resource_type},
        )
        return False, "unknown_scope"

    if normalized_type == PermissionType.CREATE.value:
        # Nothing exists yet to compare ownership against.
        if scope_value in _CREATE_SCOPES:
            return True, "create_allowed"
        return False, "create_denied"

    if scope_value == Scope.ALL.value:
        return True, "scope_all"

    if scope_value == Scope.GROUP.value:
        if resource_group_id is not UNSET:
            if groups_match(caller_group_id, resource_group_id):
                return True, "group_match"
            return False, "group_mismatch"
        if resource_type == USERS_RESOURCE and resource_owner_id and group_lookup is not None:
            target_group = group_lookup(str(resource_owner_id))
            if target_group is None:
                return False, "ownership_unresolvable"
            if groups_match(caller_group_id, target_group):
                return True, "group_match"
            return False, "group_mismatch"
        # No group context at all: a mismatch cannot be proven.
        return True, "group_context_missing"

    if scope_value == Scope.OWN.value:
        if resource_owner_id and caller_user_id and str(resource_owner_id) == str(caller_user_id):
            return True, "owner_match"
        return False, "not_owner"

    return False, "scope_none"


def resolve_scope(
    scope: Optional[str],
    normalized_type: str,
    caller_user_id: Optional[str],
    caller_group_id: Any,
    resource_owner_id: Optional[str] = None,
    resource_group_id: Any = UNSET,
    *,
    resource_type: Optional[str] = None,
    group_lookup: Optional[GroupLookup] = None,
) -> bool:
    allowed, _ = evaluate_scope(
        scope,
        normalized_type,
        caller_user_id,
        caller_group_id,
        resource_owner_id,
        resource_group_id,
        resource_type=resource_type,
        group_lookup=group_lookup,
    )
    return allowed


__all__ = [
    "Scope",
    "KNOWN_SCOPES",
    "UNSET",
    "GroupLookup",
    "normalize_group_id",
    "groups_match",
    "evaluate_scope",
    "resolve_scope",
]
