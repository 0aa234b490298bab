"""Authorization for Scanly: who is calling, and what they may do.

The pieces compose leaf-first:

* :mod:`scanly.auth.roles` and :mod:`scanly.auth.resources` normalise role
  labels and resource aliases;
* :mod:`scanly.auth.store` reads scopes from ``role_permissions``;
* :mod:`scanly.auth.scope` applies a scope to the caller and resource;
* :mod:`scanly.auth.policy` decides when no scope can be read;
* :mod:`scanly.auth.service` orchestrates a decision;
* :mod:`scanly.auth.identity` resolves the caller from a request;
* :mod:`scanly.auth.dependencies` exposes all of it to FastAPI routes.
"""

from __future__ import annotations

from .identity import Identity, IdentityExtractor, build_identity_extractor
from .ownership import ResourceOwnership, get_resource_owner
from .policy import FAILSAFE_POLICY, FailureReason, SubjectClass
from .resources import PermissionType, canonicalize, normalize_permission_type
from .roles import ADMIN_ROLE_NAME, is_admin_role, normalize_role
from .scope import UNSET, Scope, resolve_scope
from .service import (
    PermissionDecision,
    PermissionService,
    can_access_qr_code,
    can_access_short_url,
    check_permission,
)

__all__ = [
    "ADMIN_ROLE_NAME",
    "FAILSAFE_POLICY",
    "FailureReason",
    "Identity",
    "IdentityExtractor",
    "PermissionDecision",
    "PermissionService",
    "PermissionType",
    "ResourceOwnership",
    "Scope",
    "SubjectClass",
    "UNSET",
    "build_identity_extractor",
    "can_access_qr_code",
    "can_access_short_url",
    "canonicalize",
    "check_permission",
    "get_resource_owner",
    "is_admin_role",
    "normalize_permission_type",
    "normalize_role",
    "resolve_scope",
]
