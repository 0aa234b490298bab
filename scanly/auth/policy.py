"""Fail-safe decisions for permission checks that cannot consult a stored scope.

The matrix is data so it can be audited and tested directly::

    failure        subject          decision
    no_record      analytics_read   allow   (avoids blank dashboards on missing seed rows)
    no_record      admin            allow   (implicit admin)
    no_record      other            deny
    store_error    analytics_read   allow
    store_error    admin            deny
    store_error    other            deny

``analytics_read`` is classified before ``admin``, so an admin reading
analytics is reported as an analytics soft-allow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Tuple

from .resources import ANALYTICS_RESOURCES, PermissionType
from .roles import is_admin_role, normalize_role, ADMIN_ROLE_NAME


class FailureReason(str, Enum):
    NO_RECORD = "no_record"
    STORE_ERROR = "store_error"


class SubjectClass(str, Enum):
    ANALYTICS_READ = "analytics_read"
    ADMIN = "admin"
    OTHER = "other"


@dataclass(frozen=True)
class FailSafeRule:
    allow: bool
    reason: str
    level: int


FAILSAFE_POLICY: Mapping[Tuple[FailureReason, SubjectClass], FailSafeRule] = {
    (FailureReason.NO_RECORD, SubjectClass.ANALYTICS_READ): FailSafeRule(
        True, "analytics_read_soft_allow", logging.WARNING
    ),
    (FailureReason.NO_RECORD, SubjectClass.ADMIN): FailSafeRule(
        True, "admin_implicit_allow", logging.WARNING
    ),
    (FailureReason.NO_RECORD, SubjectClass.OTHER): FailSafeRule(
        False, "no_record_deny", logging.WARNING
    ),
    (FailureReason.STORE_ERROR, SubjectClass.ANALYTICS_READ): FailSafeRule(
        True, "store_error_analytics_soft_allow", logging.ERROR
    ),
    (FailureReason.STORE_ERROR, SubjectClass.ADMIN): FailSafeRule(
        False, "store_error_deny", logging.ERROR
    ),
    (FailureReason.STORE_ERROR, SubjectClass.OTHER): FailSafeRule(
        False, "store_error_deny", logging.ERROR
    ),
}

# Used when a custom policy table omits a combination.
DEFAULT_RULE = FailSafeRule(False, "failsafe_default_deny", logging.WARNING)


def classify_subject(role: Optional[str], canonical_resource: str, normalized_type: str) -> SubjectClass:
    if normalized_type == PermissionType.READ.value and canonical_resource in ANALYTICS_RESOURCES:
        return SubjectClass.ANALYTICS_READ
    if is_admin_role(role) or normalize_role(role) == ADMIN_ROLE_NAME:
        return SubjectClass.ADMIN
    return SubjectClass.OTHER


def failsafe_rule(
    failure: FailureReason,
    role: Optional[str],
    canonical_resource: str,
    normalized_type: str,
    policy: Mapping[Tuple[FailureReason, SubjectClass], FailSafeRule] = FAILSAFE_POLICY,
) -> FailSafeRule:
    subject = classify_subject(role, canonical_resource, normalized_type)
    return policy.get((failure, subject), DEFAULT_RULE)


__all__ = [
    "FailureReason",
    "SubjectClass",
    "FailSafeRule",
    "FAILSAFE_POLICY",
    "DEFAULT_RULE",
    "classify_subject",
    "failsafe_rule",
]
