"""Permission resolution: role/resource normalisation, record lookup, scope evaluation.

:class:`PermissionService` answers "may this caller perform this action on
this resource?" against the ``role_permissions`` table. Each decision walks
the same path::

    normalise action -> canonicalise resource -> look up scope
        (role variants x resource variants, first match wins)
    -> fail-safe policy when no row answers, else scope evaluation

Normal denials never raise. Store failures are logged and answered by the
``store_error`` row of :data:`scanly.auth.policy.FAILSAFE_POLICY`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlmodel import Session

from ..config import get_role_variant_strategies
from ..errors import PermissionStoreError
from ..observability.metrics import record_failsafe, record_permission_decision
from .ownership import get_resource_context, user_group_lookup
from .policy import FAILSAFE_POLICY, FailSafeRule, FailureReason, SubjectClass, failsafe_rule
from .resources import canonicalize, normalize_permission_type
from .scope import UNSET, GroupLookup, evaluate_scope
from .store import PermissionStore, SessionPermissionStore

logger = logging.getLogger(__name__)

ROLE_VARIANT_TRANSFORMS: Mapping[str, Callable[[str], str]] = {
    "as_given": lambda role: role,
    "lower": str.lower,
    "upper": str.upper,
}


@dataclass(frozen=True)
class PermissionDecision:
    allowed: bool
    reason: str
    role: str
    resource: str
    permission_type: str
    scope: Optional[str] = None
    matched_role: Optional[str] = None
    matched_resource: Optional[str] = None
    tried: Tuple[str, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return self.allowed

    def as_log_fields(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "canonical_resource": self.resource,
            "permission_type": self.permission_type,
            "scope": self.scope,
            "matched_role": self.matched_role,
            "matched_resource": self.matched_resource,
            "decision_reason": self.reason,
            "tried": list(self.tried),
        }


def role_variants(role: str, strategies: Sequence[str] | None = None) -> List[str]:
    """Return the distinct role spellings to try, in strategy order."""

    names = strategies if strategies is not None else get_role_variant_strategies()
    variants: List[str] = []
    for name in names:
        transform = ROLE_VARIANT_TRANSFORMS.get(name)
        if transform is None:
            continue
        candidate = transform(role)
        if candidate not in variants:
            variants.append(candidate)
    if not variants:
        variants.append(role)
    return variants


class PermissionService:
    def __init__(
        self,
        store: PermissionStore,
        *,
        group_lookup: Optional[GroupLookup] = None,
        role_variant_strategies: Optional[Sequence[str]] = None,
        policy: Mapping[Tuple[FailureReason, SubjectClass], FailSafeRule] = FAILSAFE_POLICY,
    ) -> None:
        self.store = store
        self.group_lookup = group_lookup
        self.role_variant_strategies = (
            tuple(role_variant_strategies) if role_variant_strategies is not None else None
        )
        self.policy = policy

    @classmethod
    def for_session(cls, session: Session, **kwargs: Any) -> "PermissionService":
        kwargs.setdefault("group_lookup", user_group_lookup(session))
        return cls(SessionPermissionStore(session), **kwargs)

    def _lookup(
        self,
        role: str,
        canonical_resource: str,
        original_resource: str,
        normalized_type: str,
        tried: List[str],
    ) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        for variant in role_variants(role, self.role_variant_strategies):
            tried.append(f"{variant}:{canonical_resource}")
            scope = self.store.lookup_scope(variant, canonical_resource, normalized_type)
            if scope is not None:
                return scope, variant, canonical_resource
            # Rows written before canonical names existed.
            if canonical_resource != original_resource:
                tried.append(f"{variant}:{original_resource}")
                scope = self.store.lookup_scope(variant, original_resource, normalized_type)
                if scope is not None:
                    logger.warning(
                        "Permission matched on non-canonical resource name",
                        extra={
                            "matched_role": variant,
                            "original_resource": original_resource,
                            "canonical_resource": canonical_resource,
                            "permission_type": normalized_type,
                        },
                    )
                    return scope, variant, original_resource
        return None, None, None

    def _failsafe(
        self,
        failure: FailureReason,
        role: str,
        canonical_resource: str,
        original_resource: str,
        normalized_type: str,
        tried: Iterable[str],
    ) -> PermissionDecision:
        rule = failsafe_rule(failure, role, canonical_resource, normalized_type, self.policy)
        decision = PermissionDecision(
            allowed=rule.allow,
            reason=rule.reason,
            role=role,
            resource=canonical_resource,
            permission_type=normalized_type,
            tried=tuple(tried),
        )
        fields = decision.as_log_fields()
        fields.update({"original_resource": original_resource, "failsafe_reason": rule.reason})
        logger.log(
            rule.level,
            "Permission fail-safe %s: %s",
            "allow" if rule.allow else "deny",
            rule.reason,
            extra=fields,
        )
        record_failsafe(rule.reason, rule.allow)
        return decision

    def evaluate(
        self,
        user_id: Optional[str],
        user_role: Optional[str],
        user_group_id: Any,
        resource_type: str,
        permission_type: str,
        resource_owner_id: Optional[str] = None,
        resource_group_id: Any = UNSET,
    ) -> PermissionDecision:
        role = "" if user_role is None else str(user_role)
        normalized_type = normalize_permission_type(permission_type)
        original_resource = str(resource_type or "").lower()
        canonical_resource = canonicalize(original_resource)

        tried: List[str] = []
        try:
            scope, matched_role, matched_resource = self._lookup(
                role, canonical_resource, original_resource, normalized_type, tried
            )
        except PermissionStoreError:
            logger.error(
                "Permission store lookup failed",
                extra={
                    "role": role,
                    "canonical_resource": canonical_resource,
                    "permission_type": normalized_type,
                },
                exc_info=True,
            )
            decision = self._failsafe(
                FailureReason.STORE_ERROR, role, canonical_resource, original_resource, normalized_type, tried
            )
        else:
            if scope is None:
                decision = self._failsafe(
                    FailureReason.NO_RECORD, role, canonical_resource, original_resource, normalized_type, tried
                )
            else:
                allowed, reason = evaluate_scope(
                    scope,
                    normalized_type,
                    user_id,
                    user_group_id,
                    resource_owner_id,
                    resource_group_id,
                    resource_type=canonical_resource,
                    group_lookup=self.group_lookup,
                )
                decision = PermissionDecision(
                    allowed=allowed,
                    reason=reason,
                    role=role,
                    resource=canonical_resource,
                    permission_type=normalized_type,
                    scope=scope,
                    matched_role=matched_role,
                    matched_resource=matched_resource,
                    tried=tuple(tried),
                )
                if not allowed:
                    logger.info("Permission denied by scope", extra=decision.as_log_fields())
                elif reason == "group_context_missing":
                    logger.info("Group scope granted without group context", extra=decision.as_log_fields())

        record_permission_decision(canonical_resource, normalized_type, decision.allowed, decision.reason)
        return decision

    def check_permission(
        self,
        user_id: Optional[str],
        user_role: Optional[str],
        user_group_id: Any,
        resource_type: str,
        permission_type: str,
        resource_owner_id: Optional[str] = None,
        resource_group_id: Any = UNSET,
    ) -> bool:
        return self.evaluate(
            user_id,
            user_role,
            user_group_id,
            resource_type,
            permission_type,
            resource_owner_id,
            resource_group_id,
        ).allowed

    def check_resource(
        self,
        session: Session,
        user_id: str,
        user_role: str,
        user_group_id: Any,
        resource_type: str,
        resource_id: str,
        action: str,
    ) -> bool:
        """Check ``action`` on a stored QR code or short URL; a missing resource is denied."""

        context = get_resource_context(session, resource_type, resource_id)
        if context is None:
            logger.info(
                "Permission denied: resource not found",
                extra={"resource_type": resource_type, "resource_id": resource_id, "permission_type": action},
            )
            return False
        return self.check_permission(
            user_id,
            user_role,
            user_group_id,
            resource_type,
            action,
            resource_owner_id=context.owner_id,
            resource_group_id=context.owner_group_id,
        )


def check_permission(
    session: Session,
    user_id: Optional[str],
    user_role: Optional[str],
    user_group_id: Any,
    resource_type: str,
    permission_type: str,
    resource_owner_id: Optional[str] = None,
    resource_group_id: Any = UNSET,
) -> bool:
    """Session-bound shortcut for :meth:`PermissionService.check_permission`."""

    return PermissionService.for_session(session).check_permission(
        user_id,
        user_role,
        user_group_id,
        resource_type,
        permission_type,
        resource_owner_id,
        resource_group_id,
    )


def can_access_qr_code(
    session: Session, user_id: str, user_role: str, user_group_id: Any, qr_code_id: str, action: str
) -> bool:
    return PermissionService.for_session(session).check_resource(
        session, user_id, user_role, user_group_id, "qr_code", qr_code_id, action
    )


def can_access_short_url(
    session: Session, user_id: str, user_role: str, user_group_id: Any, short_url_id: str, action: str
) -> bool:
    return PermissionService.for_session(session).check_resource(
        session, user_id, user_role, user_group_id, "short_url", short_url_id, action
    )


__all__ = [
    "ROLE_VARIANT_TRANSFORMS",
    "PermissionDecision",
    "PermissionService",
    "role_variants",
    "check_permission",
    "can_access_qr_code",
    "can_access_short_url",
]
