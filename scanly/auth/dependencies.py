"""FastAPI dependencies turning permission decisions into 401/403 responses."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..db import get_session
from ..errors import permission_error
from .identity import Identity, IdentityExtractor, build_identity_extractor
from .ownership import ResourceOwnership, get_resource_context
from .resources import ANALYTICS_RESOURCES, PermissionType, canonicalize
from .roles import is_admin_role
from .scope import UNSET
from .service import PermissionService

logger = logging.getLogger(__name__)

OwnerResolver = Callable[[Request, Session], Optional[ResourceOwnership]]

_UNRESOLVED = object()


def _extractor_for(request: Request) -> IdentityExtractor:
    extractor = getattr(request.app.state, "identity_extractor", None)
    if extractor is None:
        extractor = build_identity_extractor()
        request.app.state.identity_extractor = extractor
    return extractor


def get_optional_identity(request: Request, session: Session = Depends(get_session)) -> Optional[Identity]:
    # The route guard middleware stores what it resolved; reuse it when present.
    cached = getattr(request.state, "identity", _UNRESOLVED)
    if cached is not _UNRESOLVED:
        return cached
    identity = _extractor_for(request).get_identity(request, session)
    request.state.identity = identity
    return identity


def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "AUTH_REQUIRED", "message": "Authentication required"},
        )
    return identity


def get_permission_service(session: Session = Depends(get_session)) -> PermissionService:
    return PermissionService.for_session(session)


def owner_from_path(resource_type: str, param: str = "resource_id", *, required: bool = False) -> OwnerResolver:
    """Resolve ownership of ``resource_type`` from the ``param`` path parameter.

    With ``required`` a missing resource answers 404 instead of being checked
    without ownership.
    """

    def _resolve(request: Request, session: Session) -> Optional[ResourceOwnership]:
        resource_id = request.path_params.get(param)
        context = None
        if resource_id:
            context = get_resource_context(session, resource_type, str(resource_id))
        if context is None and required:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "not_found", "message": f"{resource_type} not found"},
            )
        return context

    return _resolve


def require_permission(
    resource: str,
    action: str,
    *,
    resolve_owner: Optional[OwnerResolver] = None,
    admin_bypass: bool = True,
    forbid_message: Optional[str] = None,
):
    """Dependency factory enforcing ``action`` on ``resource``; yields the caller's identity."""

    canonical = canonicalize(resource)
    action_value = str(getattr(action, "value", action))

    def _require(
        request: Request,
        identity: Identity = Depends(get_current_identity),
        session: Session = Depends(get_session),
        service: PermissionService = Depends(get_permission_service),
    ) -> Identity:
        if admin_bypass and is_admin_role(identity.role):
            return identity

        # Brand-new users without a group get empty analytics instead of 403s.
        if (
            action_value == PermissionType.READ.value
            and not identity.has_group
            and canonical in ANALYTICS_RESOURCES
        ):
            return identity

        owner_id: Optional[str] = None
        group_id = UNSET
        if resolve_owner is not None:
            try:
                ownership = resolve_owner(request, session)
            except SQLAlchemyError:
                logger.warning(
                    "Owner resolution failed; checking without ownership",
                    extra={"resource_type": canonical, "path": request.url.path},
                    exc_info=True,
                )
                ownership = None
            if ownership is not None:
                owner_id = ownership.owner_id
                group_id = ownership.owner_group_id

        decision = service.evaluate(
            identity.user_id,
            identity.role,
            identity.group_id,
            canonical,
            action_value,
            resource_owner_id=owner_id,
            resource_group_id=group_id,
        )
        if not decision.allowed:
            detail = permission_error(action_value, canonical)
            if forbid_message:
                detail["message"] = forbid_message
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return identity

    return _require


__all__ = [
    "OwnerResolver",
    "get_optional_identity",
    "get_current_identity",
    "get_permission_service",
    "owner_from_path",
    "require_permission",
]
