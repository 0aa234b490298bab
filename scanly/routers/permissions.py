from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError

from ..auth.dependencies import get_current_identity, get_permission_service
from ..auth.identity import Identity
from ..auth.scope import UNSET
from ..auth.service import PermissionService
from ..schemas import IdentityOut, PermissionCheckIn, PermissionCheckOut


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["permissions"])


@router.post("/permissions/check", response_model=PermissionCheckOut)
def check_permission(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    identity: Identity = Depends(get_current_identity),
    service: PermissionService = Depends(get_permission_service),
):
    try:
        body = PermissionCheckIn.model_validate(payload or {})
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "invalid_request",
                "message": "resourceType and permissionType are required",
                "errors": exc.errors(include_url=False, include_context=False),
            },
        ) from exc

    decision = service.evaluate(
        identity.user_id,
        identity.role,
        identity.group_id,
        body.resource_type,
        body.permission_type,
        resource_owner_id=body.resource_owner_id,
        resource_group_id=UNSET if body.resource_group_id is None else body.resource_group_id,
    )
    logger.debug("Permission check answered", extra=decision.as_log_fields())
    return PermissionCheckOut(has_permission=decision.allowed, reason=decision.reason, scope=decision.scope)


@router.get("/auth/me", response_model=IdentityOut)
def whoami(identity: Identity = Depends(get_current_identity)):
    return IdentityOut(
        user_id=identity.user_id,
        role=identity.role,
        group_id=identity.group_id,
        email=identity.email,
        source=identity.source,
    )
