from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session

from ..auth.dependencies import get_current_identity
from ..auth.identity import Identity
from ..auth.roles import is_admin_role
from ..db import get_session
from ..menus import build_menu_tree


router = APIRouter(prefix="/api/menus", tags=["menus"])


@router.get("/structure", response_model=dict)
def menu_structure(
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    nodes = build_menu_tree(session, identity.role)
    return {"menus": [node.to_dict() for node in nodes]}


@router.post("/cache/invalidate", response_model=dict)
def invalidate_menu_cache(
    request: Request,
    user_id: Optional[str] = None,
    role: Optional[str] = None,
    identity: Identity = Depends(get_current_identity),
):
    """Drop cached trees; non-admins may only drop their own."""
    if not is_admin_role(identity.role):
        if (user_id and user_id != identity.user_id) or (role and role != identity.role):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
        user_id = identity.user_id
    guard = getattr(request.app.state, "route_guard", None)
    if guard is None:
        return {"removed": 0}
    return {"removed": guard.cache.invalidate(user_id=user_id, role=role)}
