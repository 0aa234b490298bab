"""Resolve who owns a QR code or short URL and which group that owner is in.

Absence is a normal outcome here: a missing resource, a resource without an
owner, or a failed lookup all come back as ``None`` and are treated as
"ownership cannot be determined" by callers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel

from ..models import QrCode, ShortUrl, User
from .resources import canonicalize

logger = logging.getLogger(__name__)

OWNED_RESOURCE_MODELS: Dict[str, Type[SQLModel]] = {
    "qr_code": QrCode,
    "short_url": ShortUrl,
}


@dataclass(frozen=True)
class ResourceOwnership:
    owner_id: Optional[str]
    owner_group_id: Optional[int]


def _owner_of(resource: SQLModel) -> Optional[str]:
    owner = getattr(resource, "user_id", None) or getattr(resource, "created_by", None)
    return str(owner) if owner else None


def get_user_group_id(session: Session, user_id: str) -> Optional[int]:
    """Return the user's group id (``0`` when unassigned) or ``None`` if the user is unknown."""

    if not user_id:
        return None
    try:
        user = session.get(User, user_id)
    except SQLAlchemyError:
        logger.error("User group lookup failed", extra={"target_user_id": user_id}, exc_info=True)
        return None
    if user is None:
        return None
    return user.group_id or 0


def user_group_lookup(session: Session) -> Callable[[str], Optional[int]]:
    def _lookup(user_id: str) -> Optional[int]:
        return get_user_group_id(session, user_id)

    return _lookup


def _load_resource(session: Session, resource_type: str, resource_id: str) -> Optional[SQLModel]:
    model = OWNED_RESOURCE_MODELS.get(canonicalize(resource_type))
    if model is None:
        logger.debug("No ownership model for resource type", extra={"resource_type": resource_type})
        return None
    if not resource_id:
        return None
    try:
        return session.get(model, resource_id)
    except SQLAlchemyError:
        logger.error(
            "Resource ownership lookup failed",
            extra={"resource_type": resource_type, "resource_id": resource_id},
            exc_info=True,
        )
        return None


def get_resource_owner(session: Session, resource_type: str, resource_id: str) -> Optional[ResourceOwnership]:
    """Return the owner and the owner's group, or ``None`` when either is unresolvable."""

    resource = _load_resource(session, resource_type, resource_id)
    if resource is None:
        return None
    owner_id = _owner_of(resource)
    if not owner_id:
        return None
    return ResourceOwnership(owner_id=owner_id, owner_group_id=get_user_group_id(session, owner_id) or 0)


def get_resource_context(session: Session, resource_type: str, resource_id: str) -> Optional[ResourceOwnership]:
    """Like :func:`get_resource_owner` but keeps ownerless resources.

    An ownerless resource reports its own ``group_id`` so group scope can still
    match it; ``None`` is returned only when the resource does not exist.
    """

    resource = _load_resource(session, resource_type, resource_id)
    if resource is None:
        return None
    owner_id = _owner_of(resource)
    if owner_id:
        return ResourceOwnership(owner_id=owner_id, owner_group_id=get_user_group_id(session, owner_id) or 0)
    return ResourceOwnership(owner_id=None, owner_group_id=getattr(resource, "group_id", None))


__all__ = [
    "OWNED_RESOURCE_MODELS",
    "ResourceOwnership",
    "get_user_group_id",
    "user_group_lookup",
    "get_resource_owner",
    "get_resource_context",
]
