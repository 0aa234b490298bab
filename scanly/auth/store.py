"""Read-only adapters over the ``role_permissions`` table."""

from __future__ import annotations

from typing import Mapping, Optional, Protocol, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..errors import PermissionStoreError
from ..models import RolePermission


class PermissionStore(Protocol):
    def lookup_scope(self, role: str, resource_type: str, permission_type: str) -> Optional[str]:
        """Return the stored scope for an exact (case-sensitive) triple, or ``None``."""


class SessionPermissionStore:
    """Looks up scopes through a SQLModel session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def lookup_scope(self, role: str, resource_type: str, permission_type: str) -> Optional[str]:
        stmt = (
            select(RolePermission.scope)
            .where(RolePermission.role == role)
            .where(RolePermission.resource_type == resource_type)
            .where(RolePermission.permission_type == permission_type)
            .limit(1)
        )
        try:
            return self.session.exec(stmt).first()
        except SQLAlchemyError as exc:
            raise PermissionStoreError(
                f"role_permissions lookup failed for {role!r}/{resource_type!r}/{permission_type!r}"
            ) from exc


class StaticPermissionStore:
    """Mapping-backed store keyed by ``(role, resource_type, permission_type)``."""

    def __init__(self, records: Mapping[Tuple[str, str, str], str] | None = None) -> None:
        self.records = dict(records or {})

    def lookup_scope(self, role: str, resource_type: str, permission_type: str) -> Optional[str]:
        return self.records.get((role, resource_type, permission_type))


__all__ = ["PermissionStore", "SessionPermissionStore", "StaticPermissionStore"]
