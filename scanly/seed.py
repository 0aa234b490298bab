"""Seed the default role-permission matrix and a starter navigation menu.

Usage:
  DATABASE_URL=... python -m scanly.seed
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Tuple

from sqlmodel import Session, select

from .auth.roles import ADMIN_ROLE_NAME, DEFAULT_ROLE_NAME
from .auth.scope import Scope
from .db import get_engine, init_db
from .models import MenuItem, MenuRolePermission, Role, RolePermission

logger = logging.getLogger(__name__)

SEEDED_RESOURCE_TYPES: Tuple[str, ...] = (
    "qr_code",
    "qr_category",
    "short_url",
    "url_category",
    "qr_analytics",
    "qr_event_scans",
    "url_analytics",
    "url_event_clicks",
    "profile",
    "user_setting",
    "users",
    "group_users",
)
# Exports are checked against the read scope, so no export rows are written.
SEEDED_ACTIONS: Tuple[str, ...] = ("create", "read", "update", "delete")

Template = Mapping[str, Mapping[str, str]]


def _row(create: str, read: str, update: str, delete: str) -> Dict[str, str]:
    return dict(zip(SEEDED_ACTIONS, (create, read, update, delete)))


_OWNED = _row("own", "group", "own", "own")
_GROUP_READ_ONLY = _row("none", "group", "none", "none")
_SELF_SERVICE = _row("none", "own", "own", "none")
_GROUP_DIRECTORY = _row("none", "group", "none", "none")

DEFAULT_TEMPLATES: Dict[str, Template] = {
    ADMIN_ROLE_NAME: {
        resource: {action: Scope.ALL.value for action in SEEDED_ACTIONS}
        for resource in SEEDED_RESOURCE_TYPES
    },
    DEFAULT_ROLE_NAME: {
        "qr_code": _OWNED,
        "qr_category": _OWNED,
        "short_url": _OWNED,
        "url_category": _OWNED,
        "qr_analytics": _GROUP_READ_ONLY,
        "url_analytics": _GROUP_READ_ONLY,
        "qr_event_scans": _GROUP_READ_ONLY,
        "url_event_clicks": _GROUP_READ_ONLY,
        "profile": _SELF_SERVICE,
        "user_setting": _SELF_SERVICE,
        "users": _GROUP_DIRECTORY,
        "group_users": _GROUP_DIRECTORY,
    },
}

# (menu_id, name, path, icon, parent_id, sort_order, roles allowed to view)
DEFAULT_MENU: Tuple[Tuple[str, str, str, str, Optional[str], int, Tuple[str, ...]], ...] = (
    ("dashboard", "Dashboard", "/dashboard", "home", None, 0, (ADMIN_ROLE_NAME, DEFAULT_ROLE_NAME)),
    ("qr-codes", "QR Codes", "/qr-codes", "qr-code", None, 10, (ADMIN_ROLE_NAME, DEFAULT_ROLE_NAME)),
    ("short-urls", "Short URLs", "/short-urls", "link", None, 20, (ADMIN_ROLE_NAME, DEFAULT_ROLE_NAME)),
    ("analytics", "Analytics", "/analytics", "chart", None, 30, (ADMIN_ROLE_NAME, DEFAULT_ROLE_NAME)),
    ("admin", "Administration", "/admin", "shield", None, 90, (ADMIN_ROLE_NAME,)),
    ("admin-users", "Users", "/admin/users", "users", "admin", 0, (ADMIN_ROLE_NAME,)),
    ("admin-permissions", "Permissions", "/admin/permissions", "key", "admin", 10, (ADMIN_ROLE_NAME,)),
)


def seed_default_permissions(session: Session, templates: Optional[Mapping[str, Template]] = None) -> Dict[str, int]:
    """Upsert the permission templates; ``none`` cells are skipped, not written.

    Returns counts of created and updated rows. The caller commits.
    """

    created = updated = 0
    for role, matrix in (templates or DEFAULT_TEMPLATES).items():
        for resource_type, row in matrix.items():
            for action in SEEDED_ACTIONS:
                scope = row.get(action) or Scope.NONE.value
                if scope == Scope.NONE.value:
                    continue
                existing = session.exec(
                    select(RolePermission).where(
                        RolePermission.role == role,
                        RolePermission.resource_type == resource_type,
                        RolePermission.permission_type == action,
                    )
                ).first()
                if existing is None:
                    session.add(
                        RolePermission(role=role, resource_type=resource_type, permission_type=action, scope=scope)
                    )
                    created += 1
                elif existing.scope != scope:
                    existing.scope = scope
                    session.add(existing)
                    updated += 1
    session.flush()
    logger.info("Seeded default permissions", extra={"rows_created": created, "rows_updated": updated})
    return {"created": created, "updated": updated}


def ensure_role(session: Session, name: str, description: Optional[str] = None) -> Role:
    role = session.exec(select(Role).where(Role.name == name)).first()
    if role is None:
        role = Role(name=name, description=description)
        session.add(role)
        session.flush()
    return role


def seed_default_menu(session: Session) -> int:
    """Create the starter menu items and their per-role visibility. Existing items are left alone."""

    roles = {name: ensure_role(session, name) for name in (ADMIN_ROLE_NAME, DEFAULT_ROLE_NAME)}
    created = 0
    for menu_id, name, path, icon, parent_id, sort_order, visible_to in DEFAULT_MENU:
        if session.exec(select(MenuItem).where(MenuItem.menu_id == menu_id)).first() is not None:
            continue
        item = MenuItem(menu_id=menu_id, name=name, path=path, icon=icon, parent_id=parent_id, sort_order=sort_order)
        session.add(item)
        session.flush()
        for role_name, role in roles.items():
            allowed = role_name in visible_to
            session.add(
                MenuRolePermission(
                    menu_item_id=item.id,
                    role_id=role.id,
                    role_name=role_name,
                    can_view=allowed,
                    is_accessible=allowed,
                    has_permission=allowed,
                )
            )
        created += 1
    session.flush()
    return created


def seed() -> None:
    init_db()
    with Session(get_engine()) as session:
        counts = seed_default_permissions(session)
        menus = seed_default_menu(session)
        session.commit()
    print(f"Seeded permissions (created={counts['created']}, updated={counts['updated']}) and {menus} menu items.")


if __name__ == "__main__":
    seed()
