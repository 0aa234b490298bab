"""Per-role navigation trees built from ``menu_items`` and ``menu_role_permissions``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from .auth.roles import normalize_role
from .models import MenuItem, MenuRolePermission, Role

logger = logging.getLogger(__name__)

_ACCESS_KEYS = ("isAccessible", "is_accessible")
_PERMISSION_KEYS = ("hasPermission", "has_permission")


def _first_present(data: Mapping[str, Any], keys: Iterable[str]) -> Optional[bool]:
    for key in keys:
        if key in data and data[key] is not None:
            return bool(data[key])
    return None


def _text_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


@dataclass
class MenuNode:
    id: str
    name: str = ""
    path: Optional[str] = None
    icon: Optional[str] = None
    is_accessible: Optional[bool] = None
    has_permission: Optional[bool] = None
    children: List["MenuNode"] = field(default_factory=list)

    @property
    def locked(self) -> bool:
        """``True`` only when a flag explicitly says ``False``; unknown flags are not locks."""

        return self.is_accessible is False or self.has_permission is False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MenuNode":
        children = data.get("children")
        return cls(
            id=str(data.get("id") or data.get("menu_id") or ""),
            name=str(data.get("name") or ""),
            path=_text_or_none(data.get("path")) or _text_or_none(data.get("href")),
            icon=data.get("icon"),
            is_accessible=_first_present(data, _ACCESS_KEYS),
            has_permission=_first_present(data, _PERMISSION_KEYS),
            children=[
                cls.from_mapping(child) for child in children if isinstance(child, Mapping)
            ] if isinstance(children, list) else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "icon": self.icon,
            "isAccessible": bool(self.is_accessible),
            "hasPermission": bool(self.has_permission if self.has_permission is not None else self.is_accessible),
        }
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def parse_tree(nodes: Any) -> List[MenuNode]:
    if not isinstance(nodes, list):
        return []
    return [MenuNode.from_mapping(node) for node in nodes if isinstance(node, Mapping)]


def flatten(nodes: Iterable[MenuNode]) -> List[MenuNode]:
    flat: List[MenuNode] = []
    stack = list(nodes)
    while stack:
        node = stack.pop()
        flat.append(node)
        stack.extend(node.children)
    return flat


def resolve_role(session: Session, role_name: str) -> Optional[Role]:
    """Find the ``roles`` row for ``role_name``: exact, then case-insensitive, then by alias."""

    if not role_name:
        return None
    role = session.exec(select(Role).where(Role.name == role_name)).first()
    if role is not None:
        return role
    role = session.exec(select(Role).where(func.lower(Role.name) == role_name.lower())).first()
    if role is not None:
        return role
    canonical = normalize_role(role_name)
    for candidate in session.exec(select(Role)).all():
        if normalize_role(candidate.name) == canonical:
            return candidate
    return None


def _permission_rows(session: Session, role_name: str, role: Optional[Role]) -> List[MenuRolePermission]:
    rows: List[MenuRolePermission] = []
    if role is not None:
        rows = list(session.exec(select(MenuRolePermission).where(MenuRolePermission.role_id == role.id)).all())
    if not rows:
        names = {role_name}
        if role is not None:
            names.add(role.name)
        rows = list(
            session.exec(select(MenuRolePermission).where(MenuRolePermission.role_name.in_(names))).all()
        )
    return rows


def build_menu_tree(session: Session, role_name: str, *, include_inactive: bool = False) -> List[MenuNode]:
    """Return the ordered menu tree with per-role accessibility flags.

    Accessibility comes from ``is_accessible``, then ``can_view``, then
    ``False`` when the role has no row for an item.
    """

    role = resolve_role(session, role_name)
    stmt = select(MenuItem).order_by(MenuItem.sort_order, MenuItem.id)
    if not include_inactive:
        stmt = stmt.where(MenuItem.is_active == True)  # noqa: E712
    items = list(session.exec(stmt).all())
    permissions = {row.menu_item_id: row for row in _permission_rows(session, role_name, role)}
    if not permissions:
        logger.warning("No menu permission rows for role", extra={"role": role_name})

    children_of: Dict[Optional[str], List[MenuItem]] = {}
    for item in items:
        children_of.setdefault(item.parent_id, []).append(item)

    def build(parent_id: Optional[str], seen: frozenset) -> List[MenuNode]:
        nodes: List[MenuNode] = []
        for item in children_of.get(parent_id, []):
            if item.menu_id in seen:
                logger.error("Menu cycle detected", extra={"menu_id": item.menu_id})
                continue
            perm = permissions.get(item.id)
            is_accessible = False
            has_permission: Optional[bool] = None
            if perm is not None:
                is_accessible = perm.is_accessible if perm.is_accessible is not None else bool(perm.can_view)
                has_permission = perm.has_permission
            nodes.append(
                MenuNode(
                    id=item.menu_id,
                    name=item.name,
                    path=item.path,
                    icon=item.icon,
                    is_accessible=is_accessible,
                    has_permission=has_permission if has_permission is not None else is_accessible,
                    children=build(item.menu_id, seen | {item.menu_id}),
                )
            )
        return nodes

    return build(None, frozenset())


__all__ = [
    "MenuNode",
    "parse_tree",
    "flatten",
    "resolve_role",
    "build_menu_tree",
]
