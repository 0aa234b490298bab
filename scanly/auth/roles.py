"""Canonical role names.

Permission rows use lowercase slugs (``admin``, ``editor``, ``viewer``) while
the ``roles`` table and older seeds may hold labels such as ``Administrator``
or ``ADMIN``. :func:`normalize_role` folds those labels onto the slugs.
"""

from __future__ import annotations

from typing import FrozenSet, Mapping, Optional

ADMIN_ROLE_NAME = "admin"
EDITOR_ROLE_NAME = "editor"
VIEWER_ROLE_NAME = "viewer"
DEFAULT_ROLE_NAME = "user"

ROLE_ALIASES: Mapping[str, str] = {
    "administrator": ADMIN_ROLE_NAME,
    "admin": ADMIN_ROLE_NAME,
    "superadmin": ADMIN_ROLE_NAME,
    "super-admin": ADMIN_ROLE_NAME,
    "editor": EDITOR_ROLE_NAME,
    "viewer": VIEWER_ROLE_NAME,
    "read-only": VIEWER_ROLE_NAME,
    "readonly": VIEWER_ROLE_NAME,
}

# Labels that receive the implicit admin allow when no permission row exists.
ADMIN_LABELS: FrozenSet[str] = frozenset({"admin", "administrator", "superadmin", "super-admin"})


def normalize_role(raw: Optional[str]) -> str:
    """Return the canonical role slug for ``raw``.

    Unknown labels are lowercased and passed through so they still resolve
    deterministically (usually to a denial further down). Empty input maps to
    ``user``.
    """

    if raw is None:
        return DEFAULT_ROLE_NAME
    lowered = str(raw).strip().lower()
    if not lowered:
        return DEFAULT_ROLE_NAME
    return ROLE_ALIASES.get(lowered, lowered)


def is_admin_role(role: Optional[str]) -> bool:
    if not role:
        return False
    return str(role).strip().lower() in ADMIN_LABELS


__all__ = [
    "ADMIN_ROLE_NAME",
    "EDITOR_ROLE_NAME",
    "VIEWER_ROLE_NAME",
    "DEFAULT_ROLE_NAME",
    "ROLE_ALIASES",
    "ADMIN_LABELS",
    "normalize_role",
    "is_admin_role",
]
