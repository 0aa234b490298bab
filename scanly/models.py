from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlmodel import SQLModel, Field, Column
from datetime import datetime, timezone


def gen_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(SQLModel, table=True):
    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("name", name="uq_roles_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None


class Group(SQLModel, table=True):
    __tablename__ = "groups"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: str = Field(default_factory=gen_id, primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    full_name: Optional[str] = None
    role_id: Optional[int] = Field(
        default=None,
        sa_column=Column(ForeignKey("roles.id", ondelete="SET NULL"), nullable=True),
    )
    # NULL means "no group assigned"; never a default group.
    group_id: Optional[int] = Field(
        default=None,
        sa_column=Column(ForeignKey("groups.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class RolePermission(SQLModel, table=True):
    """One scope for a ``(role, resource_type, permission_type)`` triple.

    ``scope`` is deliberately unconstrained text so that corrupt values can be
    stored and are resolved as denials instead of failing at write time.
    """

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint(
            "role",
            "resource_type",
            "permission_type",
            name="uq_role_permissions_role_resource_action",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    role: str = Field(sa_column=Column(String(length=100), nullable=False, index=True))
    resource_type: str = Field(sa_column=Column(String(length=100), nullable=False, index=True))
    permission_type: str = Field(sa_column=Column(String(length=20), nullable=False))
    scope: str = Field(sa_column=Column(String(length=20), nullable=False))
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class QrCode(SQLModel, table=True):
    __tablename__ = "qr_codes"

    id: str = Field(default_factory=gen_id, primary_key=True)
    name: str
    content: Optional[str] = None
    user_id: Optional[str] = Field(
        default=None,
        sa_column=Column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    created_by: Optional[str] = Field(
        default=None,
        sa_column=Column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    group_id: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ShortUrl(SQLModel, table=True):
    __tablename__ = "short_urls"
    __table_args__ = (UniqueConstraint("short_code", name="uq_short_urls_short_code"),)

    id: str = Field(default_factory=gen_id, primary_key=True)
    short_code: str = Field(index=True)
    original_url: str
    user_id: Optional[str] = Field(
        default=None,
        sa_column=Column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    created_by: Optional[str] = Field(
        default=None,
        sa_column=Column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    group_id: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class MenuItem(SQLModel, table=True):
    __tablename__ = "menu_items"
    __table_args__ = (UniqueConstraint("menu_id", name="uq_menu_items_menu_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    menu_id: str = Field(index=True)
    name: str
    path: Optional[str] = None
    icon: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, index=True)
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))


class MenuRolePermission(SQLModel, table=True):
    __tablename__ = "menu_role_permissions"

    id: Optional[int] = Field(default=None, primary_key=True)
    menu_item_id: int = Field(
        sa_column=Column(ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    role_id: Optional[int] = Field(
        default=None,
        sa_column=Column(ForeignKey("roles.id", ondelete="CASCADE"), nullable=True, index=True),
    )
    role_name: Optional[str] = Field(default=None, index=True)
    can_view: bool = Field(default=False)
    is_accessible: Optional[bool] = Field(default=None, sa_column=Column(Boolean, nullable=True))
    has_permission: Optional[bool] = Field(default=None, sa_column=Column(Boolean, nullable=True))
