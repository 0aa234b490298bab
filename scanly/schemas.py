from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class StatusResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


class ForbiddenOut(BaseModel):
    status: int = 403
    code: str = "forbidden"
    from_path: Optional[str] = Field(default=None, serialization_alias="from")
    reason: Optional[str] = None


class PermissionCheckIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    resource_type: str = Field(
        min_length=1,
        validation_alias=AliasChoices("resourceType", "resource_type"),
    )
    permission_type: str = Field(
        min_length=1,
        validation_alias=AliasChoices("permissionType", "permission_type"),
    )
    resource_owner_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("resourceOwnerId", "resource_owner_id"),
    )
    resource_group_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("resourceGroupId", "resource_group_id"),
    )

    @field_validator("resource_owner_id", "resource_group_id", mode="before")
    @classmethod
    def _coerce_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class PermissionCheckOut(BaseModel):
    has_permission: bool = Field(serialization_alias="hasPermission")
    reason: str
    scope: Optional[str] = None


class IdentityOut(BaseModel):
    user_id: str
    role: str
    group_id: int
    email: Optional[str] = None
    source: str


class QrCodeIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255)
    content: Optional[str] = None


class QrCodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    content: Optional[str] = None
    user_id: Optional[str] = None
    group_id: Optional[int] = None
    created_at: datetime


class ShortUrlIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    short_code: str = Field(
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices("shortCode", "short_code"),
    )
    original_url: str = Field(
        min_length=1,
        validation_alias=AliasChoices("originalUrl", "original_url"),
    )


class ShortUrlOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    short_code: str
    original_url: str
    user_id: Optional[str] = None
    group_id: Optional[int] = None
    created_at: datetime
