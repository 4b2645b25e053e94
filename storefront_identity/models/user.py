"""
User Profile Model.

The canonical identity record shared by the host platform, the remote
profile table and the on-device cache.  ``id`` is the platform-issued
identifier and the primary key in all three places.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserProfile(BaseModel):
    """Represents a storefront customer identity.

    Optional fields stay ``None`` until the corresponding permission is
    granted (``name``/``avatar``) or the phone token has been resolved.
    Blank strings coming from the platform or the database are folded
    into ``None`` so that "absent" has exactly one spelling.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    last_login: Optional[str] = Field(default=None, alias="lastLogin")

    @field_validator("id", mode="before")
    @classmethod
    def _require_id(cls, value: object) -> str:
        if value is None:
            raise ValueError("Profile id is required")
        text = str(value).strip()
        if not text:
            raise ValueError("Profile id must not be empty")
        return text

    @field_validator("name", "avatar", "phone", "email", "last_login", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        text = str(value)
        return text if text.strip() else None

    def to_storage_json(self) -> str:
        """Serialise with camelCase aliases, the on-device record format."""
        return self.model_dump_json(by_alias=True)

    def with_last_login(self, timestamp: str) -> "UserProfile":
        return self.model_copy(update={"last_login": timestamp})


GATED_FIELDS: tuple[str, ...] = ("name", "avatar", "phone")


def missing_gated_fields(user: Optional[UserProfile]) -> list[str]:
    """Return the permission-gated fields the UI should offer to re-request.

    An absent user counts as missing every gated field.
    """
    if user is None:
        return list(GATED_FIELDS)
    return [field for field in GATED_FIELDS if getattr(user, field) is None]
