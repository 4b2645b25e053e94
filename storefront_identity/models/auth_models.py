"""
Identity Pipeline Models.

Pydantic models for the contracts between the permission gateway, the
reconciler and the session facade, plus the two lookup tables that turn
host-platform codes and internal error codes into something a UI can
show.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from storefront_identity.models.enums import AuthErrorCode, PlatformErrorKind
from storefront_identity.models.user import UserProfile


# ---------------------------------------------------------------------------
# Host-platform code mapping
# ---------------------------------------------------------------------------

PLATFORM_ERROR_MAP: dict[int, PlatformErrorKind] = {
    -1401: PlatformErrorKind.SCOPE_DENIED,
    -201: PlatformErrorKind.CONSENT_DECLINED,
}


def classify_platform_code(code: Optional[int]) -> PlatformErrorKind:
    """Map a raw host error code onto a ``PlatformErrorKind``."""
    if code is None:
        return PlatformErrorKind.UNKNOWN
    return PLATFORM_ERROR_MAP.get(code, PlatformErrorKind.UNKNOWN)


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

ERROR_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.PERMISSION_DENIED: "You declined the permission request.",
    AuthErrorCode.LOGIN_DECLINED: "You declined to sign in.",
    AuthErrorCode.IDENTITY_UNAVAILABLE: (
        "Could not read your account from the app. Please try again."
    ),
    AuthErrorCode.REMOTE_UNAVAILABLE: (
        "Cannot reach the server. Check your internet connection."
    ),
    AuthErrorCode.NO_ACTIVE_SESSION: "Please sign in before editing your profile.",
    AuthErrorCode.UNKNOWN_ERROR: "Something went wrong. Please try again.",
}


# ---------------------------------------------------------------------------
# Gateway / reconciler payloads
# ---------------------------------------------------------------------------

class BasicInfo(BaseModel):
    """Name and avatar as read from the host platform.

    ``is_degraded`` is ``True`` when the ``userInfo`` scope was denied and
    only the platform ID could be obtained.
    """

    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    is_degraded: bool = False


class UpdateProfileRequest(BaseModel):
    """User-editable profile fields.

    ``None`` means "leave unchanged".  ``email`` is accepted for forward
    compatibility but is not forwarded to the remote store.
    """

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class PhoneResolution(BaseModel):
    """Outcome of the explicit request-phone action.

    When ``is_placeholder`` is ``True`` the ``phone`` value did not come
    from a token exchange and must not be stored as the customer's number.
    """

    token: str
    phone: Optional[str] = None
    is_placeholder: bool = False


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

class AuthSessionState(BaseModel):
    """Immutable snapshot of the session published to UI collaborators."""

    model_config = ConfigDict(frozen=True)

    user: Optional[UserProfile] = None
    is_loading: bool = False
    error: Optional[str] = None
    error_code: Optional[AuthErrorCode] = None

    @property
    def is_logged_in(self) -> bool:
        return self.user is not None
