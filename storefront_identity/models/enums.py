"""
Shared Enumerations for identity models.

StrEnum values compare equal to their string equivalents, so host
payloads such as ``{"scope.userInfo": True}`` can be indexed with a
``Scope`` member directly.
"""

from __future__ import annotations
from enum import StrEnum


class Scope(StrEnum):
    """Host-platform permission scopes requested by this subsystem."""

    USER_INFO = "scope.userInfo"
    USER_PHONENUMBER = "scope.userPhonenumber"


class PlatformErrorKind(StrEnum):
    """Stable classification of host-platform refusal codes.

    The host reports refusals as bare negative integers; the permission
    gateway maps them onto these kinds so nothing above it ever compares
    against a platform-specific number.
    """

    SCOPE_DENIED = "SCOPE_DENIED"
    CONSENT_DECLINED = "CONSENT_DECLINED"
    UNKNOWN = "UNKNOWN"


class AuthErrorCode(StrEnum):
    """Error categories surfaced to UI collaborators."""

    PERMISSION_DENIED = "permission_denied"
    LOGIN_DECLINED = "login_declined"
    IDENTITY_UNAVAILABLE = "identity_unavailable"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    NO_ACTIVE_SESSION = "no_active_session"
    UNKNOWN_ERROR = "unknown_error"
