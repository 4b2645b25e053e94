"""
Identity Error Taxonomy.

Every failure that crosses the reconciler boundary is an ``IdentityError``
carrying an ``AuthErrorCode`` and a human-readable message, so the session
facade can publish the message and UI code can branch on the code without
ever seeing a raw transport or host-SDK exception.

``PlatformError`` is the one exception that lives *below* that boundary:
host-SDK adapters raise it with the platform's numeric code and the
permission gateway translates it.
"""

from __future__ import annotations

from typing import Optional

from storefront_identity.models.auth_models import ERROR_MESSAGES
from storefront_identity.models.enums import AuthErrorCode, PlatformErrorKind


class PlatformError(Exception):
    """Raw failure reported by the host platform SDK."""

    def __init__(self, code: Optional[int], message: str = "") -> None:
        self.code: Optional[int] = code
        self.message: str = message or f"Platform error {code}"
        super().__init__(self.message)


class IdentityError(Exception):
    """Base class for identity subsystem failures."""

    code: AuthErrorCode = AuthErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.message: str = message or ERROR_MESSAGES[self.code]
        self.original_error: Optional[BaseException] = original_error
        super().__init__(self.message)


class PermissionDenied(IdentityError):
    """The user declined a permission dialog.

    ``kind`` distinguishes a declined scope from a declined login;
    ``platform_code`` keeps the host's own code for diagnostics.
    """

    code = AuthErrorCode.PERMISSION_DENIED

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        kind: PlatformErrorKind = PlatformErrorKind.SCOPE_DENIED,
        platform_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.kind: PlatformErrorKind = kind
        self.platform_code: Optional[int] = platform_code
        super().__init__(message, original_error=original_error)


class LoginDeclined(PermissionDenied):
    """The user declined the overall login / consent dialog."""

    code = AuthErrorCode.LOGIN_DECLINED

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        platform_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            kind=PlatformErrorKind.CONSENT_DECLINED,
            platform_code=platform_code,
            original_error=original_error,
        )


class IdentityUnavailable(IdentityError):
    """The host platform returned no usable user identifier."""

    code = AuthErrorCode.IDENTITY_UNAVAILABLE


class RemoteUnavailable(IdentityError):
    """The remote profile store is unreachable or rejected the call."""

    code = AuthErrorCode.REMOTE_UNAVAILABLE


class ProfileNotFound(RemoteUnavailable):
    """A write to the remote profile store returned no row."""


class NoActiveSession(IdentityError):
    """A profile update was requested with nobody logged in."""

    code = AuthErrorCode.NO_ACTIVE_SESSION
