"""
Data Models Package.

Re-exports the identity models:
    from storefront_identity.models import UserProfile, AuthSessionState
    from storefront_identity.models import Scope, AuthErrorCode
"""

from __future__ import annotations

from storefront_identity.models.enums import AuthErrorCode, PlatformErrorKind, Scope
from storefront_identity.models.user import UserProfile, missing_gated_fields
from storefront_identity.models.auth_models import (
    AuthSessionState,
    BasicInfo,
    PhoneResolution,
    UpdateProfileRequest,
    classify_platform_code,
)

__all__ = [
    "AuthErrorCode",
    "PlatformErrorKind",
    "Scope",
    "UserProfile",
    "missing_gated_fields",
    "AuthSessionState",
    "BasicInfo",
    "PhoneResolution",
    "UpdateProfileRequest",
    "classify_platform_code",
]
