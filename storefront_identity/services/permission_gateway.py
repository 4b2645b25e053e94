"""
Permission Gateway.

Wraps the host platform's scope-based authorization and exposes
capability-checked identity reads.

Scope denial is an expected outcome, not an exceptional one: the basic
info and phone-token reads turn a denied scope into a degraded result so
the calling flow keeps going.  Only a missing identity, a declined login
dialog, or an unrecognised platform error stops the caller.

Host refusal codes are classified here, via ``PLATFORM_ERROR_MAP``;
nothing above this module compares against a platform number.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Optional, Protocol

from storefront_identity.exceptions import (
    IdentityUnavailable,
    LoginDeclined,
    PermissionDenied,
    PlatformError,
)
from storefront_identity.logger import StructuredLogger
from storefront_identity.models.auth_models import BasicInfo, classify_platform_code
from storefront_identity.models.enums import PlatformErrorKind, Scope
from storefront_identity.services.base_service import BaseService


class PlatformIdentityAPI(Protocol):
    """Adapter over the host super-app's identity SDK.

    Implementations raise ``PlatformError`` carrying the host's numeric
    code when a call is refused or fails.
    """

    def get_user_id(self) -> Any:
        """Return the user id as a string, or a mapping with ``id``/``userID``."""
        ...

    def get_user_info(
        self, *, auto_request_permission: bool, avatar_type: str,
    ) -> Mapping[str, Any]:
        """Return ``{"userInfo": {"id", "name", "avatar", ...}}``."""
        ...

    def get_phone_number(self) -> Mapping[str, Any]:
        """Return ``{"token": <opaque token>}``."""
        ...

    def get_setting(self) -> Mapping[str, Any]:
        """Return ``{"authSetting": {<scope>: bool, ...}}``."""
        ...

    def authorize(self, scopes: list[str]) -> Mapping[str, Any]:
        """Show the consent dialog for *scopes*."""
        ...


class PermissionGateway(BaseService):
    """Capability-checked access to platform identity.

    Parameters
    ----------
    platform:
        Host SDK adapter.
    logger:
        Structured logger.
    avatar_type:
        Avatar size requested from the platform.
    """

    def __init__(
        self,
        platform: PlatformIdentityAPI,
        logger: StructuredLogger,
        avatar_type: str = "normal",
    ) -> None:
        super().__init__(logger)
        self._platform: PlatformIdentityAPI = platform
        self._avatar_type: str = avatar_type

    # ==================================================================
    # Scopes
    # ==================================================================

    def has_scopes(self, scopes: Iterable[Scope]) -> bool:
        """Return ``True`` only if every scope in *scopes* is already granted."""
        wanted = list(scopes)
        try:
            settings = self._platform.get_setting()
        except PlatformError as exc:
            self._logger.warning("Could not read authorization settings: %s", exc)
            return False

        auth_setting: Mapping[str, Any] = settings.get("authSetting") or {}
        return all(bool(auth_setting.get(str(scope))) for scope in wanted)

    def request_scopes(self, scopes: Iterable[Scope]) -> None:
        """Show the platform consent dialog for *scopes*.

        Raises:
            PermissionDenied: The user declined the scope dialog.
            LoginDeclined: The user declined the overall login dialog.
            PlatformError: Any other platform failure.
        """
        scope_names = [str(scope) for scope in scopes]
        self._logger.info("Requesting permissions: %s", ", ".join(scope_names))
        try:
            self._platform.authorize(scope_names)
        except PlatformError as exc:
            translated = self._translate(exc)
            if translated is exc:
                raise
            self._logger.info(
                "Permission request refused (code %s): %s", exc.code, ", ".join(scope_names),
            )
            raise translated from exc
        self._logger.info("Permissions granted: %s", ", ".join(scope_names))

    def ensure_scopes(self, scopes: Iterable[Scope]) -> None:
        """Request *scopes* only if any of them is not granted yet."""
        wanted = list(scopes)
        if self.has_scopes(wanted):
            return
        self.request_scopes(wanted)

    # ==================================================================
    # Identity reads
    # ==================================================================

    def fetch_platform_id(self) -> str:
        """Return the platform-native user identifier.

        Raises:
            IdentityUnavailable: Empty, malformed, or unreadable identifier.
            LoginDeclined: The user declined the login dialog.
        """
        try:
            raw: Any = self._platform.get_user_id()
        except PlatformError as exc:
            translated = self._translate(exc)
            if isinstance(translated, LoginDeclined):
                raise translated from exc
            raise IdentityUnavailable(original_error=exc) from exc

        uid: str = ""
        if isinstance(raw, str):
            uid = raw.strip()
        elif isinstance(raw, Mapping):
            candidate = raw.get("id") or raw.get("userID")
            uid = str(candidate).strip() if candidate is not None else ""

        if not uid:
            self._logger.error("Platform returned no usable user id: %r", raw)
            raise IdentityUnavailable()

        self._logger.debug("Platform user id resolved: %s", uid)
        return uid

    def fetch_basic_info(self, platform_id: Optional[str] = None) -> BasicInfo:
        """Request the ``userInfo`` scope, then read name and avatar.

        A denied scope does not fail the caller: a degraded ``BasicInfo``
        carrying only the platform ID is returned.

        Args:
            platform_id: Already-known platform ID used for the degraded
                result; looked up again when omitted.

        Raises:
            LoginDeclined: The user declined the overall login dialog.
            IdentityUnavailable: Degraded path could not obtain an ID.
            PlatformError: Any other platform failure.
        """
        try:
            self.ensure_scopes([Scope.USER_INFO])
            payload = self._platform.get_user_info(
                auto_request_permission=False,
                avatar_type=self._avatar_type,
            )
        except PlatformError as exc:
            translated = self._translate(exc)
            if translated is exc:
                raise
            if isinstance(translated, LoginDeclined):
                raise translated from exc
            return self._degraded_basic_info(platform_id)
        except LoginDeclined:
            raise
        except PermissionDenied:
            return self._degraded_basic_info(platform_id)

        user_info: Mapping[str, Any] = payload.get("userInfo") or {}
        info = BasicInfo(
            id=str(user_info.get("id") or platform_id or self.fetch_platform_id()),
            name=user_info.get("name") or None,
            avatar=user_info.get("avatar") or None,
        )
        self._logger.info("Basic user info read for %s.", info.id)
        return info

    def fetch_phone_token(self) -> Optional[str]:
        """Request the phone scope and return the undecoded token.

        Returns ``None`` if the user refused either the scope or the login
        dialog, or if the platform produced an empty token.

        Raises:
            PlatformError: Any other platform failure.
        """
        try:
            self.ensure_scopes([Scope.USER_PHONENUMBER])
            payload = self._platform.get_phone_number()
        except PermissionDenied as exc:
            self._logger.info("Phone number permission denied (%s).", exc.kind)
            return None
        except PlatformError as exc:
            translated = self._translate(exc)
            if translated is exc:
                raise
            self._logger.info("Phone number permission denied (%s).", exc.code)
            return None

        token: Optional[str] = payload.get("token") or None
        if token is None:
            self._logger.warning("Platform returned an empty phone token.")
        return token

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _degraded_basic_info(self, platform_id: Optional[str]) -> BasicInfo:
        uid = platform_id or self.fetch_platform_id()
        self._logger.warning(
            "User denied userInfo permission; continuing with id only for %s.", uid,
        )
        return BasicInfo(id=uid, is_degraded=True)

    @staticmethod
    def _translate(exc: PlatformError) -> Exception:
        """Map a ``PlatformError`` onto the internal taxonomy.

        Unknown codes are returned unchanged so callers can re-raise them.
        """
        kind = classify_platform_code(exc.code)
        if kind is PlatformErrorKind.SCOPE_DENIED:
            return PermissionDenied(
                kind=kind, platform_code=exc.code, original_error=exc,
            )
        if kind is PlatformErrorKind.CONSENT_DECLINED:
            return LoginDeclined(platform_code=exc.code, original_error=exc)
        return exc
