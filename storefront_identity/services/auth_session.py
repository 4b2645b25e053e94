"""
Auth Session Facade.

The stateful front that UI collaborators talk to.  Wraps every
``IdentityReconciler`` flow in the same envelope:

1. ``is_loading=True`` and the previous error cleared on entry;
2. on success, ``user`` replaced with the resolved profile in one step;
3. on failure, ``error`` set to a human-readable message and the
   exception re-raised so the UI can branch on ``exc.code``.  Host-SDK
   and unexpected errors are wrapped in an ``IdentityError`` (code
   ``UNKNOWN_ERROR``) that keeps the original as ``original_error``;
4. ``is_loading=False`` in a ``finally`` block, whatever happened.
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from storefront_identity.auth import SessionManager, StateListener
from storefront_identity.exceptions import IdentityError, PlatformError
from storefront_identity.logger import StructuredLogger
from storefront_identity.models.auth_models import (
    AuthSessionState,
    PhoneResolution,
    UpdateProfileRequest,
)
from storefront_identity.models.user import UserProfile
from storefront_identity.services.base_service import BaseService
from storefront_identity.services.reconciler import IdentityReconciler

T = TypeVar("T")

_FALLBACK_MESSAGES: dict[str, str] = {
    "restore": "Could not check your sign-in status.",
    "login": "Sign-in failed.",
    "logout": "Sign-out failed.",
    "update_profile": "Could not update your profile.",
    "refresh": "Could not refresh your profile.",
    "request_phone": "Could not get your phone number.",
}


class AuthSessionFacade(BaseService):
    """Reactive session facade over ``IdentityReconciler``.

    Parameters
    ----------
    reconciler:
        The identity flows.
    session:
        Holder of the published ``AuthSessionState``.
    logger:
        Structured logger.
    """

    def __init__(
        self,
        reconciler: IdentityReconciler,
        session: SessionManager,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._reconciler: IdentityReconciler = reconciler
        self._session: SessionManager = session

    # ==================================================================
    # State
    # ==================================================================

    @property
    def state(self) -> AuthSessionState:
        return self._session.state

    @property
    def user(self) -> Optional[UserProfile]:
        return self._session.current_user

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._session.subscribe(listener)

    # ==================================================================
    # Operations
    # ==================================================================

    def restore(self) -> Optional[UserProfile]:
        """Start-up check: refresh only if the device remembers a login."""
        return self._run("restore", self._refresh_if_logged_in)

    def login(self) -> UserProfile:
        return self._run("login", self._login)

    def logout(self) -> None:
        self._run("logout", self._logout)

    def update_profile(self, request: UpdateProfileRequest) -> UserProfile:
        return self._run("update_profile", lambda: self._update_profile(request))

    def refresh(self) -> Optional[UserProfile]:
        return self._run("refresh", self._refresh_if_logged_in)

    def request_phone(self) -> PhoneResolution:
        """Explicit phone permission flow; does not change ``user``."""
        return self._run("request_phone", self._reconciler.request_phone)

    # ==================================================================
    # Private
    # ==================================================================

    def _login(self) -> UserProfile:
        user = self._reconciler.login()
        self._session.set_user(user)
        return user

    def _logout(self) -> None:
        self._reconciler.logout(self._session.current_user)
        self._session.clear()

    def _update_profile(self, request: UpdateProfileRequest) -> UserProfile:
        user = self._reconciler.update_profile(request, self._session.current_user)
        self._session.set_user(user)
        return user

    def _refresh_if_logged_in(self) -> Optional[UserProfile]:
        if not self._reconciler.cache.is_logged_in():
            self._logger.debug("No remembered login; skipping refresh.")
            return self._session.current_user
        user = self._reconciler.refresh()
        self._session.set_user(user)
        return user

    def _fail_unknown(self, operation: str, exc: Exception) -> IdentityError:
        """Publish the fallback message and wrap *exc* for the caller."""
        error = IdentityError(_FALLBACK_MESSAGES[operation], original_error=exc)
        self._session.set_error(error.message, error.code)
        return error

    def _run(self, operation: str, action: Callable[[], T]) -> T:
        self._session.begin_operation()
        try:
            return action()
        except IdentityError as exc:
            self._logger.warning(
                "%s failed (%s): %s", operation, exc.code, exc.message,
                extra={"event": "AUTH_OPERATION_FAILED", "operation": operation},
            )
            self._session.set_error(exc.message, exc.code)
            raise
        except PlatformError as exc:
            self._logger.warning(
                "%s failed with platform code %s: %s", operation, exc.code, exc.message,
                extra={"event": "AUTH_OPERATION_FAILED", "operation": operation},
            )
            raise self._fail_unknown(operation, exc) from exc
        except Exception as exc:
            self._logger.error(
                "%s failed unexpectedly: %s", operation, exc, exc_info=True,
                extra={"event": "AUTH_OPERATION_FAILED", "operation": operation},
            )
            raise self._fail_unknown(operation, exc) from exc
        finally:
            self._session.end_operation()
