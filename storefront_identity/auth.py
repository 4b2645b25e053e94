"""
Session State.

Provides an injectable ``SessionManager`` that holds the
``AuthSessionState`` for the lifetime of a single-user mini-app session
and republishes every change to subscribed UI listeners.

Usage::

    from storefront_identity.auth import SessionManager

    session = SessionManager()
    unsubscribe = session.subscribe(lambda state: render(state))
    session.begin_operation()
    ...
    session.end_operation()
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from storefront_identity.logger import StructuredLogger
from storefront_identity.models.auth_models import AuthSessionState
from storefront_identity.models.enums import AuthErrorCode
from storefront_identity.models.user import UserProfile

StateListener = Callable[[AuthSessionState], None]


class SessionManager:
    """Injectable holder for the current session state.

    Every mutation replaces the immutable ``AuthSessionState`` snapshot
    under a lock, then notifies listeners outside the lock with the new
    snapshot.  A listener that raises is logged and skipped.
    """

    def __init__(self, logger: Optional[StructuredLogger] = None) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._state: AuthSessionState = AuthSessionState()
        self._listeners: list[StateListener] = []
        self._logger: Optional[StructuredLogger] = logger

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> AuthSessionState:
        with self._lock:
            return self._state

    @property
    def current_user(self) -> Optional[UserProfile]:
        with self._lock:
            return self._state.user

    @property
    def is_authenticated(self) -> bool:
        """``True`` when a user is currently logged in."""
        with self._lock:
            return self._state.user is not None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def begin_operation(self) -> None:
        """Mark an operation in flight and clear the previous error."""
        self._update(is_loading=True, error=None, error_code=None)

    def end_operation(self) -> None:
        self._update(is_loading=False)

    def set_user(self, user: Optional[UserProfile]) -> None:
        self._update(user=user)

    def set_error(self, message: str, code: AuthErrorCode) -> None:
        self._update(error=message, error_code=code)

    def clear(self) -> None:
        """Remove the current user and any error, ending the session."""
        self._update(user=None, error=None, error_code=None)

    def _update(self, **changes: object) -> None:
        with self._lock:
            self._state = self._state.model_copy(update=changes)
            snapshot = self._state
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as exc:
                if self._logger is not None:
                    self._logger.error(
                        "Session listener failed: %s", exc, exc_info=True,
                    )
