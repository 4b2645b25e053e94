"""
Local Cache Store.

Keeps the last known profile and the login flag on the device so the
storefront can render a user immediately on start-up and keep working
when the remote store is unreachable.

The cache is never authoritative.  It holds a single "current user" slot
split across two string keys:

    <STORAGE_KEY_USER_DATA>     serialized UserProfile (camelCase JSON)
    <STORAGE_KEY_LOGIN_STATUS>  "true" while a user is logged in

Every public method is best-effort: storage failures are logged and turn
into a no-op, ``None`` or ``False``; nothing is raised to the caller.
"""

from __future__ import annotations

import sqlite3
from typing import Optional, Protocol

from pydantic import ValidationError

from storefront_identity.database import DatabaseManager
from storefront_identity.logger import StructuredLogger
from storefront_identity.models.user import UserProfile
from storefront_identity.services.base_service import BaseService
from storefront_identity.services.cache_cipher import MachineBoundCipher

_LOGIN_FLAG_VALUE: str = "true"


class KeyValueStorage(Protocol):
    """Synchronous string key-value persistence."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class SqliteKeyValueStorage:
    """``KeyValueStorage`` backed by the ``local_storage`` SQLite table.

    When a *cipher* is supplied, values are sealed before they are written
    and opened on read; a value that cannot be opened reads as missing.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager``; the ``local_storage`` table is
        created by ``initialize_schema``.
    cipher:
        Optional at-rest encryption for stored values.
    """

    def __init__(
        self,
        db: DatabaseManager,
        cipher: Optional[MachineBoundCipher] = None,
    ) -> None:
        self._db: DatabaseManager = db
        self._cipher: Optional[MachineBoundCipher] = cipher

    def get_item(self, key: str) -> Optional[str]:
        row = self._db.sqlite.execute(
            "SELECT value FROM local_storage WHERE key = ?", (key,),
        ).fetchone()
        if row is None:
            return None
        value: str = row["value"]
        if self._cipher is not None:
            return self._cipher.decrypt(value)
        return value

    def set_item(self, key: str, value: str) -> None:
        stored: str = self._cipher.encrypt(value) if self._cipher is not None else value
        with self._db.write_lock:
            self._db.sqlite.execute(
                """
                INSERT INTO local_storage (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value      = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, stored),
            )
            self._db.sqlite.commit()

    def remove_item(self, key: str) -> None:
        with self._db.write_lock:
            self._db.sqlite.execute("DELETE FROM local_storage WHERE key = ?", (key,))
            self._db.sqlite.commit()


class LocalCacheStore(BaseService):
    """Single-slot, best-effort cache of the current user's profile.

    Parameters
    ----------
    storage:
        Any ``KeyValueStorage``; tests inject an in-memory dict.
    logger:
        Structured logger.
    user_data_key / login_status_key:
        Storage keys for the profile record and the login flag.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        logger: StructuredLogger,
        user_data_key: str = "zalo_user_data",
        login_status_key: str = "zalo_login_status",
    ) -> None:
        super().__init__(logger)
        self._storage: KeyValueStorage = storage
        self._user_data_key: str = user_data_key
        self._login_status_key: str = login_status_key

    def save(self, profile: UserProfile) -> bool:
        """Overwrite the slot with *profile* and set the login flag.

        Returns ``True`` when both writes landed.
        """
        try:
            self._storage.set_item(self._user_data_key, profile.to_storage_json())
            self._storage.set_item(self._login_status_key, _LOGIN_FLAG_VALUE)
        except (sqlite3.Error, OSError, ValueError) as exc:
            self._logger.warning(
                "Failed to cache profile %s (non-fatal): %s", profile.id, exc,
            )
            return False
        except Exception as exc:
            self._logger.error(
                "Unexpected error caching profile %s (non-fatal): %s",
                profile.id,
                exc,
                exc_info=True,
            )
            return False

        self._logger.debug("Profile %s cached locally.", profile.id)
        return True

    def load(self) -> Optional[UserProfile]:
        """Return the cached profile, or ``None`` if absent or unreadable."""
        try:
            raw: Optional[str] = self._storage.get_item(self._user_data_key)
        except Exception as exc:
            self._logger.warning("Failed to read cached profile: %s", exc)
            return None

        if not raw:
            return None

        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError as exc:
            self._logger.warning("Cached profile payload is malformed: %s", exc)
            return None

    def clear(self) -> None:
        """Remove the profile record and the login flag.  Never raises."""
        for key in (self._user_data_key, self._login_status_key):
            try:
                self._storage.remove_item(key)
            except Exception as exc:
                self._logger.error("Failed to clear cache key %s: %s", key, exc)
        self._logger.info("Local profile cache cleared.")

    def is_logged_in(self) -> bool:
        """``True`` when the login flag is set, regardless of the profile slot."""
        try:
            return self._storage.get_item(self._login_status_key) == _LOGIN_FLAG_VALUE
        except Exception as exc:
            self._logger.warning("Failed to read login flag: %s", exc)
            return False
