"""
Remote Profile Repository.

Reads and writes the authoritative customer profile through the
storefront's Supabase RPC procedures.  The profile table is keyed by the
host platform's user ID; this repository never touches the local cache.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from storefront_identity.config import AppConfig
from storefront_identity.database import DatabaseManager
from storefront_identity.exceptions import ProfileNotFound, RemoteUnavailable
from storefront_identity.logger import StructuredLogger
from storefront_identity.models.user import UserProfile
from storefront_identity.repositories.base_repository import BaseRepository, RpcRow


def row_to_profile(row: RpcRow) -> UserProfile:
    """Map an RPC row onto a ``UserProfile``.

    Follows the storefront's row-mapping convention: the key is coerced
    to ``str`` and missing optional text stays absent.  Both the
    ``zalo_id`` column name and a bare ``id`` are accepted.
    """
    raw_id: Any = row.get("zalo_id") or row.get("id")
    return UserProfile(
        id=str(raw_id) if raw_id is not None else "",
        name=row.get("name"),
        avatar=row.get("avatar"),
        phone=row.get("phone"),
        email=row.get("email"),
        last_login=row.get("last_login") or row.get("lastLogin"),
    )


class RemoteProfileStore(BaseRepository):
    """Data access for the authoritative profile record.

    Optional arguments passed as ``None`` are sent as SQL ``NULL``, which
    the procedures treat as "keep the stored value".  Empty strings are
    never sent in their place.
    """

    def __init__(
        self,
        db: DatabaseManager,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(db, logger)
        self._config = config

    def upsert_by_platform_id(
        self,
        platform_id: str,
        *,
        last_login: str,
        name: Optional[str] = None,
        avatar: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> UserProfile:
        """Create or update the record for *platform_id*.

        Idempotent: repeating the call with the same arguments leaves a
        single record with the same field values.

        Raises:
            RemoteUnavailable: On any backend failure.
            ProfileNotFound: If the procedure returned no row.
        """
        rows = self._call_rpc(
            self._config.RPC_UPSERT_USER,
            {
                "p_zalo_id": platform_id,
                "p_name": name,
                "p_avatar": avatar,
                "p_phone": phone,
                "p_last_login": last_login,
            },
            operation_name="upsert_by_platform_id",
        )
        profile = self._first_profile(rows, "upsert_by_platform_id")
        if profile is None:
            raise ProfileNotFound(
                f"Upsert for profile {platform_id} returned no record."
            )
        self._logger.info("Profile upserted: %s", profile.id)
        return profile

    def fetch_by_platform_id(self, platform_id: str) -> Optional[UserProfile]:
        """Return the authoritative record, or ``None`` if it was never created.

        Raises:
            RemoteUnavailable: On any backend failure.
        """
        rows = self._call_rpc(
            self._config.RPC_GET_USER,
            {"p_zalo_id": platform_id},
            operation_name="fetch_by_platform_id",
        )
        return self._first_profile(rows, "fetch_by_platform_id")

    def update_profile(
        self,
        platform_id: str,
        *,
        name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> UserProfile:
        """Partially update the user-editable fields.

        Raises:
            RemoteUnavailable: On any backend failure.
            ProfileNotFound: If no record exists for *platform_id*.
        """
        rows = self._call_rpc(
            self._config.RPC_UPDATE_USER,
            {"p_zalo_id": platform_id, "p_name": name, "p_phone": phone},
            operation_name="update_profile",
        )
        profile = self._first_profile(rows, "update_profile")
        if profile is None:
            raise ProfileNotFound(
                f"No remote profile exists for {platform_id}; update was not applied."
            )
        self._logger.info("Profile updated: %s", profile.id)
        return profile

    def _first_profile(
        self, rows: list[RpcRow], operation_name: str,
    ) -> Optional[UserProfile]:
        if not rows:
            return None
        try:
            return row_to_profile(rows[0])
        except ValidationError as exc:
            self._logger.error(
                "Malformed profile row from %s: %s", operation_name, exc,
            )
            raise RemoteUnavailable(
                "The server returned an invalid profile record.",
                original_error=exc,
            ) from exc
