"""
Base Repository.

Provides shared infrastructure for repositories that talk to the remote
data service:
- DatabaseManager reference (Supabase client)
- Logger reference
- A single RPC helper that normalises every transport or backend failure
  into ``RemoteUnavailable``
"""

from __future__ import annotations

from typing import Any, Optional

from supabase import Client as SupabaseClient

from storefront_identity.database import DatabaseManager
from storefront_identity.exceptions import RemoteUnavailable
from storefront_identity.logger import StructuredLogger

RpcRow = dict[str, Any]


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Returns the Supabase client for cloud operations."""
        return self._db.supabase

    def _call_rpc(
        self,
        function_name: str,
        params: dict[str, Any],
        *,
        operation_name: str,
    ) -> list[RpcRow]:
        """Invoke a Postgres RPC and return its rows as a list.

        Procedures may return a set (list of rows), a single composite
        row (dict) or nothing; all three are normalised to a list.

        Raises
        ------
        RemoteUnavailable
            On any failure, including offline mode where the Supabase
            client was never configured.
        """
        try:
            response = self.supabase.rpc(function_name, params).execute()
        except Exception as exc:
            self._logger.warning(
                "Remote call failed for %s (%s): %s",
                operation_name,
                function_name,
                exc,
            )
            raise RemoteUnavailable(original_error=exc) from exc

        data: Optional[Any] = response.data
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if isinstance(data, list):
            return [row for row in data if isinstance(row, dict)]

        self._logger.warning(
            "Unexpected payload type from %s: %s", function_name, type(data).__name__,
        )
        raise RemoteUnavailable(
            f"Unexpected response from {function_name}.",
        )
