"""
Connection Management.

The identity subsystem talks to two stores:

- **Supabase**: holds the authoritative customer profile, reachable only
  through the named RPC procedures called by ``RemoteProfileStore``.
- **SQLite**: a small on-device file backing the key-value cache
  (``SqliteKeyValueStorage``).  It is opened unconditionally, so the
  cache keeps working when no remote credentials are configured.

``DatabaseManager`` owns both handles and nothing else: it issues no
queries of its own.

Usage::

    with DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="storefront_identity.database"),
    ) as db:
        initialize_schema(db.sqlite, logger)
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from types import TracebackType
from typing import Optional

from supabase import create_client, Client as SupabaseClient

from storefront_identity.logger import StructuredLogger

_MEMORY_PATH: str = ":memory:"
_BUSY_TIMEOUT_MS: int = 5_000


class DatabaseManager:
    """Holds the Supabase client and the local SQLite connection.

    A missing URL or key leaves the manager *offline*: ``is_online`` is
    ``False`` and touching ``supabase`` raises ``RuntimeError``, which the
    repository layer reports as ``RemoteUnavailable``.

    Parameters
    ----------
    supabase_url:
        Project URL, e.g. ``https://xyz.supabase.co``.  Empty for offline.
    supabase_key:
        Anonymous (publishable) key.  Empty for offline.
    sqlite_path:
        Cache database file, or ``:memory:``.
    logger:
        Structured logger.
    supabase_client:
        Ready-made client; skips ``create_client`` when supplied.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Path,
        logger: StructuredLogger,
        supabase_client: Optional[SupabaseClient] = None,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._closed: bool = False

        self._supabase: Optional[SupabaseClient] = (
            supabase_client
            if supabase_client is not None
            else self._create_supabase(supabase_url, supabase_key)
        )
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """The Supabase client.

        Raises
        ------
        RuntimeError
            When running offline.
        """
        if self._supabase is None:
            raise RuntimeError("No Supabase client: remote profile store is offline.")
        return self._supabase

    @property
    def is_online(self) -> bool:
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Serialises SQLite writes; hold it from ``execute`` through ``commit``."""
        return self._write_lock

    def close(self) -> None:
        """Close the SQLite connection.  Repeated calls do nothing."""
        with self._write_lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._sqlite_conn.close()
            except sqlite3.ProgrammingError:
                return
            self._logger.info("SQLite connection closed.")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _create_supabase(self, url: str, key: str) -> Optional[SupabaseClient]:
        if not (url and key):
            self._logger.warning(
                "Supabase URL/key not set; remote profile store is offline."
            )
            return None

        try:
            client = create_client(url, key)
        except (ValueError, TypeError) as exc:
            self._logger.warning(
                "Rejected Supabase credentials (%s); remote profile store is offline.",
                exc,
            )
            return None
        except Exception as exc:
            self._logger.error(
                "Supabase client could not be created (%s); remote profile store "
                "is offline.",
                exc,
                exc_info=True,
            )
            return None

        self._logger.info("Supabase client ready.")
        return client

    def _connect_sqlite(self, path: Path) -> sqlite3.Connection:
        """Open the cache database, creating the file on first use.

        Raises
        ------
        PermissionError
            With an actionable message when the file or folder is not
            writable.
        """
        try:
            conn = sqlite3.connect(
                str(path),
                check_same_thread=False,
                timeout=_BUSY_TIMEOUT_MS / 1000,
            )
        except PermissionError as exc:
            msg = (
                f"Cannot open the local cache database at '{path}': the file "
                "or its folder is read-only or locked."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc

        conn.row_factory = sqlite3.Row
        if str(path) != _MEMORY_PATH:
            conn.execute("PRAGMA journal_mode=WAL;")
        self._logger.info("SQLite cache opened at %s", path)
        return conn
