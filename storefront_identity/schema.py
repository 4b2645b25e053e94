"""
Local SQLite Schema Initialization.

Defines the on-device schema and a single entry-point,
:func:`initialize_schema`, that creates it idempotently.  A single-row
``schema_version`` table tracks applied migrations so later schema
changes can be rolled forward without wiping the cached profile.

Migration Strategy
~~~~~~~~~~~~~~~~~~
- **Fresh databases** (version 0): all tables are created from
  :data:`_TABLE_DEFINITIONS`.
- **Existing databases** (version N > 0): only the migrations registered
  in :data:`_MIGRATIONS` for versions in ``(N, CURRENT_SCHEMA_VERSION]``
  run.
- The upgrade and version bump share one transaction; on failure the
  database stays at version N and the next startup retries.

Usage::

    from storefront_identity.schema import initialize_schema

    initialize_schema(db.sqlite, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

from storefront_identity.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 1

_TABLE_DEFINITIONS: list[str] = [
    # -- single-row version tracker -------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- string key-value slots backing the local profile cache ---------------
    """
    CREATE TABLE IF NOT EXISTS local_storage (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

MigrationFunc = Callable[[sqlite3.Connection, StructuredLogger], None]

# Maps *target* version to its migration function.
_MIGRATIONS: dict[int, MigrationFunc] = {}


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    conn.execute(_TABLE_DEFINITIONS[0])
    conn.commit()


def _get_schema_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return int(row[0]) if row else 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        """
        INSERT INTO schema_version (id, version) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET
            version    = excluded.version,
            applied_at = CURRENT_TIMESTAMP
        """,
        (version,),
    )


def _create_all_tables(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    for ddl in _TABLE_DEFINITIONS:
        conn.execute(ddl)
    logger.info("Created %d local tables.", len(_TABLE_DEFINITIONS))


def _run_incremental_migrations(
    conn: sqlite3.Connection,
    logger: StructuredLogger,
    from_version: int,
    to_version: int,
) -> None:
    """Run registered migrations in ``(from_version, to_version]``, ascending.

    Does **not** commit; the caller owns the transaction.
    """
    versions_to_apply: list[int] = sorted(
        v for v in _MIGRATIONS if from_version < v <= to_version
    )
    if not versions_to_apply:
        logger.info("No incremental migrations to apply.")
        return

    for version in versions_to_apply:
        logger.info("Running migration to version %d.", version)
        _MIGRATIONS[version](conn, logger)


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Ensure the local SQLite database matches :data:`CURRENT_SCHEMA_VERSION`.

    Safe to call on every startup.

    Args:
        conn: An open SQLite connection.
        logger: Structured logger for progress output.
    """
    _ensure_version_table(conn)
    current: int = _get_schema_version(conn)

    if current >= CURRENT_SCHEMA_VERSION:
        logger.info("Schema is up to date (version %d).", current)
        return

    logger.info(
        "Upgrading schema from version %d to %d.", current, CURRENT_SCHEMA_VERSION,
    )

    try:
        if current == 0:
            _create_all_tables(conn, logger)
        else:
            _run_incremental_migrations(conn, logger, current, CURRENT_SCHEMA_VERSION)

        _set_schema_version(conn, CURRENT_SCHEMA_VERSION)
        conn.commit()
    except Exception:
        conn.rollback()
        logger.error(
            "Schema migration failed; rolled back to version %d.", current,
        )
        raise

    logger.info("Schema initialised at version %d.", CURRENT_SCHEMA_VERSION)
