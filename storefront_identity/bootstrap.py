"""
Identity Subsystem Entry Point.

Bootstraps the dependency graph via constructor injection, initialises
the local SQLite schema, and returns a ready ``AuthSessionFacade``.  The
host bridge calls :func:`build_auth_session` once at mini-app start-up;
every subsystem is wired here, with no module-level globals beyond the
config singleton.

Usage::

    facade, db = build_auth_session(platform=ZaloBridge())
    try:
        facade.restore()
        ...
    finally:
        db.close()
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from storefront_identity.config import AppConfig, get_config
from storefront_identity.database import DatabaseManager
from storefront_identity.logger import StructuredLogger, get_logger
from storefront_identity.schema import initialize_schema
from storefront_identity.services import create_services
from storefront_identity.services.auth_session import AuthSessionFacade
from storefront_identity.services.permission_gateway import PlatformIdentityAPI
from storefront_identity.services.phone_resolver import TokenToPhoneResolver


def build_auth_session(
    platform: PlatformIdentityAPI,
    config: Optional[AppConfig] = None,
    phone_resolver: Optional[TokenToPhoneResolver] = None,
) -> tuple[AuthSessionFacade, DatabaseManager]:
    """Wire the identity subsystem and return the facade plus its database.

    The caller owns the returned ``DatabaseManager`` and must ``close()``
    it on shutdown.
    """
    logger: StructuredLogger = get_logger("storefront_identity")
    logger.info("Starting identity subsystem...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = config or get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (Supabase optional, SQLite always)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="storefront_identity.database"),
    )

    # ------------------------------------------------------------------
    # 3. Local schema (idempotent)
    # ------------------------------------------------------------------
    try:
        initialize_schema(db.sqlite, StructuredLogger(name="storefront_identity.schema"))
    except Exception:
        db.close()
        raise

    # ------------------------------------------------------------------
    # 4. Services
    # ------------------------------------------------------------------
    services = create_services(
        db=db,
        config=config,
        platform=platform,
        phone_resolver=phone_resolver,
    )

    logger.info("Identity subsystem ready.")
    return services["auth_session"], db
