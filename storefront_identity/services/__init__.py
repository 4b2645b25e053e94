"""
Identity Services Package.

The ``create_services()`` factory wires the repository and every service
together, returning a typed dict that the host bridge can consume without
knowing the internal dependency graph.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, TypedDict

from storefront_identity.auth import SessionManager
from storefront_identity.config import AppConfig
from storefront_identity.database import DatabaseManager
from storefront_identity.logger import get_logger
from storefront_identity.repositories.profile_repository import RemoteProfileStore
from storefront_identity.services.auth_session import AuthSessionFacade
from storefront_identity.services.cache_cipher import MachineBoundCipher
from storefront_identity.services.local_cache import (
    KeyValueStorage,
    LocalCacheStore,
    SqliteKeyValueStorage,
)
from storefront_identity.services.permission_gateway import (
    PermissionGateway,
    PlatformIdentityAPI,
)
from storefront_identity.services.phone_resolver import (
    PlaceholderPhoneResolver,
    TokenToPhoneResolver,
)
from storefront_identity.services.reconciler import IdentityReconciler
from storefront_identity.utils.audit import utc_now_iso


class ServiceContainer(TypedDict):
    """Typed container for the identity services."""

    remote_profile_store: RemoteProfileStore
    local_cache: LocalCacheStore
    permission_gateway: PermissionGateway
    phone_resolver: TokenToPhoneResolver
    reconciler: IdentityReconciler
    auth_session: AuthSessionFacade


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    platform: PlatformIdentityAPI,
    session: Optional[SessionManager] = None,
    storage: Optional[KeyValueStorage] = None,
    phone_resolver: Optional[TokenToPhoneResolver] = None,
    clock: Callable[[], str] = utc_now_iso,
) -> ServiceContainer:
    """Wire the identity subsystem together.

    Single composition root for the service layer.

    Args:
        db: Initialised DatabaseManager (schema already applied).
        config: Application configuration.
        platform: Host SDK adapter.
        session: Session holder; a new one is created when omitted.
        storage: Key-value backend for the local cache; defaults to the
            SQLite ``local_storage`` table, encrypted when
            ``ENCRYPT_LOCAL_CACHE`` is set.
        phone_resolver: Token exchange; defaults to the placeholder.
        clock: Timestamp source for ``last_login``.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("storefront_identity.services")

    # ------------------------------------------------------------------
    # 1. Leaf services
    # ------------------------------------------------------------------
    remote_profile_store = RemoteProfileStore(db=db, config=config, logger=logger)

    if storage is None:
        cipher: Optional[MachineBoundCipher] = None
        if config.ENCRYPT_LOCAL_CACHE:
            cipher = MachineBoundCipher(
                salt_path=Path.home() / config.CACHE_SALT_FILENAME,
                logger=logger,
            )
        storage = SqliteKeyValueStorage(db=db, cipher=cipher)

    local_cache = LocalCacheStore(
        storage=storage,
        logger=logger,
        user_data_key=config.STORAGE_KEY_USER_DATA,
        login_status_key=config.STORAGE_KEY_LOGIN_STATUS,
    )
    permission_gateway = PermissionGateway(
        platform=platform,
        logger=logger,
        avatar_type=config.AVATAR_TYPE,
    )
    if phone_resolver is None:
        phone_resolver = PlaceholderPhoneResolver(
            placeholder_phone=config.PLACEHOLDER_PHONE_NUMBER,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # 2. Orchestration
    # ------------------------------------------------------------------
    reconciler = IdentityReconciler(
        gateway=permission_gateway,
        remote_store=remote_profile_store,
        cache=local_cache,
        phone_resolver=phone_resolver,
        logger=logger,
        clock=clock,
    )
    auth_session = AuthSessionFacade(
        reconciler=reconciler,
        session=session or SessionManager(logger=logger),
        logger=logger,
    )

    return ServiceContainer(
        remote_profile_store=remote_profile_store,
        local_cache=local_cache,
        permission_gateway=permission_gateway,
        phone_resolver=phone_resolver,
        reconciler=reconciler,
        auth_session=auth_session,
    )
