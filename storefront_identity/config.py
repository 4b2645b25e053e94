"""
Application Configuration.

Pydantic Settings model for the storefront identity subsystem.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Remote procedures (profile table lives behind these RPCs) ---
    RPC_UPSERT_USER: str = "rpc_upsert_user_by_zalo_id"
    RPC_GET_USER: str = "rpc_get_user_by_zalo_id"
    RPC_UPDATE_USER: str = "rpc_update_user_profile"

    # --- Local cache ---
    LOCAL_DB_PATH: str = "storefront_local.db"
    STORAGE_KEY_USER_DATA: str = "zalo_user_data"
    STORAGE_KEY_LOGIN_STATUS: str = "zalo_login_status"
    ENCRYPT_LOCAL_CACHE: bool = True
    CACHE_SALT_FILENAME: str = ".storefront_cache_salt"

    # --- Host platform ---
    AVATAR_TYPE: str = "normal"

    # Returned by the placeholder phone resolver until a server-side
    # token exchange is wired in.  Never a real customer number.
    PLACEHOLDER_PHONE_NUMBER: str = "0912345678"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "storefront_identity.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators would otherwise not notice that the profile store is
        unreachable until the first refresh quietly serves cached data.
        """
        _log = logging.getLogger("storefront_identity.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; configuration comes from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty: the remote profile store is disabled. "
                "Identity flows will run against the local cache only."
            )

        return self


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern so the fast path stays lock-free once initialised.

    Prefer constructor injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
