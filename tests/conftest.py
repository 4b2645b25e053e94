"""Pytest configuration, fakes and fixtures."""

import os
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Optional

# Keep log files out of the working tree
os.environ.setdefault(
    "LOG_FILE", str(Path(tempfile.gettempdir()) / "storefront_identity_tests.log")
)

import pytest

from storefront_identity.config import AppConfig
from storefront_identity.database import DatabaseManager
from storefront_identity.exceptions import PlatformError
from storefront_identity.logger import StructuredLogger
from storefront_identity.schema import initialize_schema
from storefront_identity.services import ServiceContainer, create_services

FIXED_NOW = "2024-05-01T10:00:00+00:00"

SCOPE_DENIED_CODE = -1401
CONSENT_DECLINED_CODE = -201


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class InMemoryStorage:
    """Dict-backed ``KeyValueStorage``."""

    def __init__(self) -> None:
        self.items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class BrokenStorage:
    """``KeyValueStorage`` whose every call fails."""

    def get_item(self, key: str) -> Optional[str]:
        raise OSError("disk unavailable")

    def set_item(self, key: str, value: str) -> None:
        raise OSError("disk unavailable")

    def remove_item(self, key: str) -> None:
        raise OSError("disk unavailable")


class FakePlatform:
    """Scriptable host-platform SDK adapter."""

    def __init__(
        self,
        user_id: Any = "u1",
        name: Optional[str] = "Anh",
        avatar: Optional[str] = "https://cdn.example.com/u1.png",
        phone_token: Optional[str] = "phone-token-123",
    ) -> None:
        self.user_id = user_id
        self.name = name
        self.avatar = avatar
        self.phone_token = phone_token
        self.granted: set[str] = set()
        self.deny: dict[str, int] = {}
        self.authorize_calls: list[list[str]] = []
        self.user_id_error: Optional[PlatformError] = None
        self.user_info_error: Optional[PlatformError] = None

    def get_user_id(self) -> Any:
        if self.user_id_error is not None:
            raise self.user_id_error
        return self.user_id

    def get_user_info(self, *, auto_request_permission: bool, avatar_type: str) -> dict:
        if self.user_info_error is not None:
            raise self.user_info_error
        return {
            "userInfo": {
                "id": self.user_id,
                "name": self.name,
                "avatar": self.avatar,
            }
        }

    def get_phone_number(self) -> dict:
        return {"token": self.phone_token}

    def get_setting(self) -> dict:
        return {"authSetting": {scope: True for scope in self.granted}}

    def authorize(self, scopes: list[str]) -> dict:
        self.authorize_calls.append(list(scopes))
        for scope in scopes:
            if scope in self.deny:
                raise PlatformError(self.deny[scope], "User denied")
        self.granted.update(scopes)
        return {}


class _FakeRpcCall:
    def __init__(self, run: Callable[[], Any]) -> None:
        self._run = run

    def execute(self) -> SimpleNamespace:
        return SimpleNamespace(data=self._run())


class FakeSupabase:
    """Emulates the three profile procedures over an in-memory table.

    ``NULL`` parameters leave stored columns untouched, like the real
    procedures.
    """

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail: bool = False

    def rpc(self, name: str, params: Optional[dict[str, Any]] = None) -> _FakeRpcCall:
        params = dict(params or {})
        self.calls.append((name, params))
        return _FakeRpcCall(lambda: self._dispatch(name, params))

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [params for called, params in self.calls if called == name]

    def _dispatch(self, name: str, params: dict[str, Any]) -> Any:
        if self.fail:
            raise ConnectionError("network unreachable")

        zalo_id = params["p_zalo_id"]
        if name == "rpc_upsert_user_by_zalo_id":
            row = self.rows.setdefault(
                zalo_id,
                {"zalo_id": zalo_id, "name": None, "avatar": None,
                 "phone": None, "email": None, "last_login": None},
            )
            for column in ("name", "avatar", "phone", "last_login"):
                value = params.get(f"p_{column}")
                if value is not None:
                    row[column] = value
            return [dict(row)]

        if name == "rpc_get_user_by_zalo_id":
            row = self.rows.get(zalo_id)
            return [dict(row)] if row else []

        if name == "rpc_update_user_profile":
            row = self.rows.get(zalo_id)
            if row is None:
                return []
            for column in ("name", "phone"):
                value = params.get(f"p_{column}")
                if value is not None:
                    row[column] = value
            return [dict(row)]

        raise AssertionError(f"unexpected rpc {name}")

    def seed(self, zalo_id: str, **columns: Any) -> None:
        row = {"zalo_id": zalo_id, "name": None, "avatar": None,
               "phone": None, "email": None, "last_login": None}
        row.update(columns)
        self.rows[zalo_id] = row


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(name="tests.storefront_identity")


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        SUPABASE_URL="",
        LOCAL_DB_PATH=":memory:",
        ENCRYPT_LOCAL_CACHE=False,
    )


@pytest.fixture
def supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def db(supabase: FakeSupabase, logger: StructuredLogger):
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=Path(":memory:"),
        logger=logger,
        supabase_client=supabase,
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def services(
    db: DatabaseManager,
    config: AppConfig,
    platform: FakePlatform,
    storage: InMemoryStorage,
) -> ServiceContainer:
    return create_services(
        db=db,
        config=config,
        platform=platform,
        storage=storage,
        clock=lambda: FIXED_NOW,
    )
