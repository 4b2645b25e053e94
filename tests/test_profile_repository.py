"""Tests for RemoteProfileStore over the profile RPC procedures."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from storefront_identity.database import DatabaseManager
from storefront_identity.exceptions import ProfileNotFound, RemoteUnavailable
from storefront_identity.repositories import RemoteProfileStore, row_to_profile

NOW = "2024-05-01T10:00:00+00:00"


@pytest.fixture
def store(db, config, logger):
    return RemoteProfileStore(db=db, config=config, logger=logger)


class TestRowMapping:

    def test_zalo_id_column(self):
        profile = row_to_profile({"zalo_id": "u1", "name": "Anh", "last_login": NOW})
        assert profile.id == "u1"
        assert profile.last_login == NOW

    def test_bare_id_and_camel_case(self):
        profile = row_to_profile({"id": 7, "lastLogin": NOW, "phone": ""})
        assert profile.id == "7"
        assert profile.last_login == NOW
        assert profile.phone is None


class TestUpsert:

    def test_creates_record(self, store, supabase):
        profile = store.upsert_by_platform_id("u1", name="Anh", last_login=NOW)

        assert profile.id == "u1"
        assert profile.name == "Anh"
        assert supabase.calls_to("rpc_upsert_user_by_zalo_id") == [
            {
                "p_zalo_id": "u1",
                "p_name": "Anh",
                "p_avatar": None,
                "p_phone": None,
                "p_last_login": NOW,
            }
        ]

    def test_is_idempotent(self, store, supabase):
        first = store.upsert_by_platform_id("u1", name="Anh", avatar="a.png", last_login=NOW)
        second = store.upsert_by_platform_id("u1", name="Anh", avatar="a.png", last_login=NOW)

        assert first == second
        assert list(supabase.rows) == ["u1"]

    def test_null_arguments_preserve_stored_values(self, store, supabase):
        supabase.seed("u1", name="Anh", phone="0900000000")

        profile = store.upsert_by_platform_id("u1", last_login=NOW)

        assert profile.name == "Anh"
        assert profile.phone == "0900000000"
        assert profile.last_login == NOW

    def test_empty_result_raises_not_found(self, store, supabase, monkeypatch):
        monkeypatch.setattr(supabase, "_dispatch", lambda name, params: [])

        with pytest.raises(ProfileNotFound):
            store.upsert_by_platform_id("u1", last_login=NOW)


class TestFetch:

    def test_absent_record_returns_none(self, store):
        assert store.fetch_by_platform_id("nobody") is None

    def test_returns_record(self, store, supabase):
        supabase.seed("u1", name="Anh")
        assert store.fetch_by_platform_id("u1").name == "Anh"

    def test_single_row_object_payload(self, store, supabase, monkeypatch):
        monkeypatch.setattr(
            supabase, "_dispatch", lambda name, params: {"zalo_id": "u1", "name": "Anh"},
        )
        assert store.fetch_by_platform_id("u1").name == "Anh"

    def test_unexpected_payload_raises(self, store, supabase, monkeypatch):
        monkeypatch.setattr(supabase, "_dispatch", lambda name, params: "oops")

        with pytest.raises(RemoteUnavailable):
            store.fetch_by_platform_id("u1")

    def test_malformed_row_raises(self, store, supabase, monkeypatch):
        monkeypatch.setattr(supabase, "_dispatch", lambda name, params: [{"name": "no id"}])

        with pytest.raises(RemoteUnavailable):
            store.fetch_by_platform_id("u1")

    def test_network_failure_raises_remote_unavailable(self, store, supabase):
        supabase.fail = True

        with pytest.raises(RemoteUnavailable) as exc_info:
            store.fetch_by_platform_id("u1")

        assert isinstance(exc_info.value.original_error, ConnectionError)


class TestUpdate:

    def test_partial_update(self, store, supabase):
        supabase.seed("u1", name="Anh", phone="0900000000")

        profile = store.update_profile("u1", name="Anh Nguyen")

        assert profile.name == "Anh Nguyen"
        assert profile.phone == "0900000000"
        assert supabase.calls_to("rpc_update_user_profile") == [
            {"p_zalo_id": "u1", "p_name": "Anh Nguyen", "p_phone": None}
        ]

    def test_missing_record_raises_not_found(self, store):
        with pytest.raises(ProfileNotFound):
            store.update_profile("nobody", name="X")


class TestOffline:

    def test_unconfigured_client_raises_remote_unavailable(self, config, logger):
        with DatabaseManager(
            supabase_url="",
            supabase_key="",
            sqlite_path=Path(":memory:"),
            logger=logger,
        ) as db:
            store = RemoteProfileStore(db=db, config=config, logger=logger)
            assert db.is_online is False
            with pytest.raises(RemoteUnavailable):
                store.fetch_by_platform_id("u1")

    def test_uses_configured_procedure_names(self, logger):
        client = MagicMock()
        client.rpc.return_value.execute.return_value = SimpleNamespace(data=[])
        db = MagicMock()
        db.supabase = client
        config = MagicMock(RPC_GET_USER="custom_get_user")

        RemoteProfileStore(db=db, config=config, logger=logger).fetch_by_platform_id("u1")

        client.rpc.assert_called_once_with("custom_get_user", {"p_zalo_id": "u1"})
