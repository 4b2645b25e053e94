"""Tests for LocalCacheStore, its SQLite backend and the cache cipher."""

import json

from storefront_identity.models import UserProfile
from storefront_identity.services.cache_cipher import MachineBoundCipher
from storefront_identity.services.local_cache import (
    LocalCacheStore,
    SqliteKeyValueStorage,
)
from tests.conftest import BrokenStorage

USER = UserProfile(id="u1", name="Anh", last_login="2024-05-01T10:00:00+00:00")


class TestLocalCacheStore:

    def test_save_writes_profile_and_flag(self, storage, logger):
        cache = LocalCacheStore(storage, logger)

        assert cache.save(USER) is True

        assert json.loads(storage.items["zalo_user_data"])["id"] == "u1"
        assert storage.items["zalo_login_status"] == "true"
        assert cache.is_logged_in() is True
        assert cache.load() == USER

    def test_save_overwrites_single_slot(self, storage, logger):
        cache = LocalCacheStore(storage, logger)
        cache.save(USER)
        cache.save(UserProfile(id="u2", name="Binh"))

        assert cache.load().id == "u2"
        assert len(storage.items) == 2

    def test_load_empty_returns_none(self, storage, logger):
        assert LocalCacheStore(storage, logger).load() is None

    def test_load_malformed_payload_returns_none(self, storage, logger):
        storage.items["zalo_user_data"] = "{not json"
        assert LocalCacheStore(storage, logger).load() is None

        storage.items["zalo_user_data"] = json.dumps({"name": "no id"})
        assert LocalCacheStore(storage, logger).load() is None

    def test_clear_removes_both_keys(self, storage, logger):
        cache = LocalCacheStore(storage, logger)
        cache.save(USER)

        cache.clear()

        assert storage.items == {}
        assert cache.load() is None
        assert cache.is_logged_in() is False

    def test_flag_other_than_true_is_logged_out(self, storage, logger):
        storage.items["zalo_login_status"] = "false"
        assert LocalCacheStore(storage, logger).is_logged_in() is False

    def test_custom_keys(self, storage, logger):
        cache = LocalCacheStore(
            storage, logger, user_data_key="profile", login_status_key="logged_in",
        )
        cache.save(USER)
        assert set(storage.items) == {"profile", "logged_in"}

    def test_storage_failures_never_raise(self, logger):
        cache = LocalCacheStore(BrokenStorage(), logger)

        assert cache.save(USER) is False
        assert cache.load() is None
        assert cache.is_logged_in() is False
        cache.clear()


class TestSqliteKeyValueStorage:

    def test_set_get_remove(self, db):
        storage = SqliteKeyValueStorage(db)

        storage.set_item("k", "v1")
        storage.set_item("k", "v2")
        assert storage.get_item("k") == "v2"

        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_backs_local_cache(self, db, logger):
        cache = LocalCacheStore(SqliteKeyValueStorage(db), logger)
        cache.save(USER)

        assert cache.load() == USER
        assert cache.is_logged_in() is True

    def test_encrypted_values_are_not_plaintext(self, db, logger, tmp_path):
        cipher = MachineBoundCipher(tmp_path / "salt", logger, iterations=1_000)
        cache = LocalCacheStore(SqliteKeyValueStorage(db, cipher=cipher), logger)

        cache.save(USER)

        raw = db.sqlite.execute(
            "SELECT value FROM local_storage WHERE key = 'zalo_user_data'"
        ).fetchone()["value"]
        assert "Anh" not in raw
        assert cache.load() == USER

    def test_undecryptable_value_reads_as_missing(self, db, logger, tmp_path):
        cipher = MachineBoundCipher(tmp_path / "salt", logger, iterations=1_000)
        cache = LocalCacheStore(SqliteKeyValueStorage(db, cipher=cipher), logger)
        cache.save(USER)

        with db.write_lock:
            db.sqlite.execute(
                "UPDATE local_storage SET value = 'garbage' WHERE key = 'zalo_user_data'"
            )
            db.sqlite.commit()

        assert cache.load() is None


class TestMachineBoundCipher:

    def test_round_trip_and_salt_reuse(self, logger, tmp_path):
        salt_path = tmp_path / "nested" / "salt"
        first = MachineBoundCipher(salt_path, logger, iterations=1_000)
        sealed = first.encrypt("xin chào")

        assert salt_path.exists()
        assert sealed.count(".") == 2

        second = MachineBoundCipher(salt_path, logger, iterations=1_000)
        assert second.decrypt(sealed) == "xin chào"

    def test_tampered_ciphertext_returns_none(self, logger, tmp_path):
        cipher = MachineBoundCipher(tmp_path / "salt", logger, iterations=1_000)
        nonce, tag, body = cipher.encrypt("secret").split(".")
        other_body = cipher.encrypt("public").split(".")[2]

        assert cipher.decrypt(".".join((nonce, tag, other_body))) is None

    def test_different_salt_cannot_decrypt(self, logger, tmp_path):
        sealed = MachineBoundCipher(tmp_path / "a", logger, iterations=1_000).encrypt("x")
        other = MachineBoundCipher(tmp_path / "b", logger, iterations=1_000)

        assert other.decrypt(sealed) is None
