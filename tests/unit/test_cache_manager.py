"""Tests for ai_subtitles.cache.manager."""

import json

from ai_subtitles.cache.manager import CACHE_PREFIX, CacheManager
from ai_subtitles.storage.session import CONFIG_KEY, TOKEN_KEY


class TestCacheExpiry:
    """Entries live for the configured TTL and no longer."""

    def test_set_then_get_returns_value(self, cache):
        cache.set("x", {"a": 1})
        assert cache.get("x") == {"a": 1}
        assert cache.is_expired("x") is False

    def test_entry_expires_after_default_ttl(self, cache, clock):
        cache.set("x", {"a": 1})
        clock.advance(25 * 3600)

        assert cache.get("x") is None
        assert cache.is_expired("x") is True

    def test_entry_still_valid_just_before_ttl(self, cache, clock):
        cache.set("x", [1, 2, 3])
        clock.advance(24 * 3600 - 1)
        assert cache.get("x") == [1, 2, 3]

    def test_ttl_comes_from_stored_settings(self, cache, session_store, clock):
        session_store.save_config({"cache_expiration_hours": 1})
        cache.set("short", "value")

        clock.advance(3599)
        assert cache.get("short") == "value"
        clock.advance(2)
        assert cache.get("short") is None

    def test_existing_entries_keep_their_expiry(self, cache, session_store, clock):
        cache.set("x", 1)
        session_store.save_config({"cache_expiration_hours": 1})

        clock.advance(2 * 3600)
        assert cache.get("x") == 1

    def test_without_session_store_uses_24_hours(self, storage, clock):
        manager = CacheManager(storage, clock=clock)
        manager.set("x", True)
        clock.advance(23 * 3600)
        assert manager.get("x") is True
        clock.advance(2 * 3600)
        assert manager.get("x") is None

    def test_expired_entry_is_evicted(self, cache, storage, clock):
        cache.set("x", 1)
        clock.advance(25 * 3600)
        cache.get("x")
        assert storage.get(f"{CACHE_PREFIX}x") is None

    def test_missing_key_is_expired(self, cache):
        assert cache.get("nope") is None
        assert cache.is_expired("nope") is True


class TestCacheCorruption:
    """Corrupted entries read as absent and are removed."""

    def test_non_json_entry_reads_as_absent(self, cache, storage):
        storage.set(f"{CACHE_PREFIX}bad", "{not json")

        assert cache.get("bad") is None
        assert cache.is_expired("bad") is True
        assert storage.get(f"{CACHE_PREFIX}bad") is None

    def test_entry_without_expiry_reads_as_absent(self, cache, storage):
        storage.set(f"{CACHE_PREFIX}bad", json.dumps({"data": 1}))
        assert cache.get("bad") is None

    def test_entry_with_non_numeric_expiry_reads_as_absent(self, cache, storage):
        storage.set(f"{CACHE_PREFIX}bad", json.dumps({"data": 1, "expires_at": "soon"}))
        assert cache.is_expired("bad") is True

    def test_json_scalar_entry_reads_as_absent(self, cache, storage):
        storage.set(f"{CACHE_PREFIX}bad", "42")
        assert cache.get("bad") is None


class TestCacheNamespace:
    """The cache only ever touches its own prefix."""

    def test_clear_leaves_session_keys(self, cache, storage, session_store):
        session_store.save_config({"username": "alice"})
        session_store.save_token("tok")
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert cache.get("a") is None
        assert cache.get("b") is None
        assert storage.get(CONFIG_KEY) is not None
        assert storage.get(TOKEN_KEY) == "tok"
        assert session_store.get_config().username == "alice"

    def test_remove_single_entry(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.remove("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test_unserializable_value_is_not_cached(self, cache, caplog):
        cache.set("obj", object())
        assert cache.get("obj") is None
        assert "Failed to cache" in caplog.text
