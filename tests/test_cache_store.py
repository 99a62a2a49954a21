import tempfile
import unittest
from pathlib import Path

from ethview.adapters.cache.file_backend import FileCacheBackend
from ethview.adapters.cache.memory_backend import MemoryCacheBackend
from ethview.ports.cache_backend_port import CacheEntry
from ethview.services.cache_store import MISS, CacheKey, CacheStore


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class CacheStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.backend = MemoryCacheBackend()
        self.cache = CacheStore(self.backend, default_ttl=3600, clock=self.clock)

    def test_absent_key_is_a_miss(self) -> None:
        self.assertIs(self.cache.get("nothing"), MISS)
        self.assertFalse(MISS)

    def test_falsy_values_round_trip(self) -> None:
        for i, value in enumerate([None, False, [], 0, ""]):
            key = CacheKey("value", (i,))
            self.cache.save(key, value)
            self.assertIsNot(self.cache.get(key), MISS)
            self.assertEqual(self.cache.get(key), value)

    def test_ttl_is_checked_at_read_time(self) -> None:
        self.cache.save("k", {"a": 1})
        self.clock.now += 30
        self.assertEqual(self.cache.get("k", ttl=30), {"a": 1})
        self.clock.now += 1
        self.assertIs(self.cache.get("k", ttl=30), MISS)
        # a longer ttl on the next read still sees the entry
        self.assertEqual(self.cache.get("k", ttl=600), {"a": 1})

    def test_default_ttl_applies_without_explicit_ttl(self) -> None:
        self.cache.save("k", 1)
        self.clock.now += 3601
        self.assertIs(self.cache.get("k"), MISS)

    def test_allow_stale_returns_expired_value(self) -> None:
        self.cache.save("k", "old")
        self.clock.now += 10_000
        self.assertIs(self.cache.get("k", ttl=5), MISS)
        self.assertEqual(self.cache.get("k", allow_stale=True, ttl=5), "old")

    def test_store_is_process_local_and_never_expires(self) -> None:
        self.cache.store("lastBlock", 123)
        self.clock.now += 10 ** 9
        self.assertEqual(self.cache.get("lastBlock", ttl=1), 123)
        self.assertEqual(len(self.backend), 0)

    def test_save_replaces_a_stored_value(self) -> None:
        self.cache.store("k", "local")
        self.cache.save("k", "fresh")
        self.assertEqual(self.cache.get("k"), "fresh")

    def test_delete(self) -> None:
        self.cache.save("k", 1)
        self.cache.delete("k")
        self.assertIs(self.cache.get("k"), MISS)

    def test_structured_keys_do_not_collide(self) -> None:
        a = CacheKey("token_history_grouped", ("a-b", 1))
        b = CacheKey("token_history_grouped", ("a", "b-1"))
        self.assertNotEqual(a.serialize(), b.serialize())
        self.cache.save(a, "A")
        self.cache.save(b, "B")
        self.assertEqual(self.cache.get(a), "A")
        self.assertEqual(self.cache.get(b), "B")

    def test_none_params_are_distinct_from_text(self) -> None:
        self.assertNotEqual(
            CacheKey("token_history_grouped", (None, 30)).serialize(),
            CacheKey("token_history_grouped", ("None", 30)).serialize(),
        )


class FileCacheBackendTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = self._tmp.name

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_entries_survive_a_new_backend_instance(self) -> None:
        FileCacheBackend(self.dir).dump(CacheEntry(key="tokens", value={"x": [1, 2]}, stored_at=5.0))

        entry = FileCacheBackend(self.dir).load("tokens")

        self.assertIsNotNone(entry)
        self.assertEqual(entry.value, {"x": [1, 2]})
        self.assertEqual(entry.stored_at, 5.0)

    def test_missing_and_deleted_keys(self) -> None:
        backend = FileCacheBackend(self.dir)
        self.assertIsNone(backend.load("nope"))
        backend.dump(CacheEntry(key="k", value=None, stored_at=1.0))
        backend.delete("k")
        self.assertIsNone(backend.load("k"))

    def test_corrupt_file_is_a_miss(self) -> None:
        backend = FileCacheBackend(self.dir)
        backend.dump(CacheEntry(key="k", value=1, stored_at=1.0))
        for path in Path(self.dir).glob("*.pkl"):
            path.write_bytes(b"not a pickle")

        with self.assertLogs("ethview.adapters.cache.file_backend", level="WARNING"):
            self.assertIsNone(backend.load("k"))

    def test_miss_marker_is_never_confused_with_cached_none(self) -> None:
        cache = CacheStore(FileCacheBackend(self.dir), clock=lambda: 10.0)
        cache.save(CacheKey("token", ("0xabc",)), None)
        self.assertIsNone(cache.get(CacheKey("token", ("0xabc",))))
        self.assertIs(cache.get(CacheKey("token", ("0xdef",))), MISS)


if __name__ == "__main__":
    unittest.main()
