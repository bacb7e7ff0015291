"""Unit tests for the in-memory ResponseCache."""

import threading

import pytest

from gateway.utils.response_cache import ResponseCache, build_cache_key


class FakeTime:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def _store(cache: ResponseCache, key: str, path: str = "products", body: bytes = b"{}") -> None:
    cache.set(key, path=path, status=200, body=body, media_type="application/json")


def test_build_cache_key_format() -> None:
    key = build_cache_key("GET", "products", [("page", "2"), ("sort", "name")])

    assert key == 'get:products:{"page":"2","sort":"name"}'


def test_build_cache_key_without_query() -> None:
    assert build_cache_key("GET", "products/1", []) == "get:products/1:{}"


def test_build_cache_key_repeated_params_become_lists() -> None:
    key = build_cache_key("GET", "search", [("tag", "a"), ("tag", "b"), ("tag", "c")])

    assert key == 'get:search:{"tag":["a","b","c"]}'


def test_build_cache_key_is_sensitive_to_param_order() -> None:
    key_ab = build_cache_key("GET", "resource", [("a", "1"), ("b", "2")])
    key_ba = build_cache_key("GET", "resource", [("b", "2"), ("a", "1")])

    assert key_ab != key_ba


def test_build_cache_key_distinguishes_values() -> None:
    assert build_cache_key("GET", "resource", [("x", "1")]) != build_cache_key(
        "GET", "resource", [("x", "2")]
    )


def test_set_and_get_updates_hit_miss_counters() -> None:
    cache = ResponseCache(ttl_seconds=10)

    assert cache.get("missing") is None

    _store(cache, "key", body=b'{"id": 1}')
    entry = cache.get("key")

    assert entry is not None
    assert entry.body == b'{"id": 1}'
    assert entry.status == 200
    assert entry.media_type == "application/json"

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1


def test_body_is_stored_by_reference() -> None:
    cache = ResponseCache(ttl_seconds=10)
    body = b"payload"

    _store(cache, "key", body=body)

    assert cache.get("key").body is body


def test_last_writer_wins() -> None:
    cache = ResponseCache(ttl_seconds=10)
    _store(cache, "key", body=b"first")
    _store(cache, "key", body=b"second")

    assert cache.get("key").body == b"second"
    assert cache.stats()["entries"] == 1


def test_expired_entry_is_evicted_on_read() -> None:
    fake_time = FakeTime()
    cache = ResponseCache(ttl_seconds=5, clock=fake_time.time)
    _store(cache, "key")

    fake_time.advance(4)
    assert cache.get("key") is not None

    fake_time.advance(2)
    assert cache.get("key") is None
    stats = cache.stats()
    assert stats["evictions"] == 1
    assert stats["entries"] == 0


def test_purge_expired_removes_only_expired_entries() -> None:
    fake_time = FakeTime()
    cache = ResponseCache(ttl_seconds=300, clock=fake_time.time)
    _store(cache, "old")
    fake_time.advance(200)
    _store(cache, "fresh")
    fake_time.advance(150)

    assert cache.purge_expired() == 1
    assert cache.keys() == ["fresh"]


def test_lru_eviction_removes_least_recently_used() -> None:
    cache = ResponseCache(ttl_seconds=100, max_entries=2)
    _store(cache, "a")
    _store(cache, "b")

    # Access "a" so that "b" becomes least recently used
    assert cache.get("a") is not None

    _store(cache, "c")

    assert cache.get("a") is not None
    assert cache.get("c") is not None
    assert cache.get("b") is None


def test_clear_without_path_flushes_everything() -> None:
    cache = ResponseCache(ttl_seconds=10)
    _store(cache, "a", path="products")
    _store(cache, "b", path="orders")

    assert cache.clear() == 2
    assert cache.stats()["entries"] == 0


@pytest.mark.parametrize("path", ["products", "/products", "products/"])
def test_clear_by_path_removes_path_and_children(path: str) -> None:
    cache = ResponseCache(ttl_seconds=10)
    _store(cache, "list", path="products")
    _store(cache, "item", path="products/42")
    _store(cache, "sibling", path="products-archive")
    _store(cache, "other", path="orders")

    assert cache.clear(path) == 2
    assert sorted(cache.keys()) == ["other", "sibling"]


def test_invalid_ttl_rejected() -> None:
    with pytest.raises(ValueError):
        ResponseCache(ttl_seconds=0)


def test_thread_safety_under_concurrent_sets() -> None:
    cache = ResponseCache(ttl_seconds=30, max_entries=None)
    total_keys = 50

    def _writer(idx: int) -> None:
        _store(cache, f"k-{idx}", body=str(idx).encode())

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(total_keys)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.stats()["entries"] == total_keys
    assert cache.get("k-0").body == b"0"
    assert cache.get("k-49").body == b"49"
