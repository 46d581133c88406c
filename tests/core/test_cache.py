"""Tests for the in-memory response cache."""
import pytest

from core.cache import ResponseCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(max_size=3, default_ttl=300, cleanup_interval=60, clock=clock)


def test__cache_key__is_stable_across_param_order() -> None:
    a = ResponseCache.cache_key("/models", {"b": 2, "a": 1})
    b = ResponseCache.cache_key("/models", {"a": 1, "b": 2})

    assert a == b
    assert a == '/models:{"a": 1, "b": 2}'
    assert ResponseCache.cache_key("/models") == "/models:"


def test__get__returns_stored_value(cache: ResponseCache) -> None:
    cache.set("k", {"v": 1})

    assert cache.get("k") == {"v": 1}
    assert cache.has("k")
    assert cache.get("missing") is None


def test__get__entry_expires_after_ttl(cache: ResponseCache, clock: FakeClock) -> None:
    cache.set("k", "v")

    clock.advance(300)
    assert cache.get("k") == "v"

    clock.advance(1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test__set__per_entry_ttl_overrides_default(cache: ResponseCache, clock: FakeClock) -> None:
    cache.set("short", "v", ttl=10)
    cache.set("long", "v")

    clock.advance(11)

    assert cache.get("short") is None
    assert cache.get("long") == "v"


def test__set__evicts_oldest_when_full(cache: ResponseCache) -> None:
    for key in ("a", "b", "c"):
        cache.set(key, key)

    cache.set("d", "d")

    assert len(cache) == 3
    assert cache.get("a") is None
    assert [cache.get(k) for k in ("b", "c", "d")] == ["b", "c", "d"]


def test__set__overwriting_a_key_refreshes_its_position(cache: ResponseCache) -> None:
    for key in ("a", "b", "c"):
        cache.set(key, key)

    cache.set("a", "a2")
    cache.set("d", "d")

    assert cache.get("a") == "a2"
    assert cache.get("b") is None


def test__cleanup__runs_at_most_once_per_interval(cache: ResponseCache, clock: FakeClock) -> None:
    cache.set("a", 1, ttl=5)
    cache.set("b", 2, ttl=5)
    clock.advance(30)

    # Interval not reached yet; expired entries are only dropped when read
    cache.get("other")
    assert len(cache) == 2

    clock.advance(30)
    cache.get("other")
    assert len(cache) == 0


def test__cleanup__returns_number_removed(cache: ResponseCache, clock: FakeClock) -> None:
    cache.set("a", 1, ttl=5)
    cache.set("b", 2)
    clock.advance(10)

    assert cache.cleanup() == 1
    assert cache.get("b") == 2


def test__invalidate__by_pattern(cache: ResponseCache) -> None:
    cache.set("/civitai/models:1", 1)
    cache.set("/civitai/models:2", 2)
    cache.set("/other:3", 3)

    assert cache.invalidate("/civitai/") == 2
    assert len(cache) == 1
    assert cache.invalidate() == 1
    assert len(cache) == 0


def test__delete_and_clear(cache: ResponseCache) -> None:
    cache.set("a", 1)
    cache.set("b", 2)

    cache.delete("a")
    cache.delete("never-set")
    assert cache.get("a") is None

    cache.clear()
    assert len(cache) == 0


def test__response_cache__rejects_zero_size() -> None:
    with pytest.raises(ValueError, match="max_size"):
        ResponseCache(max_size=0)
