"""Unit tests for the in-memory TTL cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from mirage.local_cache import LocalCache

if TYPE_CHECKING:
    from collections.abc import Callable

    from mirage.models.website import WebsiteRecord

TTL = 300.0
EPSILON = 0.001


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> LocalCache:
    return LocalCache(TTL, clock=clock)


class TestGetPut:
    def test_missing_key_returns_none(self, cache: LocalCache) -> None:
        assert cache.get("nothing-here") is None

    def test_put_then_get(
        self, cache: LocalCache, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        record = make_record("widgets")
        cache.put("widgets", record)
        assert cache.get("widgets") == record

    def test_put_replaces_whole_entry(
        self, cache: LocalCache, clock: FakeClock, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        cache.put("widgets", make_record("widgets", view_count=1))
        clock.advance(TTL - 1)
        cache.put("widgets", make_record("widgets", view_count=7))
        clock.advance(TTL - 1)
        # Second put restarted the clock for this key
        cached = cache.get("widgets")
        assert cached is not None
        assert cached.view_count == 7


class TestExpiry:
    def test_present_just_before_ttl(
        self, cache: LocalCache, clock: FakeClock, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        cache.put("widgets", make_record())
        clock.advance(TTL - EPSILON)
        assert cache.get("widgets") is not None

    def test_absent_just_after_ttl(
        self, cache: LocalCache, clock: FakeClock, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        cache.put("widgets", make_record())
        clock.advance(TTL + EPSILON)
        assert cache.get("widgets") is None

    def test_expired_entry_is_evicted_on_access(
        self, cache: LocalCache, clock: FakeClock, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        cache.put("widgets", make_record())
        clock.advance(TTL + 1)
        cache.get("widgets")
        assert len(cache) == 0

    def test_sweep_evicts_only_expired(
        self, cache: LocalCache, clock: FakeClock, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        cache.put("old-one", make_record("old-one"))
        cache.put("old-two", make_record("old-two"))
        clock.advance(TTL + 1)
        cache.put("fresh", make_record("fresh"))

        assert cache.sweep() == 2
        assert cache.stats() == {"size": 1, "items": ["fresh"]}

    def test_sweep_on_empty_cache(self, cache: LocalCache) -> None:
        assert cache.sweep() == 0


class TestClear:
    def test_clear_returns_count(
        self, cache: LocalCache, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        cache.put("a", make_record("a"))
        cache.put("b", make_record("b"))
        assert cache.clear() == 2
        assert len(cache) == 0

    def test_clear_one(
        self, cache: LocalCache, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        cache.put("a", make_record("a"))
        cache.put("b", make_record("b"))
        assert cache.clear_one("a") is True
        assert cache.get("a") is None
        assert cache.get("b") is not None

    def test_clear_one_missing_key(self, cache: LocalCache) -> None:
        assert cache.clear_one("missing") is False

    def test_stats_lists_keys_sorted(
        self, cache: LocalCache, make_record: Callable[..., WebsiteRecord]
    ) -> None:
        cache.put("zebra", make_record("zebra"))
        cache.put("apple", make_record("apple"))
        assert cache.stats() == {"size": 2, "items": ["apple", "zebra"]}


def test_default_ttl_is_five_minutes() -> None:
    assert LocalCache().ttl_seconds == 300.0
