"""
Tests for the TTL check and eviction victim selection.
"""

from tiered_cache.cache.eviction import select_victim
from tiered_cache.cache.ttl import is_expired
from tiered_cache.types.models import CacheEntry, EvictionPolicy


def entry(key, created_at, ttl=10.0, last_accessed=-1.0):
    return CacheEntry(key=key, data=key, created_at=created_at, ttl=ttl, last_accessed=last_accessed)


class TestIsExpired:

    def test_fresh_entry(self):
        assert not is_expired(entry("k", 100.0), 105.0)

    def test_age_equal_to_ttl_is_still_fresh(self):
        assert not is_expired(entry("k", 100.0), 110.0)

    def test_age_beyond_ttl(self):
        assert is_expired(entry("k", 100.0), 110.001)

    def test_max_age_overrides_ttl(self):
        item = entry("k", 100.0, ttl=60.0)

        assert is_expired(item, 106.0, max_age=5.0)
        assert not is_expired(item, 106.0)
        # a looser bound can also keep an entry past its own ttl
        assert not is_expired(item, 170.0, max_age=100.0)


class TestSelectVictim:

    def test_empty(self):
        assert select_victim([], EvictionPolicy.OLDEST_WRITE) is None

    def test_oldest_write(self):
        entries = [("b", entry("b", 20.0)), ("a", entry("a", 10.0)), ("c", entry("c", 30.0))]
        assert select_victim(entries, EvictionPolicy.OLDEST_WRITE) == "a"

    def test_ties_go_to_first_inserted(self):
        entries = [("x", entry("x", 10.0)), ("y", entry("y", 10.0))]
        assert select_victim(entries) == "x"

    def test_lru_uses_last_accessed(self):
        entries = [
            ("a", entry("a", 10.0, last_accessed=50.0)),
            ("b", entry("b", 20.0, last_accessed=20.0)),
        ]

        assert select_victim(entries, EvictionPolicy.LRU) == "b"
        assert select_victim(entries, EvictionPolicy.OLDEST_WRITE) == "a"
