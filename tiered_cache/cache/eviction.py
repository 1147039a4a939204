"""
Capacity eviction for bounded backends.

A full backend removes exactly one entry before accepting a new key.
"""

from typing import Iterable, Optional, Tuple

from ..types.models import CacheEntry, EvictionPolicy


def select_victim(
    entries: Iterable[Tuple[str, CacheEntry]],
    policy: EvictionPolicy = EvictionPolicy.OLDEST_WRITE
) -> Optional[str]:
    """
    Pick the key to evict.

    Args:
        entries: ``(key, entry)`` pairs in insertion order
        policy: OLDEST_WRITE compares ``created_at``, LRU compares
            ``last_accessed``

    Returns:
        The chosen key, or None when there are no entries. Ties go to the
        earliest inserted key.
    """
    if policy is EvictionPolicy.LRU:
        def stamp(entry: CacheEntry) -> float:
            return entry.last_accessed
    else:
        def stamp(entry: CacheEntry) -> float:
            return entry.created_at

    victim = None
    oldest = None
    for key, entry in entries:
        value = stamp(entry)
        if oldest is None or value < oldest:
            oldest = value
            victim = key
    return victim
