"""
Expiry checks shared by every backend and the sweeper.
"""

from typing import Optional

from ..types.models import CacheEntry


def is_expired(entry: CacheEntry, now: float, max_age: Optional[float] = None) -> bool:
    """
    Check whether ``entry`` is expired at ``now``.

    An entry whose age equals its ttl is still fresh. ``max_age`` replaces
    the entry's own ttl when given, so callers can demand fresher data.
    """
    limit = max_age if max_age is not None else entry.ttl
    return (now - entry.created_at) > limit
