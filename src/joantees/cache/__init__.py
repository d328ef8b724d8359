"""In-memory request caching for joantees.

This package provides :class:`RequestCache`, the TTL cache and in-flight
registry consumed by :class:`~joantees.client.AsyncClient`, the
:func:`derive_key` request-signature function, and :class:`CacheSweeper`,
the background task that drops expired entries.

Cache defaults are controlled by the ``cache`` section of the global
configuration (:class:`~joantees.models.CacheConfig`).
"""

from joantees.cache.cache import (
    DEFAULT_CACHE_DURATION,
    DEFAULT_STALE_WINDOW,
    CacheEntry,
    RequestCache,
    derive_key,
)
from joantees.cache.sweeper import DEFAULT_CLEANUP_INTERVAL, CacheSweeper

__all__ = [
    "CacheEntry",
    "CacheSweeper",
    "DEFAULT_CACHE_DURATION",
    "DEFAULT_CLEANUP_INTERVAL",
    "DEFAULT_STALE_WINDOW",
    "RequestCache",
    "derive_key",
]
