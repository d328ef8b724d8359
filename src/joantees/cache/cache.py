"""In-memory request cache with TTL expiry and in-flight bookkeeping.

:class:`RequestCache` stores decoded GET payloads keyed by a request
signature (see :func:`derive_key`). Each entry records when it was stored
and when it expires:

* an entry past ``expires_at`` is treated as absent and lazily deleted on
  the next read, or by :meth:`RequestCache.cleanup`;
* an entry older than the *stale window* is still served but reported by
  :meth:`RequestCache.is_stale`, so callers can decide to refresh in the
  background.

The cache also keeps a registry of in-flight futures, at most one per key,
which :class:`~joantees.client.AsyncClient` uses to coalesce concurrent
identical GETs into a single network call.

All operations are synchronous and never suspend. Under asyncio's
run-to-completion scheduling that makes each of them atomic without a lock.
Writes for the same key are last-to-complete-wins.

Cache keys are ``"<endpoint>:<json options>"`` so that every key starts
with the endpoint it was derived from, which is what
:meth:`RequestCache.invalidate` matches on.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_CACHE_DURATION = 5 * 60.0
DEFAULT_STALE_WINDOW = 60.0

_KEY_DELIMITERS = (":", "?", "/")


@dataclass
class CacheEntry(Generic[T]):
    """A cached payload for one request signature.

    Timestamps come from the owning cache's clock (monotonic seconds by
    default), not wall time.
    """

    key: str
    payload: T
    stored_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def is_stale(self, now: float, stale_window: float) -> bool:
        return now - self.stored_at > stale_window


def derive_key(
    endpoint: str,
    method: str = "GET",
    params: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
    response_type: Optional[str] = None,
) -> str:
    """Build the cache key for a request.

    Only options that change the response take part: the method, query
    parameters, request headers and the response decoding. Retry settings,
    cache durations and ``skip_cache`` are not part of the key.

    Parameter and header ordering is irrelevant (``sort_keys=True``) and
    header names are case-insensitive.

    Args:
        endpoint: Path relative to the API base URL, optionally with a
            query string folded in (``/products?category=shirts``).
        method: HTTP method.
        params: Query parameters passed separately from *endpoint*.
        headers: Extra request headers.
        response_type: Decoding requested by the caller (``"json"``,
            ``"text"``, ``"bytes"``). ``None`` and ``"json"`` are equivalent.

    Returns:
        A string starting with *endpoint* followed by ``:``.
    """
    options: dict[str, Any] = {"method": method.upper()}
    if params:
        options["params"] = params
    if headers:
        options["headers"] = {name.lower(): value for name, value in headers.items()}
    if response_type and response_type != "json":
        options["response_type"] = response_type
    encoded = json.dumps(options, sort_keys=True, separators=(",", ":"), default=str)
    return f"{endpoint}:{encoded}"


class RequestCache(Generic[T]):
    """Process-wide store of response payloads and in-flight requests.

    Construct one per application (or per test) and pass it to every
    :class:`~joantees.client.AsyncClient` that should share results.

    Args:
        default_cache_duration: Seconds an entry stays usable when
            :meth:`set` is called without an explicit duration.
        default_stale_window: Seconds after which an entry is reported
            stale when :meth:`is_stale` is called without a window.
        max_entries: Optional bound on the number of stored entries. When
            exceeded, the oldest entries are evicted first. ``None`` means
            unbounded, relying on TTL expiry and :meth:`cleanup`.
        clock: Monotonic time source in seconds. Tests inject a fake.

    Example::

        cache = RequestCache(default_cache_duration=60)
        key = derive_key("/categories")
        cache.set(key, [{"id": 1, "name": "Shirts"}])
        cache.get(key)        # -> [{"id": 1, ...}]
        cache.invalidate("/categories")
        cache.get(key)        # -> None
    """

    def __init__(
        self,
        default_cache_duration: float = DEFAULT_CACHE_DURATION,
        default_stale_window: float = DEFAULT_STALE_WINDOW,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_cache_duration < 0:
            raise ValueError("default_cache_duration must be >= 0")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be a positive integer")
        self._default_cache_duration = default_cache_duration
        self._default_stale_window = default_stale_window
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._in_flight: dict[str, asyncio.Future] = {}
        self._generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def generation(self) -> int:
        """Incremented by every :meth:`clear`.

        A request that started before a clear compares this against the value
        it saw at the start and skips storing its payload when they differ.
        """
        return self._generation

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not entry.is_expired(self._clock())

    # ------------------------------------------------------------------ #
    # Entries
    # ------------------------------------------------------------------ #

    def get(self, key: str, default: Any = None) -> Any:
        """Return the payload for *key*, or *default* when absent or expired.

        An expired entry is deleted as a side effect.
        """
        entry = self._entries.get(key)
        if entry is None:
            return default
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return default
        return entry.payload

    def get_entry(self, key: str) -> Optional[CacheEntry[T]]:
        """Return the live :class:`CacheEntry` for *key* without deleting anything."""
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    def set(self, key: str, payload: T, cache_duration: Optional[float] = None) -> None:
        """Store *payload* under *key*, replacing any previous entry.

        Args:
            key: Cache key from :func:`derive_key`.
            payload: Decoded response body.
            cache_duration: Seconds until expiry. ``None`` uses the cache
                default; ``0`` disables caching for this call, which also
                drops any previous entry for *key*.

        Raises:
            ValueError: If *cache_duration* is negative.
        """
        duration = self._default_cache_duration if cache_duration is None else cache_duration
        if duration < 0:
            raise ValueError("cache_duration must be >= 0")

        # Re-insert so dict order tracks stored_at for eviction.
        self._entries.pop(key, None)
        if duration == 0:
            return

        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            payload=payload,
            stored_at=now,
            expires_at=now + duration,
        )
        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    def is_stale(self, key: str, stale_window: Optional[float] = None) -> bool:
        """Report whether the entry for *key* should be refreshed.

        Absent and expired entries are always stale. Staleness never stops
        :meth:`get` from returning a payload.
        """
        entry = self._entries.get(key)
        now = self._clock()
        if entry is None or entry.is_expired(now):
            return True
        window = self._default_stale_window if stale_window is None else stale_window
        return entry.is_stale(now, window)

    def invalidate(self, prefix: str) -> int:
        """Delete every entry derived from the endpoint *prefix*.

        ``invalidate("/products")`` removes ``/products`` itself, query
        variants such as ``/products?category=shirts`` and sub-resources
        such as ``/products/12``, but leaves ``/products-archive`` alone.
        A prefix that already ends in ``/``, ``?`` or ``:`` is matched
        as a plain string prefix.

        Returns:
            The number of entries removed.
        """
        if prefix.endswith(_KEY_DELIMITERS):
            matches = [key for key in self._entries if key.startswith(prefix)]
        else:
            size = len(prefix)
            matches = [
                key
                for key in self._entries
                if key.startswith(prefix) and key[size:size + 1] in _KEY_DELIMITERS
            ]
        for key in matches:
            del self._entries[key]
        return len(matches)

    def cleanup(self) -> int:
        """Delete all expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        """Drop every entry and forget every in-flight request (logout, global reset)."""
        self._entries.clear()
        self._in_flight.clear()
        self._generation += 1

    # ------------------------------------------------------------------ #
    # In-flight registry
    # ------------------------------------------------------------------ #

    def register_in_flight(self, key: str, future: asyncio.Future) -> None:
        """Record *future* as the pending request for *key*.

        Raises:
            RuntimeError: If a different future is already registered.
        """
        current = self._in_flight.get(key)
        if current is not None and current is not future:
            raise RuntimeError(f"A request for {key!r} is already in flight")
        self._in_flight[key] = future

    def get_in_flight(self, key: str) -> Optional[asyncio.Future]:
        """Return the exact future registered for *key*, if any."""
        return self._in_flight.get(key)

    def clear_in_flight(self, key: str, future: Optional[asyncio.Future] = None) -> None:
        """Forget the in-flight request for *key*.

        When *future* is given, the registration is only removed if it is
        that same future, so a settled call never clears a newer one.
        """
        if future is not None and self._in_flight.get(key) is not future:
            return
        self._in_flight.pop(key, None)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def stats(self) -> dict[str, Any]:
        """Return a snapshot of cache occupancy and defaults."""
        return {
            "size": len(self._entries),
            "in_flight": len(self._in_flight),
            "max_entries": self._max_entries,
            "default_cache_duration": self._default_cache_duration,
            "default_stale_window": self._default_stale_window,
        }
