"""Asynchronous admin API client with caching, de-duplication and retry.

This module provides :class:`AsyncClient`, the client every joantees
consumer (CLI commands, :class:`~joantees.queries.Query` objects, scripts)
talks to the admin backend through. It wraps :class:`httpx.AsyncClient`
and layers on:

- **Bearer auth** -- the admin token is injected into every request.
- **Response caching** -- successful GETs are stored in a shared
  :class:`~joantees.cache.RequestCache`; hits are served without network
  I/O, with staleness reported as advisory metadata.
- **De-duplication** -- concurrent GETs for the same key share a single
  in-flight task.
- **Retry with backoff** -- failed attempts are retried with exponential
  delay (``retry_delay * 2 ** n``) except for 401 / 403 and cancellation.
- **Per-attempt timeout** -- each attempt is bounded by the profile's
  ``request.timeout``.

Requests never raise for HTTP or network failures; they resolve to a
:class:`~joantees.client.result.FetchResult` carrying either data or an
error message.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Optional

import httpx

from joantees.auth.token_store import TokenEntry, TokenStore
from joantees.cache import CacheSweeper, RequestCache, derive_key
from joantees.client.response import RESPONSE_TYPES, describe_error, extract_response_data
from joantees.client.result import FetchResult
from joantees.models import HTTPMethod, Profile
from joantees.output import get_output

_MISSING = object()

NON_RETRYABLE_STATUSES = frozenset({401, 403})


class AsyncClient:
    """Asynchronous HTTP client for the admin backend.

    Must be used as an async context manager so that the underlying
    transport (and the optional cache sweeper) is opened and closed.

    Args:
        profile: The connection profile containing ``base_url`` and request
            settings (timeout, retries, SSL verify).
        cache: Shared request cache. When ``None`` the client creates a
            private one with default durations.
        token: Initial bearer token. Takes precedence over *token_store*.
        token_store: Persistent token slot consulted by :meth:`get_token`
            and updated by :meth:`set_token` / :meth:`clear_token`.
        transport: Optional :class:`httpx.AsyncBaseTransport`, used by
            tests to substitute :class:`httpx.MockTransport`.
        cleanup_interval: When set, a :class:`~joantees.cache.CacheSweeper`
            sweeps expired entries every *cleanup_interval* seconds while
            the client is open.

    Example::

        async with AsyncClient(profile, cache=cache) as client:
            result = await client.fetch_with_cache("/categories", cache_duration=60)
            if result.ok:
                print(result.data, result.from_cache)
    """

    def __init__(
        self,
        profile: Profile,
        cache: Optional[RequestCache] = None,
        token: Optional[str] = None,
        token_store: Optional[TokenStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cleanup_interval: Optional[float] = None,
    ) -> None:
        self._profile = profile
        self._cache = cache if cache is not None else RequestCache()
        self._token = token
        self._token_store = token_store
        self._transport = transport
        self._sweeper = (
            CacheSweeper(self._cache, cleanup_interval) if cleanup_interval else None
        )
        self._client: Optional[httpx.AsyncClient] = None
        self._waiters: dict[asyncio.Future, int] = {}

    @property
    def cache(self) -> RequestCache:
        return self._cache

    @property
    def profile(self) -> Profile:
        return self._profile

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        config = self._profile.request
        self._client = httpx.AsyncClient(
            base_url=self._profile.base_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        if self._sweeper is not None:
            self._sweeper.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._sweeper is not None:
            await self._sweeper.stop()
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Token handling
    # ------------------------------------------------------------------ #

    def set_token(self, token: str, email: Optional[str] = None) -> None:
        """Use *token* for subsequent requests and persist it if a store is configured.

        Replacing a different token starts a new session, so the cache is
        cleared as in :meth:`clear_token`.
        """
        previous = self.get_token()
        self._token = token
        if previous is not None and previous != token:
            self._cache.clear()
        if self._token_store is not None:
            self._token_store.save(TokenEntry(token=token, email=email))

    def clear_token(self) -> None:
        """Forget the token and drop all cached responses of the ended session."""
        self._token = None
        if self._token_store is not None:
            self._token_store.clear()
        self._cache.clear()

    def get_token(self) -> Optional[str]:
        if self._token:
            return self._token
        if self._token_store is not None:
            entry = self._token_store.load()
            if entry is not None and entry.is_valid():
                return entry.token
        return None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def fetch_with_cache(
        self,
        endpoint: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        response_type: str = "json",
        cache_duration: Optional[float] = None,
        stale_window: Optional[float] = None,
        retry_count: Optional[int] = None,
        retry_delay: Optional[float] = None,
        skip_cache: bool = False,
    ) -> FetchResult[Any]:
        """GET *endpoint*, serving from the cache when possible.

        Args:
            endpoint: Path relative to the profile's ``base_url``.
            params: Query parameters.
            headers: Extra request headers.
            response_type: ``"json"``, ``"text"`` or ``"bytes"``.
            cache_duration: Seconds to keep the response. ``None`` uses the
                cache default, ``0`` disables caching for this call.
            stale_window: Seconds after which a hit is flagged ``stale``.
            retry_count: Retries after the first failure (profile default).
            retry_delay: Base backoff in seconds (profile default).
            skip_cache: Bypass the cache and in-flight registry entirely;
                the response is not stored.

        Returns:
            A :class:`FetchResult`. ``from_cache`` is ``True`` for hits.
        """
        return await self.request(
            "GET",
            endpoint,
            params=params,
            headers=headers,
            response_type=response_type,
            cache_duration=cache_duration,
            stale_window=stale_window,
            retry_count=retry_count,
            retry_delay=retry_delay,
            skip_cache=skip_cache,
        )

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
        response_type: str = "json",
        cache_duration: Optional[float] = None,
        stale_window: Optional[float] = None,
        retry_count: Optional[int] = None,
        retry_delay: Optional[float] = None,
        skip_cache: bool = False,
    ) -> FetchResult[Any]:
        """Send a request through the cache, de-duplication and retry layers.

        Only ``GET`` without ``skip_cache`` is cached and de-duplicated;
        every other method goes straight to the network and never touches
        the cache.

        Raises:
            ValueError: For an unknown method, response type, or a negative
                duration / retry setting.
            RuntimeError: If the client is used outside ``async with``.
            asyncio.CancelledError: If the calling task is cancelled.
        """
        method = HTTPMethod(method.upper()).value
        if response_type not in RESPONSE_TYPES:
            raise ValueError(f"Unsupported response type: {response_type}")
        config = self._profile.request
        retry_count = config.retry_count if retry_count is None else retry_count
        retry_delay = config.retry_delay if retry_delay is None else retry_delay
        if retry_count < 0 or retry_delay < 0:
            raise ValueError("retry_count and retry_delay must be >= 0")
        if cache_duration is not None and cache_duration < 0:
            raise ValueError("cache_duration must be >= 0")
        self._require_client()

        send = functools.partial(
            self._execute_with_retry,
            method,
            endpoint,
            params=params,
            headers=headers,
            json_body=json_body,
            response_type=response_type,
            retry_count=retry_count,
            retry_delay=retry_delay,
        )

        if method != HTTPMethod.GET.value or skip_cache:
            return await send()

        output = get_output()
        key = derive_key(endpoint, method, params, headers, response_type)

        cached = self._cache.get(key, _MISSING)
        if cached is not _MISSING:
            stale = self._cache.is_stale(key, stale_window)
            output.debug(f"Cache hit for {endpoint}{' (stale)' if stale else ''}")
            return FetchResult(data=cached, from_cache=True, stale=stale)

        task = self._cache.get_in_flight(key)
        if task is not None and task.done():
            self._cache.clear_in_flight(key, task)
            task = None
        if task is None:
            task = asyncio.ensure_future(
                send(
                    cache_key=key,
                    cache_duration=cache_duration,
                    cache_generation=self._cache.generation,
                )
            )
            self._cache.register_in_flight(key, task)
            task.add_done_callback(functools.partial(self._release_in_flight, key))
        else:
            output.debug(f"Joining in-flight request for {endpoint}")
        return await self._await_shared(key, task)

    async def get(self, endpoint: str, **kwargs: Any) -> FetchResult[Any]:
        """Alias of :meth:`fetch_with_cache`."""
        return await self.fetch_with_cache(endpoint, **kwargs)

    async def post(self, endpoint: str, json_body: Optional[Any] = None, **kwargs: Any) -> FetchResult[Any]:
        return await self.request("POST", endpoint, json_body=json_body, **kwargs)

    async def put(self, endpoint: str, json_body: Optional[Any] = None, **kwargs: Any) -> FetchResult[Any]:
        return await self.request("PUT", endpoint, json_body=json_body, **kwargs)

    async def patch(self, endpoint: str, json_body: Optional[Any] = None, **kwargs: Any) -> FetchResult[Any]:
        return await self.request("PATCH", endpoint, json_body=json_body, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> FetchResult[Any]:
        return await self.request("DELETE", endpoint, **kwargs)

    # ------------------------------------------------------------------ #
    # Cache maintenance
    # ------------------------------------------------------------------ #

    def invalidate(self, prefix: str) -> int:
        """Drop cached responses for *prefix* (call after a successful mutation)."""
        removed = self._cache.invalidate(prefix)
        get_output().debug(f"Invalidated {removed} cached response(s) for {prefix}")
        return removed

    def clear_all(self) -> None:
        self._cache.clear()

    def cleanup(self) -> int:
        return self._cache.cleanup()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client not initialised -- use as async context manager")
        return self._client

    def _build_headers(self, headers: Optional[dict[str, str]]) -> dict[str, str]:
        merged = {"Content-Type": "application/json", **(headers or {})}
        token = self.get_token()
        if token:
            merged["Authorization"] = f"Bearer {token}"
        return merged

    def _release_in_flight(self, key: str, task: asyncio.Future) -> None:
        self._cache.clear_in_flight(key, task)

    async def _await_shared(self, key: str, task: asyncio.Future) -> FetchResult[Any]:
        """Await a shared in-flight task on behalf of one caller.

        A cancelled caller only cancels the task when it was the last one
        waiting, so other callers still receive the result. The task is
        unregistered before it is cancelled so that a caller arriving in the
        meantime starts a fresh request instead of joining a dying one.
        """
        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if self._waiters[task] == 1 and not task.done():
                self._cache.clear_in_flight(key, task)
                task.cancel()
            raise
        finally:
            remaining = self._waiters[task] - 1
            if remaining:
                self._waiters[task] = remaining
            else:
                del self._waiters[task]

    async def _execute_with_retry(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
        json_body: Any,
        response_type: str,
        retry_count: int,
        retry_delay: float,
        cache_key: Optional[str] = None,
        cache_duration: Optional[float] = None,
        cache_generation: Optional[int] = None,
    ) -> FetchResult[Any]:
        """Execute the request with exponential-backoff retry.

        Makes at most ``retry_count + 1`` attempts, sleeping
        ``retry_delay * 2 ** attempt`` seconds between them. 401 / 403
        responses end the loop at once. When *cache_key* is given, a
        successful payload is written to the cache before returning, unless
        the cache was cleared since *cache_generation* was read.
        """
        client = self._require_client()
        timeout = self._profile.request.timeout
        output = get_output()
        last_error = "Network error"
        last_status: Optional[int] = None

        for attempt in range(retry_count + 1):
            try:
                response = await asyncio.wait_for(
                    client.request(
                        method,
                        endpoint,
                        params=params,
                        headers=self._build_headers(headers),
                        json=json_body,
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                last_error, last_status = f"Request timed out after {timeout:g}s", None
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                last_error, last_status = str(exc) or type(exc).__name__, None
            else:
                if response.is_success:
                    data = extract_response_data(response, response_type)
                    if cache_key is not None and self._cache.generation == cache_generation:
                        self._cache.set(cache_key, data, cache_duration)
                    return FetchResult(data=data, status_code=response.status_code)

                last_error, last_status = describe_error(response), response.status_code
                if last_status in NON_RETRYABLE_STATUSES:
                    output.debug(f"{method} {endpoint}: {last_error}, not retrying")
                    break

            if attempt < retry_count:
                delay = retry_delay * 2 ** attempt
                output.debug(
                    f"{method} {endpoint}: {last_error}, retrying in {delay:g}s "
                    f"(attempt {attempt + 1}/{retry_count})"
                )
                await asyncio.sleep(delay)

        return FetchResult(error=last_error, status_code=last_status)
