"""Stateful query and mutation helpers on top of :class:`~joantees.client.AsyncClient`.

A :class:`Query` tracks one cached GET endpoint for a long-running consumer
(a dashboard refresher, the CLI ``get --watch`` loop): it fetches on
entry, optionally re-fetches on an interval, and cancels whatever is still
pending when it is closed. Cancelled fetches are dropped silently and
never reported as errors.

A :class:`Mutation` sends a POST / PUT / PATCH / DELETE and, on success,
invalidates the cached endpoints it affects so that the next read goes to
the network.

Example::

    async with Query(client, "/orders", refetch_interval=30) as orders:
        ...
        print(orders.data, orders.stale)

    create = Mutation(client, "/categories", invalidate_queries=["/categories"])
    await create.mutate({"name": "Hoodies"})
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from joantees.client import AsyncClient, FetchResult
from joantees.exceptions import InvalidUsageError

T = TypeVar("T")

MUTATION_METHODS = ("POST", "PUT", "PATCH", "DELETE")


class Query(Generic[T]):
    """Observable state for one GET endpoint.

    Args:
        client: An open :class:`AsyncClient`.
        endpoint: Endpoint to fetch.
        enabled: When ``False``, :meth:`fetch` is a no-op.
        refetch_interval: Seconds between background re-fetches while the
            query is open. ``None`` disables polling.
        **fetch_options: Forwarded to
            :meth:`AsyncClient.fetch_with_cache` (``params``,
            ``cache_duration``, ``stale_window``, ``retry_count``, ...).
    """

    def __init__(
        self,
        client: AsyncClient,
        endpoint: str,
        *,
        enabled: bool = True,
        refetch_interval: Optional[float] = None,
        **fetch_options: Any,
    ) -> None:
        if refetch_interval is not None and refetch_interval <= 0:
            raise ValueError("refetch_interval must be positive")
        self._client = client
        self._endpoint = endpoint
        self._enabled = enabled
        self._refetch_interval = refetch_interval
        self._fetch_options = fetch_options
        self._pending: Optional[asyncio.Task] = None
        self._poller: Optional[asyncio.Task] = None
        self._closed = False

        self.data: Optional[T] = None
        self.error: Optional[str] = None
        self.is_loading = False
        self.is_error = False
        self.is_success = False
        self.from_cache = False
        self.stale = False

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def fetch(self) -> Optional[FetchResult[T]]:
        """Fetch the endpoint and update the query state.

        A fetch still pending from an earlier call is cancelled first.

        Returns:
            The :class:`FetchResult`, or ``None`` when the query is
            disabled, closed, or this fetch was superseded / cancelled.
        """
        if not self._enabled or self._closed:
            return None

        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

        task = asyncio.ensure_future(
            self._client.fetch_with_cache(self._endpoint, **self._fetch_options)
        )
        self._pending = task
        self.is_loading = True
        self.error = None
        self.is_error = False

        try:
            result: FetchResult[T] = await task
        except asyncio.CancelledError:
            if self._pending is task and not self._closed:
                raise
            return None
        finally:
            if self._pending is task:
                self.is_loading = False

        if result.ok:
            self.data = result.data
            self.from_cache = result.from_cache
            self.stale = result.stale
            self.is_success = True
            self.is_error = False
        else:
            self.error = result.error
            self.is_error = True
            self.is_success = False
        return result

    async def refetch(self) -> Optional[FetchResult[T]]:
        return await self.fetch()

    def invalidate(self) -> None:
        """Drop the cached responses for this endpoint and reset the data."""
        self._client.invalidate(self._endpoint)
        self.data = None
        self.is_success = False

    def start(self) -> None:
        """Start background polling when a ``refetch_interval`` is set."""
        if self._refetch_interval is None or self._closed:
            return
        if self._poller is None or self._poller.done():
            self._poller = asyncio.ensure_future(self._poll())

    async def close(self) -> None:
        """Stop polling and cancel any pending fetch."""
        self._closed = True
        for task in (self._poller, self._pending):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._poller = None
        self._pending = None
        self.is_loading = False

    async def __aenter__(self) -> Query[T]:
        await self.fetch()
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def _poll(self) -> None:
        assert self._refetch_interval is not None
        while not self._closed:
            await asyncio.sleep(self._refetch_interval)
            await self.fetch()


class Mutation(Generic[T]):
    """A write against the admin backend followed by cache invalidation.

    Args:
        client: An open :class:`AsyncClient`.
        endpoint: Endpoint to send to.
        method: One of ``POST``, ``PUT``, ``PATCH``, ``DELETE``.
        on_success: Called with the response data after a successful write.
        on_error: Called with the error message after a failed write.
        invalidate_queries: Endpoint prefixes whose cached responses are
            dropped after a successful write.

    Raises:
        InvalidUsageError: If *method* is not a mutation method.
    """

    def __init__(
        self,
        client: AsyncClient,
        endpoint: str,
        method: str = "POST",
        *,
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        invalidate_queries: Iterable[str] = (),
    ) -> None:
        method = method.upper()
        if method not in MUTATION_METHODS:
            raise InvalidUsageError(f"Unsupported method: {method}")
        self._client = client
        self._endpoint = endpoint
        self._method = method
        self._on_success = on_success
        self._on_error = on_error
        self._invalidate_queries = tuple(invalidate_queries)

        self.data: Optional[T] = None
        self.error: Optional[str] = None
        self.is_loading = False
        self.is_error = False
        self.is_success = False

    async def mutate(self, payload: Optional[Any] = None) -> Optional[T]:
        """Send the write. Returns the response data, or ``None`` on failure."""
        self.is_loading = True
        self.error = None
        self.is_error = False
        self.is_success = False
        try:
            if self._method == "DELETE":
                result: FetchResult[T] = await self._client.delete(self._endpoint)
            else:
                result = await self._client.request(
                    self._method, self._endpoint, json_body=payload
                )
        finally:
            self.is_loading = False

        if not result.ok:
            self.error = result.error
            self.is_error = True
            if self._on_error is not None:
                self._on_error(result.error or "An error occurred")
            return None

        for prefix in self._invalidate_queries:
            self._client.invalidate(prefix)

        self.data = result.data
        self.is_success = True
        if self._on_success is not None:
            self._on_success(result.data)
        return result.data
