"""HTTP client module for joantees.

Provides :class:`AsyncClient`, which wraps :class:`httpx.AsyncClient` with
bearer auth, a shared in-memory response cache, in-flight request
de-duplication, a per-attempt timeout, and retry with exponential backoff.
Every request resolves to a :class:`FetchResult`.

Example::

    from joantees.cache import RequestCache
    from joantees.client import AsyncClient

    cache = RequestCache()
    async with AsyncClient(profile, cache=cache) as client:
        result = await client.fetch_with_cache("/orders", params={"status": "pending"})
"""

from joantees.client.async_client import AsyncClient
from joantees.client.result import FetchResult

__all__ = ["AsyncClient", "FetchResult"]
