"""Background task that periodically drops expired cache entries.

:meth:`RequestCache.get` only evicts the entries it happens to read, so
payloads nobody asks for again would otherwise stay in memory until the
process exits. :class:`CacheSweeper` owns an :mod:`asyncio` task that calls
:meth:`RequestCache.cleanup` on a fixed interval and can be stopped
deterministically.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from joantees.cache.cache import RequestCache

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL = 5 * 60.0


class CacheSweeper:
    """Run :meth:`RequestCache.cleanup` every *interval* seconds.

    Args:
        cache: The cache to sweep.
        interval: Seconds between sweeps. Must be positive.

    Example::

        async with CacheSweeper(cache, interval=300):
            await serve_forever()
    """

    def __init__(self, cache: RequestCache, interval: float = DEFAULT_CLEANUP_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._cache = cache
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop on the running event loop. Idempotent."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="joantees-cache-sweeper"
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> CacheSweeper:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            removed = self._cache.cleanup()
            if removed:
                logger.debug("Swept %d expired cache entries", removed)
