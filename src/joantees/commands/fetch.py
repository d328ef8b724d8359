"""Request commands -- ``get`` with caching and watch mode, plus mutations.

``joantees get /orders --watch 10`` re-fetches the endpoint through a
:class:`~joantees.queries.Query` backed by one in-memory cache, so the
stderr status line shows when a payload came from the cache and when it
has gone stale. Mutations (``post``, ``put``, ``patch``, ``delete``) send
an optional JSON body.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import typer

from joantees.client.response import format_fetch_result
from joantees.commands import open_client, parse_params, run_async
from joantees.exceptions import InvalidUsageError
from joantees.output import debug
from joantees.queries import Query


def get_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Endpoint path, e.g. /products."),
    param: list[str] = typer.Option(
        [], "--param", "-P", help="Query parameter as key=value (repeatable)."
    ),
    skip_cache: bool = typer.Option(
        False, "--skip-cache", help="Bypass the response cache."
    ),
    cache_duration: Optional[float] = typer.Option(
        None, "--cache-duration", help="Seconds to keep the response cached."
    ),
    stale_window: Optional[float] = typer.Option(
        None, "--stale-window", help="Seconds after which a cached response is stale."
    ),
    watch: Optional[float] = typer.Option(
        None, "--watch", "-w", help="Re-fetch every N seconds."
    ),
    count: int = typer.Option(
        0, "--count", "-c", help="Stop after N fetches in watch mode (0 = forever)."
    ),
) -> None:
    """GET an endpoint and print the payload.

    Example::

        joantees get /products -P category=shirts
        joantees get /orders --watch 15 --stale-window 30
    """
    if watch is not None and watch <= 0:
        raise typer.BadParameter("--watch must be positive", param_hint="--watch")

    async def _run() -> None:
        params = parse_params(param)
        global_cfg, client = open_client(ctx.obj)
        skip = skip_cache or not global_cfg.cache.enabled
        async with client:
            query: Query[Any] = Query(
                client,
                endpoint,
                params=params or None,
                cache_duration=cache_duration,
                stale_window=stale_window,
                skip_cache=skip,
            )
            fetched = 0
            try:
                while True:
                    result = await query.fetch()
                    if result is None:
                        break
                    result.raise_for_error()
                    format_fetch_result(result)
                    fetched += 1
                    if watch is None or (count and fetched >= count):
                        break
                    debug(f"Next fetch in {watch:g}s")
                    await asyncio.sleep(watch)
            finally:
                await query.close()

    run_async(_run())


def _parse_body(body: Optional[str]) -> Any:  # noqa: ANN401
    """Parse *body* as JSON.

    Raises:
        InvalidUsageError: If the body is not valid JSON.
    """
    if body is None:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"--body is not valid JSON: {exc}") from exc


def _mutation(method: str):
    def command(
        ctx: typer.Context,
        endpoint: str = typer.Argument(help="Endpoint path, e.g. /categories/4."),
        body: Optional[str] = typer.Option(None, "--body", "-b", help="JSON request body."),
    ) -> None:
        async def _run() -> None:
            payload = _parse_body(body)
            _, client = open_client(ctx.obj)
            async with client:
                result = await client.request(method, endpoint, json_body=payload)
                result.raise_for_error()
                format_fetch_result(result)

        run_async(_run())

    command.__doc__ = f"{method} to an endpoint with an optional JSON body."
    return command


post_command = _mutation("POST")
put_command = _mutation("PUT")
patch_command = _mutation("PATCH")
delete_command = _mutation("DELETE")
