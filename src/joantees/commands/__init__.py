"""Built-in CLI command groups and the helpers they share.

Commands resolve the active profile, open an :class:`~joantees.client.AsyncClient`
backed by a :class:`~joantees.cache.RequestCache` configured from the
global config, and run their coroutine with :func:`run_async`, which maps
:class:`~joantees.exceptions.JoanteesError` to a clean exit code.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Optional, TypeVar

import typer

from joantees.auth import TokenStore
from joantees.cache import RequestCache
from joantees.client import AsyncClient
from joantees.config import resolve_config, resolve_token
from joantees.exceptions import InvalidUsageError, JoanteesError
from joantees.models import GlobalConfig
from joantees.output import error

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion, turning :class:`JoanteesError` into ``typer.Exit``."""
    try:
        return asyncio.run(coro)
    except JoanteesError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def open_client(ctx_obj: Optional[dict[str, Any]]) -> tuple[GlobalConfig, AsyncClient]:
    """Build an (unopened) client for the profile selected on the command line.

    Returns:
        ``(global_config, client)``. Use the client with ``async with``.
    """
    obj = ctx_obj or {}
    global_cfg, profile = resolve_config(
        cli_profile=obj.get("profile"),
        cli_base_url=obj.get("base_url"),
    )
    cache_cfg = global_cfg.cache
    cache: RequestCache = RequestCache(
        default_cache_duration=cache_cfg.cache_duration,
        default_stale_window=cache_cfg.stale_window,
        max_entries=cache_cfg.max_entries,
    )
    client = AsyncClient(
        profile,
        cache=cache,
        token=resolve_token(profile.name),
        token_store=TokenStore(profile.name),
        cleanup_interval=cache_cfg.cleanup_interval,
    )
    return global_cfg, client


def parse_params(values: list[str]) -> dict[str, str]:
    """Parse repeated ``key=value`` options into a dict.

    Raises:
        InvalidUsageError: If an item has no ``=``.
    """
    params: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Expected key=value, got: {item}")
        params[key] = value
    return params
