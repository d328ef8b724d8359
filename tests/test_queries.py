"""Tests for the Query and Mutation helpers."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from joantees.cache import RequestCache
from joantees.client import AsyncClient
from joantees.exceptions import InvalidUsageError
from joantees.queries import Mutation, Query
from conftest import RecordingHandler, make_profile


def _client(handler, cache=None) -> AsyncClient:
    return AsyncClient(
        make_profile(retry_count=0),
        cache=cache if cache is not None else RequestCache(),
        transport=httpx.MockTransport(handler),
    )


# ------------------------------------------------------------------ #
# Query
# ------------------------------------------------------------------ #


class TestQuery:
    @pytest.mark.asyncio
    async def test_fetch_updates_state(self) -> None:
        handler = RecordingHandler(httpx.Response(200, json=[{"id": 1}]))
        async with _client(handler) as client:
            query = Query(client, "/orders")
            result = await query.fetch()

        assert result is not None and result.ok
        assert query.data == [{"id": 1}]
        assert query.is_success
        assert not query.is_error
        assert not query.is_loading
        assert query.from_cache is False

    @pytest.mark.asyncio
    async def test_second_fetch_served_from_cache(self) -> None:
        handler = RecordingHandler(httpx.Response(200, json=[]))
        async with _client(handler) as client:
            query = Query(client, "/orders")
            await query.fetch()
            await query.refetch()

        assert handler.calls == 1
        assert query.from_cache is True

    @pytest.mark.asyncio
    async def test_error_state(self) -> None:
        handler = RecordingHandler(httpx.Response(500, json={"message": "boom"}))
        async with _client(handler) as client:
            query = Query(client, "/orders")
            await query.fetch()

        assert query.is_error
        assert query.error == "HTTP 500: boom"
        assert query.data is None

    @pytest.mark.asyncio
    async def test_disabled_query_does_nothing(self) -> None:
        handler = RecordingHandler()
        async with _client(handler) as client:
            query = Query(client, "/orders", enabled=False)
            assert await query.fetch() is None

        assert handler.calls == 0

    @pytest.mark.asyncio
    async def test_fetch_options_forwarded(self) -> None:
        handler = RecordingHandler(httpx.Response(200, json=[]))
        async with _client(handler) as client:
            query = Query(client, "/products", params={"category": "shirts"}, skip_cache=True)
            await query.fetch()
            await query.fetch()

        assert handler.calls == 2
        assert handler.requests[0].url.params["category"] == "shirts"

    @pytest.mark.asyncio
    async def test_invalidate_resets_data(self) -> None:
        handler = RecordingHandler(httpx.Response(200, json=[1]))
        async with _client(handler) as client:
            query = Query(client, "/orders")
            await query.fetch()
            query.invalidate()
            assert query.data is None
            assert not query.is_success
            assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_new_fetch_supersedes_pending(self) -> None:
        release = asyncio.Event()

        async def gated(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(200, json={"n": len(handler.requests)})

        handler = RecordingHandler(gated)
        async with _client(handler) as client:
            query = Query(client, "/orders")
            first = asyncio.ensure_future(query.fetch())
            await asyncio.sleep(0)
            second = asyncio.ensure_future(query.fetch())
            await asyncio.sleep(0)
            release.set()

            assert await first is None
            result = await second

        assert result is not None and result.ok
        assert not query.is_error
        assert query.is_success

    @pytest.mark.asyncio
    async def test_refetch_while_pending_returns_fresh_result(self) -> None:
        started = asyncio.Event()
        never = asyncio.Event()

        async def hang(request: httpx.Request) -> httpx.Response:
            started.set()
            await never.wait()
            return httpx.Response(200)

        handler = RecordingHandler(hang, httpx.Response(200, json=[{"id": 2}]))
        async with _client(handler) as client:
            query = Query(client, "/orders")
            first = asyncio.ensure_future(query.fetch())
            await started.wait()

            result = await query.refetch()
            assert await first is None

        assert result is not None and result.data == [{"id": 2}]
        assert query.data == [{"id": 2}]
        assert handler.calls == 2

    @pytest.mark.asyncio
    async def test_close_cancels_pending_silently(self) -> None:
        started = asyncio.Event()
        never = asyncio.Event()

        async def hang(request: httpx.Request) -> httpx.Response:
            started.set()
            await never.wait()
            return httpx.Response(200)

        handler = RecordingHandler(hang)
        async with _client(handler) as client:
            query = Query(client, "/orders")
            pending = asyncio.ensure_future(query.fetch())
            await started.wait()
            await query.close()

            assert await pending is None
            assert not query.is_error
            assert not query.is_loading
            assert await query.fetch() is None

    @pytest.mark.asyncio
    async def test_polls_while_open(self) -> None:
        handler = RecordingHandler(httpx.Response(200, json=[]))
        async with _client(handler) as client:
            async with Query(client, "/orders", refetch_interval=0.01, skip_cache=True):
                await asyncio.sleep(0.05)
            calls = handler.calls
            await asyncio.sleep(0.03)

        assert calls >= 2
        assert handler.calls == calls

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            Query(_client(RecordingHandler()), "/orders", refetch_interval=0)


# ------------------------------------------------------------------ #
# Mutation
# ------------------------------------------------------------------ #


class TestMutation:
    @pytest.mark.asyncio
    async def test_success_invalidates_and_calls_back(self) -> None:
        handler = RecordingHandler(
            lambda request: httpx.Response(
                201 if request.method == "POST" else 200, json={"method": request.method}
            )
        )
        seen: list = []
        async with _client(handler) as client:
            await client.fetch_with_cache("/categories")
            await client.fetch_with_cache("/orders")
            create = Mutation(
                client,
                "/categories",
                on_success=seen.append,
                invalidate_queries=["/categories"],
            )
            data = await create.mutate({"name": "Hats"})
            refreshed = await client.fetch_with_cache("/categories")
            orders = await client.fetch_with_cache("/orders")

        assert data == {"method": "POST"}
        assert seen == [{"method": "POST"}]
        assert create.is_success
        assert refreshed.from_cache is False
        assert orders.from_cache is True

    @pytest.mark.asyncio
    async def test_failure_calls_on_error_and_keeps_cache(self) -> None:
        handler = RecordingHandler(
            lambda request: httpx.Response(200 if request.method == "GET" else 422, json={"message": "Invalid"})
        )
        errors: list[str] = []
        async with _client(handler) as client:
            await client.fetch_with_cache("/products")
            update = Mutation(
                client,
                "/products/4",
                "PUT",
                on_error=errors.append,
                invalidate_queries=["/products"],
            )
            assert await update.mutate({"price": -1}) is None
            cached = await client.fetch_with_cache("/products")

        assert errors == ["HTTP 422: Invalid"]
        assert update.is_error
        assert cached.from_cache is True

    @pytest.mark.asyncio
    async def test_delete_sends_no_body(self) -> None:
        handler = RecordingHandler(httpx.Response(204))
        async with _client(handler) as client:
            remove = Mutation(client, "/products/4", "delete")
            await remove.mutate()

        assert handler.requests[0].method == "DELETE"
        assert handler.requests[0].content == b""
        assert remove.is_success

    def test_rejects_get(self) -> None:
        with pytest.raises(InvalidUsageError):
            Mutation(_client(RecordingHandler()), "/orders", "GET")
