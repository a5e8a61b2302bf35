"""Tests for the handler registry."""

from __future__ import annotations

import httpx
import pytest

from scrapecache.exceptions import RequestError, UnsupportedHandlerError
from scrapecache.handlers import HandlerKind, HandlerRegistry
from scrapecache.models import RetryState


@pytest.fixture()
def registry() -> HandlerRegistry:
    return HandlerRegistry()


class TestRegistration:
    @pytest.mark.parametrize(
        "kind,expected",
        [
            ("request", HandlerKind.REQUEST),
            ("response", HandlerKind.RESPONSE),
            ("failedRequest", HandlerKind.FAILED_REQUEST),
            ("failed_request", HandlerKind.FAILED_REQUEST),
            (HandlerKind.RESPONSE, HandlerKind.RESPONSE),
        ],
    )
    def test_parse_kind(self, kind, expected) -> None:
        assert HandlerKind.parse(kind) is expected

    def test_unknown_kind_rejected(self, registry: HandlerRegistry) -> None:
        with pytest.raises(UnsupportedHandlerError, match="onRetry"):
            registry.add("onRetry", lambda: None)

    def test_non_callable_rejected(self, registry: HandlerRegistry) -> None:
        with pytest.raises(UnsupportedHandlerError, match="callable"):
            registry.add("request", "not a function")

    def test_add_replaces_previous(self, registry: HandlerRegistry) -> None:
        first, second = (lambda url: None), (lambda url: None)
        registry.add("request", first)
        registry.add("request", second)
        assert registry.get("request") is second
        assert registry.handlers.request is second

    def test_slots_start_empty(self, registry: HandlerRegistry) -> None:
        assert registry.get("response") is None
        assert registry.get("failedRequest") is None


class TestInvocation:
    @pytest.mark.asyncio
    async def test_request_passthrough_without_handler(self, registry: HandlerRegistry) -> None:
        assert await registry.run_request("https://httpbin.org/json") == "https://httpbin.org/json"

    @pytest.mark.asyncio
    async def test_request_handler_receives_url(self, registry: HandlerRegistry) -> None:
        seen: list[httpx.URL] = []

        def _record(url: httpx.URL) -> str:
            seen.append(url)
            return str(url) + "/v2"

        registry.add("request", _record)
        assert await registry.run_request("https://httpbin.org/json") == "https://httpbin.org/json/v2"
        assert isinstance(seen[0], httpx.URL)

    @pytest.mark.asyncio
    async def test_async_response_handler(self, registry: HandlerRegistry) -> None:
        async def _extract(response: httpx.Response) -> dict:
            return {"status": response.status_code}

        registry.add("response", _extract)
        assert await registry.run_response(httpx.Response(201)) == {"status": 201}

    @pytest.mark.asyncio
    async def test_response_handler_returning_none(self, registry: HandlerRegistry) -> None:
        response = httpx.Response(200)
        registry.add("response", lambda r: None)
        assert await registry.run_response(response) is response

    @pytest.mark.asyncio
    async def test_failed_request_handler_args(self, registry: HandlerRegistry) -> None:
        calls: list[tuple] = []
        registry.add("failedRequest", lambda error, retry: calls.append((error, retry)))

        error = RequestError("boom", status=500)
        state = RetryState(attempts=1)
        assert await registry.run_failed_request(error, state) is None
        assert calls == [(error, state)]
