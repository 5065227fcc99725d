from __future__ import annotations

import httpx
import pytest

from services.api.client import ApiError, RipaltApiClient
from tests.helpers import make_message


def _client(handler) -> RipaltApiClient:
    return RipaltApiClient(
        base_url="http://tracker.test/",
        session_name="ripalt",
        session_cookie="abc",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_fetch_messages_builds_query_and_sends_cookie():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[make_message("1")])

    client = _client(handler)
    try:
        data = await client.fetch_messages(2, since=1700000000, limit=10)
    finally:
        await client.close()

    assert data[0]["id"] == "1"
    request = seen[0]
    assert request.url.path == "/api/v1/chat/messages"
    assert dict(request.url.params) == {"chat": "2", "since": "1700000000", "limit": "10"}
    assert "ripalt=abc" in request.headers["cookie"]


@pytest.mark.asyncio
async def test_error_status_raises_with_code():
    client = _client(lambda request: httpx.Response(403, json={"error": "forbidden"}))
    try:
        with pytest.raises(ApiError) as excinfo:
            await client.fetch_messages(1)
    finally:
        await client.close()

    assert excinfo.value.status_code == 403


@pytest.mark.asyncio
async def test_invalid_json_raises():
    client = _client(lambda request: httpx.Response(200, content=b"{nope"))
    try:
        with pytest.raises(ApiError):
            await client.get_json("/api/v1/user/stats")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_empty_body_is_none():
    client = _client(lambda request: httpx.Response(200, content=b""))
    try:
        assert await client.fetch_messages(1) is None
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_non_list_messages_payload_raises():
    client = _client(lambda request: httpx.Response(200, json={"messages": []}))
    try:
        with pytest.raises(ApiError):
            await client.fetch_messages(1)
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_transport_failure_raises_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client = _client(handler)
    try:
        with pytest.raises(ApiError) as excinfo:
            await client.fetch_user_stats()
    finally:
        await client.close()

    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_publish_posts_json(tracker, api):
    echoed = await api.publish_message(1, "hi there")

    request = tracker.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/chat/publish"
    assert echoed["message"] == "hi there"
    assert tracker.published == [echoed]


def test_base_url_is_required():
    with pytest.raises(RuntimeError):
        RipaltApiClient(base_url="")
