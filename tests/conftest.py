"""
Shared fixtures: an in-memory tracker API behind httpx.MockTransport, a
controllable clock and a two-room registry (public active, team inactive).
"""
from __future__ import annotations

import asyncio
import json
from datetime import timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from services.api.client import RipaltApiClient
from services.chat.appender import LineAppender
from services.chat.poller import RoomPoller
from services.chat.registry import RoomRegistry
from shared.config.shoutbox import RoomSettings
from tests.helpers import make_message

BASE_URL = "http://tracker.test"


class FakeTracker:
    """
    Scripted /api/v1 server.

    Each chat network id has a queue of responses: a list is returned as
    JSON, None as an empty body, an int as an error status and an
    exception instance is raised from the transport.
    """

    def __init__(self) -> None:
        self.responses: Dict[int, List[Any]] = {}
        self.requests: List[httpx.Request] = []
        self.published: List[Dict[str, Any]] = []
        self.stats: Any = {
            "name": "alice",
            "downloads": 3,
            "downloaded": 1536,
            "uploads": 7,
            "uploaded": 5 * 1024 ** 3,
            "ratio": 2.5,
        }
        self.gate: Optional[asyncio.Event] = None

    def queue(self, network_id: int, *responses: Any) -> None:
        self.responses.setdefault(network_id, []).extend(responses)

    def message_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == RipaltApiClient.MESSAGES_PATH]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == RipaltApiClient.MESSAGES_PATH:
            if self.gate is not None:
                await self.gate.wait()
            network_id = int(request.url.params["chat"])
            pending = self.responses.get(network_id) or []
            item = pending.pop(0) if pending else []
            if isinstance(item, Exception):
                raise item
            if item is None:
                return httpx.Response(200, content=b"")
            if isinstance(item, int):
                return httpx.Response(item, json={"error": "nope"})
            return httpx.Response(200, json=item)

        if path == RipaltApiClient.PUBLISH_PATH:
            body = json.loads(request.content.decode("utf-8"))
            echoed = make_message(
                f"posted-{len(self.published) + 1}",
                message=body["message"],
                chat=body["chat"],
            )
            self.published.append(echoed)
            return httpx.Response(200, json=echoed)

        if path == RipaltApiClient.STATS_PATH:
            if isinstance(self.stats, int):
                return httpx.Response(self.stats)
            return httpx.Response(200, json=self.stats)

        return httpx.Response(404)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.7) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture()
async def api(tracker: FakeTracker):
    client = RipaltApiClient(
        base_url=BASE_URL,
        session_cookie="session-token",
        transport=httpx.MockTransport(tracker.handler),
    )
    yield client
    await client.close()


@pytest.fixture()
def registry() -> RoomRegistry:
    return RoomRegistry.from_config(
        [
            RoomSettings(room_id="public", network_id=1, title="Public", active=True),
            RoomSettings(room_id="team", network_id=2, title="Team"),
        ],
        viewport_lines=5,
    )


@pytest.fixture()
def appender() -> LineAppender:
    return LineAppender(base_url=BASE_URL + "/", display_tz=timezone.utc)


@pytest.fixture()
def poller(api, registry, appender, clock) -> RoomPoller:
    return RoomPoller(api=api, registry=registry, appender=appender, clock=clock)
