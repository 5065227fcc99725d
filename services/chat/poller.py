import asyncio
import time
from typing import Callable, List, Optional, Set

from services.api.client import ApiError, RipaltApiClient
from services.chat.appender import LineAppender
from services.chat.badges import BadgeTracker
from services.chat.registry import RoomRegistry
from shared.chat.models import ChatMessage
from shared.logging.logger import get_logger

log = get_logger("chat.poller")


class RoomPoller:
    """
    Incremental message poller for every registered chat room.

    Responsibilities:
    - Request only messages newer than the room's watermark
    - Advance the watermark to wall-clock time after a successful fetch
    - Render new messages oldest first, deduplicated by message id
    - Count unread messages on inactive tabs (never on the first run)
    - Never let a failing room break the poll loop
    """

    def __init__(
        self,
        *,
        api: RipaltApiClient,
        registry: RoomRegistry,
        appender: LineAppender,
        badges: Optional[BadgeTracker] = None,
        message_limit: Optional[int] = None,
        watermark_overlap_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self.api = api
        self.registry = registry
        self.appender = appender
        self.badges = badges or BadgeTracker()
        self.message_limit = message_limit
        self.watermark_overlap_seconds = max(0, int(watermark_overlap_seconds))
        self._clock = clock
        self._in_flight: Set[str] = set()

    # ------------------------------------------------------------------ #

    def is_polling(self, room_id: str) -> bool:
        return room_id in self._in_flight

    def _since(self, last_update: Optional[int]) -> Optional[int]:
        if last_update is None:
            return None
        return max(0, last_update - self.watermark_overlap_seconds)

    async def poll_room(self, room_id: str) -> None:
        binding = self.registry.get(room_id)
        room = binding.room

        if room_id in self._in_flight:
            log.debug(f"[{room_id}] Previous poll still in flight; skipping tick")
            return

        self._in_flight.add(room_id)
        try:
            first_run = room.is_first_run

            try:
                payload = await self.api.fetch_messages(
                    room.network_id,
                    since=self._since(room.last_update),
                    limit=self.message_limit,
                )
            except ApiError as e:
                log.warning(f"[{room_id}] chat poll failed: {e}")
                return

            if payload is None:
                return

            # Parse the whole batch before the watermark moves
            messages: List[ChatMessage] = []
            for raw in payload:
                try:
                    messages.append(ChatMessage.from_payload(raw))
                except ValueError as e:
                    log.warning(f"[{room_id}] Skipping malformed chat message: {e}")

            watermark = room.advance_watermark(int(self._clock()))

            # The API delivers newest first
            appended = 0
            for message in reversed(messages):
                if self.appender.append(binding.surface, message):
                    appended += 1

            if not first_run and appended:
                self.badges.increment(room, binding.tab, appended)

            log.debug(
                f"[{room_id}] Poll complete "
                f"(received={len(payload)}, appended={appended}, "
                f"first_run={first_run}, last_update={watermark})"
            )
        finally:
            self._in_flight.discard(room_id)

    async def poll_all(self) -> None:
        room_ids = [room.room_id for room in self.registry.rooms()]
        results = await asyncio.gather(
            *(self.poll_room(room_id) for room_id in room_ids),
            return_exceptions=True,
        )

        for room_id, result in zip(room_ids, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                log.error(f"[{room_id}] Unexpected chat poll error: {result!r}")
