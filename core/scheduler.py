import asyncio
from typing import List, Optional

from services.chat.poller import RoomPoller
from services.stats.header import StatsUpdater
from shared.logging.logger import get_logger
from shared.storage.state_publisher import ShoutboxStatePublisher

log = get_logger("core.scheduler")


class ShoutboxScheduler:
    """
    Process-wide timer driving the room pollers and the stats header.

    Each chat tick polls every room, then publishes a snapshot. Ticks of
    one loop never overlap; rooms within a tick run concurrently.
    """

    def __init__(
        self,
        *,
        poller: RoomPoller,
        stats: Optional[StatsUpdater] = None,
        publisher: Optional[ShoutboxStatePublisher] = None,
        chat_interval: float = 5.0,
        stats_interval: float = 60.0,
    ):
        self.poller = poller
        self.stats = stats
        self.publisher = publisher
        self.chat_interval = chat_interval
        self.stats_interval = stats_interval

        self._tasks: List[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    # ------------------------------------------------------------

    async def chat_tick(self) -> None:
        await self.poller.poll_all()
        self.publish()

    async def stats_tick(self) -> None:
        if self.stats:
            await self.stats.update()

    def publish(self) -> None:
        if not self.publisher:
            return
        header = self.stats.header if self.stats else None
        self.publisher.publish_snapshot(self.poller.registry, header)

    async def run_once(self) -> None:
        await self.stats_tick()
        await self.chat_tick()

    # ------------------------------------------------------------

    def start(self) -> None:
        if self._tasks:
            log.warning("Scheduler already started — skipping")
            return

        self._stop_event.clear()
        log.info(
            f"Scheduler starting (rooms={len(self.poller.registry)}, "
            f"chat_interval={self.chat_interval}s, stats_interval={self.stats_interval}s)"
        )

        self._tasks.append(asyncio.create_task(self._loop("chat", self.chat_tick, self.chat_interval)))
        if self.stats:
            self._tasks.append(asyncio.create_task(self._loop("stats", self.stats_tick, self.stats_interval)))

    async def _loop(self, name: str, tick, interval: float) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    await tick()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    log.error(f"[{name}] tick failed: {e!r}")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            log.debug(f"[{name}] loop cancelled")
            raise

    # ------------------------------------------------------------

    async def shutdown(self) -> None:
        log.info("Scheduler shutdown initiated")
        self._stop_event.set()

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        log.info("Scheduler shutdown complete")
