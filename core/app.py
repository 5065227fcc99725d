import argparse
import asyncio
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from core.scheduler import ShoutboxScheduler
from services.api.client import RipaltApiClient
from services.chat.appender import LineAppender, resolve_display_timezone
from services.chat.badges import BadgeTracker
from services.chat.composer import ChatComposer
from services.chat.poller import RoomPoller
from services.chat.registry import RoomRegistry
from services.stats.header import StatsUpdater
from shared.config.shoutbox import ShoutboxConfig, load_shoutbox_config
from shared.logging.logger import get_logger
from shared.storage.state_publisher import ShoutboxStatePublisher

log = get_logger("core.app")


@dataclass
class ShoutboxRuntime:
    config: ShoutboxConfig
    api: RipaltApiClient
    registry: RoomRegistry
    poller: RoomPoller
    composer: ChatComposer
    stats: StatsUpdater
    publisher: ShoutboxStatePublisher
    scheduler: ShoutboxScheduler

    async def close(self) -> None:
        await self.scheduler.shutdown()
        await self.api.close()


def build_runtime(config: ShoutboxConfig, *, transport=None) -> ShoutboxRuntime:
    api = RipaltApiClient(
        base_url=config.api.base_url,
        session_name=config.api.session_name,
        session_cookie=config.api.session_cookie,
        timeout=config.api.timeout_seconds,
        transport=transport,
    )

    registry = RoomRegistry.from_config(
        config.rooms,
        viewport_lines=config.display.viewport_lines,
    )

    appender = LineAppender(
        base_url=config.api.base_url + "/",
        time_format=config.display.time_format,
        display_tz=resolve_display_timezone(config.display.timezone),
        scroll_threshold=config.display.scroll_threshold,
    )

    poller = RoomPoller(
        api=api,
        registry=registry,
        appender=appender,
        badges=BadgeTracker(),
        message_limit=config.polling.message_limit,
        watermark_overlap_seconds=config.polling.watermark_overlap_seconds,
    )

    stats = StatsUpdater(api=api)
    publisher = ShoutboxStatePublisher(config.state_dir)

    scheduler = ShoutboxScheduler(
        poller=poller,
        stats=stats,
        publisher=publisher,
        chat_interval=config.polling.chat_interval_seconds,
        stats_interval=config.polling.stats_interval_seconds,
    )

    return ShoutboxRuntime(
        config=config,
        api=api,
        registry=registry,
        poller=poller,
        composer=ChatComposer(api=api, registry=registry, appender=appender),
        stats=stats,
        publisher=publisher,
        scheduler=scheduler,
    )


async def main(
    stop_event: asyncio.Event,
    config: ShoutboxConfig,
    *,
    once: bool = False,
):
    log.info("Shoutbox booting")
    log.info(
        f"Tracker {config.api.base_url} | rooms: "
        + ", ".join(f"{r.room_id}(nid={r.network_id})" for r in config.rooms)
    )

    runtime = build_runtime(config)

    try:
        if once:
            await runtime.scheduler.run_once()
            log.info(f"Single tick complete; snapshot in {runtime.publisher.base_dir}")
            return

        runtime.scheduler.start()

        # --------------------------------------------------
        # BLOCK UNTIL SHUTDOWN SIGNAL
        # --------------------------------------------------
        await stop_event.wait()
        log.info("Shutdown initiated")
    finally:
        try:
            await runtime.close()
        except Exception as e:
            log.warning(f"Runtime shutdown error ignored: {e}")

    log.info("Shoutbox stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        loop.call_soon_threadsafe(stop_event.set)

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except (ValueError, OSError) as e:
        log.debug(f"Signal handlers not installed: {e}")


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ripalt-shoutbox",
        description="Poll ripalt shoutbox rooms and publish rendered snapshots.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to shoutbox.json (defaults to shared/config/shoutbox.json)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single polling tick and exit",
    )
    return parser.parse_args(argv)


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    load_dotenv()
    log.info("Environment variables loaded")

    try:
        config = load_shoutbox_config(path=args.config)
    except RuntimeError as e:
        log.error(str(e))
        return 1

    stop_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    _install_signal_handlers(loop, stop_event)

    try:
        loop.run_until_complete(main(stop_event, config, once=args.once))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received — shutdown initiated")
        stop_event.set()

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()

    return 0


if __name__ == "__main__":
    sys.exit(run())
