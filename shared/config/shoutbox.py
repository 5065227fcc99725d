from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from shared.chat.models import ChatRoomKind
from shared.logging.logger import get_logger

log = get_logger("shared.config.shoutbox")

_CONFIG_PATH = Path(__file__).parent / "shoutbox.json"

SHOUTBOX_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "api": {
            "type": "object",
            "properties": {
                "base_url": {"type": "string"},
                "session_name": {"type": "string"},
                "timeout_seconds": {"type": "number", "exclusiveMinimum": 0},
            },
        },
        "polling": {
            "type": "object",
            "properties": {
                "chat_interval_seconds": {"type": "number", "exclusiveMinimum": 0},
                "stats_interval_seconds": {"type": "number", "exclusiveMinimum": 0},
                "message_limit": {"type": ["integer", "null"], "minimum": 1},
                "watermark_overlap_seconds": {"type": "integer", "minimum": 0},
            },
        },
        "display": {
            "type": "object",
            "properties": {
                "time_format": {"type": "string"},
                "timezone": {"type": ["string", "null"]},
                "viewport_lines": {"type": "integer", "minimum": 1},
                "scroll_threshold": {"type": "integer", "minimum": 0},
            },
        },
        "rooms": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "nid"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "nid": {"type": "integer"},
                    "title": {"type": "string"},
                    "active": {"type": "boolean"},
                },
            },
        },
        "state_dir": {"type": "string"},
    },
}


@dataclass
class ApiSettings:
    base_url: str = "http://localhost:8081"
    session_name: str = "ripalt"
    session_cookie: Optional[str] = None
    timeout_seconds: float = 10.0


@dataclass
class PollingSettings:
    chat_interval_seconds: float = 5.0
    stats_interval_seconds: float = 60.0
    message_limit: Optional[int] = None
    watermark_overlap_seconds: int = 0


@dataclass
class DisplaySettings:
    time_format: str = "%H:%M:%S"
    timezone: Optional[str] = None
    viewport_lines: int = 20
    scroll_threshold: int = 1


@dataclass
class RoomSettings:
    room_id: str
    network_id: int
    title: str = ""
    active: bool = False


def _default_rooms() -> List[RoomSettings]:
    return [
        RoomSettings(
            room_id=kind.name.lower(),
            network_id=int(kind),
            title=kind.name.title(),
            active=kind is ChatRoomKind.PUBLIC,
        )
        for kind in ChatRoomKind
    ]


@dataclass
class ShoutboxConfig:
    api: ApiSettings = field(default_factory=ApiSettings)
    polling: PollingSettings = field(default_factory=PollingSettings)
    display: DisplaySettings = field(default_factory=DisplaySettings)
    rooms: List[RoomSettings] = field(default_factory=_default_rooms)
    state_dir: str = "shared/state"


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        log.warning(f"shoutbox.json not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, ValueError) as e:
        log.warning(f"Failed to load shoutbox.json ({e}); using defaults")
        return {}


def _validate(raw: Dict[str, Any]) -> None:
    validator = Draft7Validator(SHOUTBOX_CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(raw), key=lambda e: list(e.path))
    for err in errors:
        loc = "/".join(str(p) for p in err.path)
        log.warning(f"shoutbox config validation warning at '{loc}': {err.message}")


def _coerce_float(value: Any, default: float, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        log.warning(f"{name} must be a number; defaulting to {default}")
        return default
    if result <= 0:
        log.warning(f"{name} must be positive; defaulting to {default}")
        return default
    return result


def _coerce_int(value: Any, default: int, name: str, minimum: int = 0) -> int:
    if isinstance(value, bool):
        log.warning(f"{name} must be an integer; defaulting to {default}")
        return default
    try:
        result = int(value)
    except (TypeError, ValueError):
        log.warning(f"{name} must be an integer; defaulting to {default}")
        return default
    if result < minimum:
        log.warning(f"{name} must be >= {minimum}; defaulting to {default}")
        return default
    return result


def _load_api(raw: Optional[Dict[str, Any]]) -> ApiSettings:
    if not isinstance(raw, dict):
        raw = {}

    return ApiSettings(
        base_url=str(raw.get("base_url") or ApiSettings.base_url).rstrip("/"),
        session_name=str(raw.get("session_name") or ApiSettings.session_name),
        session_cookie=raw.get("session_cookie") or None,
        timeout_seconds=_coerce_float(
            raw.get("timeout_seconds", ApiSettings.timeout_seconds),
            ApiSettings.timeout_seconds,
            "api.timeout_seconds",
        ),
    )


def _load_polling(raw: Optional[Dict[str, Any]]) -> PollingSettings:
    if not isinstance(raw, dict):
        return PollingSettings()

    limit_raw = raw.get("message_limit")
    message_limit = (
        _coerce_int(limit_raw, 50, "polling.message_limit", minimum=1)
        if limit_raw is not None
        else None
    )

    return PollingSettings(
        chat_interval_seconds=_coerce_float(
            raw.get("chat_interval_seconds", PollingSettings.chat_interval_seconds),
            PollingSettings.chat_interval_seconds,
            "polling.chat_interval_seconds",
        ),
        stats_interval_seconds=_coerce_float(
            raw.get("stats_interval_seconds", PollingSettings.stats_interval_seconds),
            PollingSettings.stats_interval_seconds,
            "polling.stats_interval_seconds",
        ),
        message_limit=message_limit,
        watermark_overlap_seconds=_coerce_int(
            raw.get("watermark_overlap_seconds", PollingSettings.watermark_overlap_seconds),
            PollingSettings.watermark_overlap_seconds,
            "polling.watermark_overlap_seconds",
        ),
    )


def _load_display(raw: Optional[Dict[str, Any]]) -> DisplaySettings:
    if not isinstance(raw, dict):
        return DisplaySettings()

    tz = raw.get("timezone")
    return DisplaySettings(
        time_format=str(raw.get("time_format") or DisplaySettings.time_format),
        timezone=str(tz) if tz else None,
        viewport_lines=_coerce_int(
            raw.get("viewport_lines", DisplaySettings.viewport_lines),
            DisplaySettings.viewport_lines,
            "display.viewport_lines",
            minimum=1,
        ),
        scroll_threshold=_coerce_int(
            raw.get("scroll_threshold", DisplaySettings.scroll_threshold),
            DisplaySettings.scroll_threshold,
            "display.scroll_threshold",
        ),
    )


def _load_rooms(raw: Any) -> List[RoomSettings]:
    if raw is None:
        return _default_rooms()
    if not isinstance(raw, list):
        log.warning("rooms must be a list; using default rooms")
        return _default_rooms()

    rooms: List[RoomSettings] = []
    seen = set()
    for entry in raw:
        if not isinstance(entry, dict):
            log.warning(f"Ignoring room entry that is not an object: {entry!r}")
            continue
        room_id = entry.get("id")
        network_id = entry.get("nid")
        if not isinstance(room_id, str) or not room_id:
            log.warning(f"Ignoring room without id: {entry!r}")
            continue
        if isinstance(network_id, bool) or not isinstance(network_id, int):
            log.warning(f"Ignoring room '{room_id}' without integer nid")
            continue
        if room_id in seen:
            log.warning(f"Ignoring duplicate room '{room_id}'")
            continue
        seen.add(room_id)
        rooms.append(
            RoomSettings(
                room_id=room_id,
                network_id=network_id,
                title=str(entry.get("title") or room_id),
                active=bool(entry.get("active", False)),
            )
        )

    return rooms


def _apply_env_overrides(config: ShoutboxConfig) -> None:
    base_url = os.getenv("RIPALT_BASE_URL")
    if base_url:
        config.api.base_url = base_url.rstrip("/")

    session_name = os.getenv("RIPALT_SESSION_NAME")
    if session_name:
        config.api.session_name = session_name

    session_cookie = os.getenv("RIPALT_SESSION_COOKIE")
    if session_cookie:
        config.api.session_cookie = session_cookie

    interval = os.getenv("SHOUTBOX_POLL_INTERVAL")
    if interval:
        config.polling.chat_interval_seconds = _coerce_float(
            interval,
            config.polling.chat_interval_seconds,
            "SHOUTBOX_POLL_INTERVAL",
        )

    state_dir = os.getenv("SHOUTBOX_STATE_DIR")
    if state_dir:
        config.state_dir = state_dir


def load_shoutbox_config(
    raw: Optional[Dict[str, Any]] = None,
    *,
    path: Optional[Path] = None,
    apply_env: bool = True,
) -> ShoutboxConfig:
    raw = raw if raw is not None else _load_json(path or _CONFIG_PATH)
    if not isinstance(raw, dict):
        raw = {}

    _validate(raw)

    config = ShoutboxConfig(
        api=_load_api(raw.get("api")),
        polling=_load_polling(raw.get("polling")),
        display=_load_display(raw.get("display")),
        rooms=_load_rooms(raw.get("rooms")),
        state_dir=str(raw.get("state_dir") or ShoutboxConfig.state_dir),
    )

    if apply_env:
        _apply_env_overrides(config)

    if not config.rooms:
        raise RuntimeError("Shoutbox configuration defines no usable chat rooms")

    return config
