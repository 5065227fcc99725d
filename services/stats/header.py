from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from services.api.client import ApiError, RipaltApiClient
from shared.logging.logger import get_logger
from shared.utils.data_size import data_size

log = get_logger("stats.header")


@dataclass(frozen=True)
class UserStats:
    """Transfer statistics of the logged-in user (/api/v1/user/stats)."""

    name: str
    downloads: int
    downloaded: int
    uploads: int
    uploaded: int
    ratio: float

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "UserStats":
        try:
            return cls(
                name=str(payload["name"]),
                downloads=int(payload.get("downloads") or 0),
                downloaded=int(payload.get("downloaded") or 0),
                uploads=int(payload.get("uploads") or 0),
                uploaded=int(payload.get("uploaded") or 0),
                ratio=float(payload.get("ratio") or 0.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"invalid user stats payload: {e}") from e


class StatsHeader:
    """Navbar statistics, keyed by the element ids of the page header."""

    FIELDS = (
        "navbarDropdownUserMenuLink",
        "navbar-downloads",
        "navbar-downloaded",
        "navbar-uploads",
        "navbar-uploaded",
        "navbar-ratio",
    )

    def __init__(self) -> None:
        self.values: Dict[str, str] = {key: "" for key in self.FIELDS}
        self.stats: Optional[UserStats] = None

    def apply(self, stats: UserStats) -> None:
        self.stats = stats
        self.values.update(
            {
                "navbarDropdownUserMenuLink": stats.name,
                "navbar-downloads": str(stats.downloads),
                "navbar-downloaded": data_size(stats.downloaded),
                "navbar-uploads": str(stats.uploads),
                "navbar-uploaded": data_size(stats.uploaded),
                "navbar-ratio": f"{stats.ratio:.3f}",
            }
        )

    def to_dict(self) -> Dict[str, str]:
        return dict(self.values)


class StatsUpdater:
    def __init__(self, *, api: RipaltApiClient, header: Optional[StatsHeader] = None):
        self.api = api
        self.header = header or StatsHeader()

    async def update(self) -> Optional[UserStats]:
        try:
            stats = UserStats.from_payload(await self.api.fetch_user_stats())
        except (ApiError, ValueError) as e:
            log.warning(f"User stats update failed: {e}")
            return None

        self.header.apply(stats)
        log.debug(f"User stats updated for {stats.name}")
        return stats
