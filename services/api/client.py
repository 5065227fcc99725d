from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from shared.logging.logger import get_logger

log = get_logger("api.client")


class ApiError(RuntimeError):
    """Transport failure, non-success status or undecodable body."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RipaltApiClient:
    """
    Credentialed JSON client for the tracker's /api/v1 endpoints.

    Responsibilities:
    - Carry the session cookie on every request
    - Surface only parsed JSON, or raise ApiError
    - Know the chat and user-stats endpoint shapes
    """

    MESSAGES_PATH = "/api/v1/chat/messages"
    PUBLISH_PATH = "/api/v1/chat/publish"
    STATS_PATH = "/api/v1/user/stats"

    def __init__(
        self,
        *,
        base_url: str,
        session_name: str = "ripalt",
        session_cookie: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise RuntimeError("Tracker base_url is required")

        self.base_url = base_url.rstrip("/")

        cookies = {session_name: session_cookie} if session_cookie else None
        if not session_cookie:
            log.warning("No session cookie configured; API calls will be anonymous")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            cookies=cookies,
            headers={
                "Accept": "application/json",
                "User-Agent": "ripalt-shoutbox",
            },
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------ #
    # Generic JSON helpers
    # ------------------------------------------------------------------ #

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post_json(self, path: str, payload: Any) -> Any:
        return await self._request("POST", path, json=payload)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.error(f"{method} {path} failed: {e}")
            raise ApiError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            log.error(f"{method} {path} returned HTTP {response.status_code}")
            raise ApiError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content.strip():
            return None

        try:
            return response.json()
        except ValueError as e:
            log.error(f"{method} {path} returned invalid JSON: {e}")
            raise ApiError(
                f"{method} {path} returned invalid JSON",
                status_code=response.status_code,
            ) from e

    # ------------------------------------------------------------------ #
    # Endpoints
    # ------------------------------------------------------------------ #

    async def fetch_messages(
        self,
        network_id: int,
        *,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Fetch chat messages, newest first.

        With `since` only messages created after that unix timestamp are
        returned. `None` means the server sent no body.
        """
        params: Dict[str, Any] = {"chat": network_id}
        if since is not None:
            params["since"] = since
        if limit is not None:
            params["limit"] = limit

        data = await self.get_json(self.MESSAGES_PATH, params=params)
        if data is None:
            return None
        if not isinstance(data, list):
            raise ApiError(
                f"{self.MESSAGES_PATH} returned {type(data).__name__}, expected a list"
            )
        return data

    async def publish_message(self, network_id: int, text: str) -> Dict[str, Any]:
        data = await self.post_json(
            self.PUBLISH_PATH,
            {"chat": network_id, "message": text},
        )
        if not isinstance(data, dict):
            raise ApiError(f"{self.PUBLISH_PATH} did not echo the published message")
        return data

    async def fetch_user_stats(self) -> Dict[str, Any]:
        data = await self.get_json(self.STATS_PATH)
        if not isinstance(data, dict):
            raise ApiError(f"{self.STATS_PATH} returned no stats object")
        return data

    async def close(self) -> None:
        await self._client.aclose()
