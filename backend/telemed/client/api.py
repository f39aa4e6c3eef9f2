from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from telemed.client.errors import CallRequestConflictError, CallRequestNotFoundError, TelemedUnreachable
from telemed.core.config import settings


logger = logging.getLogger(__name__)


class TelemedAPI:
    """Thin async client over the /api/telemed endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json", **(headers or {})},
        )

    async def __aenter__(self) -> "TelemedAPI":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=payload, params=params)
        except httpx.HTTPError as exc:
            logger.warning("telemed_api_unreachable path=%s error=%s", path, exc)
            raise TelemedUnreachable(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404 and request_id is not None:
            raise CallRequestNotFoundError(request_id)
        if response.status_code == 409:
            raise CallRequestConflictError(_error_text(response))
        if response.is_error:
            logger.warning("telemed_api_error path=%s status=%s body=%s", path, response.status_code, response.text[:300])
            raise TelemedUnreachable(f"HTTP {response.status_code}: {_error_text(response)}")

        try:
            data = response.json()
        except ValueError as exc:
            raise TelemedUnreachable(f"{method} {path} returned invalid JSON") from exc
        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise TelemedUnreachable(error or f"{method} {path} was not successful")
        return data

    async def submit_request(self, request_data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", "/video-call-request", payload=request_data)

    async def get_status(self, request_id: str) -> dict[str, Any]:
        return await self._call("GET", f"/video-call-status/{request_id}", request_id=request_id)

    async def get_pending_requests(self, callee_id: str | None = None) -> list[dict[str, Any]]:
        params = {"calleeId": callee_id} if callee_id else None
        data = await self._call("GET", "/pending-requests", params=params)
        return list(data.get("requests") or [])

    async def accept_request(self, request_id: str, callee_info: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._call(
            "POST",
            f"/accept-request/{request_id}",
            payload={"calleeInfo": callee_info},
            request_id=request_id,
        )

    async def decline_request(self, request_id: str) -> dict[str, Any]:
        return await self._call("POST", f"/decline-request/{request_id}", request_id=request_id)

    async def cleanup_old_requests(self, max_age_ms: int | None = None) -> int:
        payload = {"maxAge": max_age_ms} if max_age_ms is not None else {}
        data = await self._call("POST", "/cleanup-old-requests", payload=payload)
        return int(data.get("removedCount", 0))

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield lifecycle events from the server-sent event stream."""
        try:
            async with self._client.stream(
                "GET",
                "/events",
                headers={"Accept": "text/event-stream"},
                timeout=httpx.Timeout(self._timeout, read=None),
            ) as response:
                if response.is_error:
                    raise TelemedUnreachable(f"event stream returned HTTP {response.status_code}")
                async for raw_line in response.aiter_lines():
                    line = raw_line.strip()
                    if not line or not line.startswith("data:"):
                        continue
                    try:
                        event = json.loads(line[len("data:"):].strip())
                    except json.JSONDecodeError:
                        logger.warning("telemed_event_unparseable line=%s", line[:200])
                        continue
                    if isinstance(event, dict):
                        yield event
        except httpx.HTTPError as exc:
            raise TelemedUnreachable(f"event stream failed: {exc}") from exc


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(data, dict):
        return str(data.get("error") or data.get("detail") or data)
    return str(data)
