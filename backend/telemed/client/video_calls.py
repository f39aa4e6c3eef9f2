from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from uuid import uuid4

from telemed.client.api import TelemedAPI
from telemed.client.errors import CallRequestConflictError, CallRequestNotFoundError, TelemedUnreachable
from telemed.client.poller import NewRequestsCallback, PendingRequestList, RequestPoller, SnapshotCallback
from telemed.client.storage import LocalRequestMirror
from telemed.core.config import settings
from telemed.models.call_request import ACCEPTED, DECLINED, PENDING, generate_room_name, now_ms, utc_iso


logger = logging.getLogger(__name__)

TIMEOUT = "timeout"
REQUEST_TYPE = "video_call_request"
WATCHED_EVENTS = {"request.created", "request.accepted", "request.declined", "requests.purged"}


@dataclass
class UserInfo:
    id: str | None = None
    name: str | None = None
    email: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass
class RequestReceipt:
    success: bool
    request_id: str | None
    room_name: str | None
    message: str
    offline: bool = False


@dataclass
class CallResponse:
    success: bool
    status: str
    room_name: str | None = None
    callee_info: dict[str, Any] | None = None
    message: str | None = None
    offline: bool = False


@dataclass
class AcceptedRequest:
    success: bool
    room_name: str | None = None
    caller_info: dict[str, Any] = field(default_factory=dict)
    offline: bool = False
    error: str | None = None


@dataclass
class ActionResult:
    success: bool
    offline: bool = False
    error: str | None = None


class VideoCallService:
    """Caller and callee sides of the video-call request flow.

    Every operation tries the API first and falls back to the local mirror when
    the API is unreachable, so none of them raise for network trouble.
    """

    def __init__(
        self,
        api: TelemedAPI,
        mirror: LocalRequestMirror,
        user: UserInfo | None = None,
        *,
        room_prefix: str | None = None,
    ) -> None:
        self.api = api
        self.mirror = mirror
        self.user = user or UserInfo()
        self.room_prefix = room_prefix or settings.room_prefix
        self._poller: RequestPoller | None = None
        self._watch_task: asyncio.Task | None = None

    # Caller side

    async def send_request(self, callee_id: str | None = None) -> RequestReceipt:
        room_name = generate_room_name(self.room_prefix)
        request_data = {
            "callerId": self.user.id,
            "callerName": self.user.name or "Student User",
            "callerEmail": self.user.email,
            "calleeId": callee_id,
            "roomName": room_name,
        }
        try:
            response = await self.api.submit_request(request_data)
        except TelemedUnreachable as exc:
            logger.warning("send_request_offline error=%s", exc)
            return self._store_offline_request(request_data)

        logger.info("send_request_ok request_id=%s room=%s", response.get("requestId"), room_name)
        return RequestReceipt(
            success=True,
            request_id=response.get("requestId"),
            room_name=response.get("roomName") or room_name,
            message=response.get("message") or "Video call request sent to doctor",
        )

    def _store_offline_request(self, request_data: dict[str, Any]) -> RequestReceipt:
        created = now_ms()
        record = {
            "id": uuid4().hex,
            "type": REQUEST_TYPE,
            **request_data,
            "status": PENDING,
            "createdAt": created,
            "timestamp": utc_iso(created),
        }
        try:
            self.mirror.append_request(record)
        except (OSError, ValueError) as exc:
            logger.error("offline_store_failed error=%s", exc)
            return RequestReceipt(False, None, None, "Failed to send video call request")
        return RequestReceipt(
            success=True,
            request_id=record["id"],
            room_name=record["roomName"],
            message="Video call request sent (offline mode)",
            offline=True,
        )

    async def wait_for_response(
        self,
        request_id: str,
        timeout: float | None = None,
        interval: float | None = None,
    ) -> CallResponse:
        timeout = settings.response_timeout_seconds if timeout is None else timeout
        interval = settings.status_check_interval_seconds if interval is None else interval
        loop = asyncio.get_running_loop()
        started = loop.time()

        while True:
            outcome = await self._check_response(request_id)
            if outcome is not None:
                return outcome
            elapsed = loop.time() - started
            if elapsed >= timeout:
                logger.info("wait_for_response_timeout request_id=%s timeout=%s", request_id, timeout)
                return CallResponse(
                    success=False,
                    status=TIMEOUT,
                    message="No response from doctor within timeout period",
                )
            await asyncio.sleep(min(interval, timeout - elapsed))

    async def _check_response(self, request_id: str) -> CallResponse | None:
        try:
            response = await self.api.get_status(request_id)
        except (TelemedUnreachable, CallRequestNotFoundError) as exc:
            logger.info("status_check_fallback request_id=%s reason=%s", request_id, exc)
            return self._check_offline_response(request_id)

        status = response.get("status")
        if status == ACCEPTED:
            return CallResponse(
                success=True,
                status=ACCEPTED,
                room_name=response.get("roomName"),
                callee_info=response.get("calleeInfo"),
            )
        if status == DECLINED:
            return CallResponse(success=False, status=DECLINED, message="Doctor declined the call")
        return None

    def _check_offline_response(self, request_id: str) -> CallResponse | None:
        try:
            record = self.mirror.find_request(request_id)
        except (OSError, ValueError) as exc:
            logger.error("offline_read_failed error=%s", exc)
            return None
        if record is None:
            return None
        if record.get("status") == ACCEPTED:
            return CallResponse(
                success=True,
                status=ACCEPTED,
                room_name=record.get("roomName"),
                callee_info=record.get("calleeInfo"),
                offline=True,
            )
        if record.get("status") == DECLINED:
            return CallResponse(success=False, status=DECLINED, message="Doctor declined the call", offline=True)
        return None

    # Callee side

    async def get_pending_requests(self, callee_id: str | None = None) -> PendingRequestList:
        try:
            requests = await self.api.get_pending_requests(callee_id)
            return PendingRequestList(success=True, requests=requests)
        except TelemedUnreachable as exc:
            logger.info("pending_requests_fallback reason=%s", exc)

        try:
            pending = [
                item
                for item in self.mirror.requests()
                if item.get("type", REQUEST_TYPE) == REQUEST_TYPE and item.get("status") == PENDING
            ]
        except (OSError, ValueError) as exc:
            logger.error("offline_read_failed error=%s", exc)
            return PendingRequestList(success=False, requests=[], error="Failed to get pending requests")
        return PendingRequestList(success=True, requests=pending, offline=True)

    async def accept_request(self, request_id: str) -> AcceptedRequest:
        callee_info = {
            "id": self.user.id or "DOC001",
            "name": self.user.name or "Dr. SmartMed",
            "email": self.user.email,
        }
        try:
            response = await self.api.accept_request(request_id, callee_info)
            return AcceptedRequest(
                success=True,
                room_name=response.get("roomName"),
                caller_info=response.get("callerInfo") or {},
            )
        except CallRequestConflictError as exc:
            return AcceptedRequest(success=False, error=str(exc))
        except (TelemedUnreachable, CallRequestNotFoundError) as exc:
            logger.info("accept_request_fallback request_id=%s reason=%s", request_id, exc)

        try:
            record, error = self._resolve_offline(
                request_id,
                ACCEPTED,
                calleeInfo=callee_info,
                acceptedAt=utc_iso(),
            )
        except (OSError, ValueError) as exc:
            logger.error("offline_update_failed error=%s", exc)
            return AcceptedRequest(success=False, error="Failed to accept video call")
        if record is None:
            return AcceptedRequest(success=False, error=error, offline=True)
        return AcceptedRequest(
            success=True,
            room_name=record.get("roomName"),
            caller_info={"id": record.get("callerId"), "name": record.get("callerName")},
            offline=True,
        )

    async def decline_request(self, request_id: str) -> ActionResult:
        try:
            await self.api.decline_request(request_id)
            return ActionResult(success=True)
        except CallRequestConflictError as exc:
            return ActionResult(success=False, error=str(exc))
        except (TelemedUnreachable, CallRequestNotFoundError) as exc:
            logger.info("decline_request_fallback request_id=%s reason=%s", request_id, exc)

        try:
            record, error = self._resolve_offline(request_id, DECLINED, declinedAt=utc_iso())
        except (OSError, ValueError) as exc:
            logger.error("offline_update_failed error=%s", exc)
            return ActionResult(success=False, error="Failed to decline video call")
        if record is None:
            return ActionResult(success=False, offline=True, error=error)
        return ActionResult(success=True, offline=True)

    def _resolve_offline(
        self, request_id: str, status: str, **changes: Any
    ) -> tuple[dict[str, Any] | None, str | None]:
        """Move a mirrored request out of pending; terminal records are left alone."""
        record = self.mirror.find_request(request_id)
        if record is None:
            return None, "Request not found"
        current = record.get("status", PENDING)
        if current != PENDING:
            logger.info("offline_transition_rejected request_id=%s status=%s", request_id, current)
            return None, f"Request already {current}"
        return self.mirror.update_request(request_id, status=status, **changes), None

    async def cleanup_old_requests(self, max_age_ms: int | None = None) -> int:
        max_age = settings.cleanup_max_age_ms if max_age_ms is None else max_age_ms
        try:
            return await self.api.cleanup_old_requests(max_age)
        except TelemedUnreachable as exc:
            logger.info("cleanup_fallback reason=%s", exc)

        cutoff = now_ms() - max_age
        try:
            items = self.mirror.requests()
            recent = [item for item in items if _created_ms(item) >= cutoff]
            self.mirror.save_requests(recent)
        except (OSError, ValueError) as exc:
            logger.error("offline_cleanup_failed error=%s", exc)
            return 0
        return len(items) - len(recent)

    # Discovery

    def start_polling(
        self,
        callback: SnapshotCallback,
        interval: float | None = None,
        on_new: NewRequestsCallback | None = None,
        callee_id: str | None = None,
    ) -> Callable[[], None]:
        self.stop_polling()
        self._poller = self._make_poller(callback, interval, on_new, callee_id)
        self._poller.start()
        return self.stop_polling

    def watch_requests(
        self,
        callback: SnapshotCallback,
        interval: float | None = None,
        on_new: NewRequestsCallback | None = None,
        callee_id: str | None = None,
    ) -> Callable[[], None]:
        """Refresh on server push; poll instead while the event stream is unavailable."""
        self.stop_polling()
        poller = self._make_poller(callback, interval, on_new, callee_id)
        self._watch_task = asyncio.create_task(self._watch(poller))
        return self.stop_polling

    async def _watch(self, poller: RequestPoller) -> None:
        await poller.poll_once()
        try:
            async for event in self.api.events():
                if event.get("type") in WATCHED_EVENTS:
                    await poller.poll_once()
            logger.warning("event_stream_closed falling back to polling")
        except TelemedUnreachable as exc:
            logger.warning("event_stream_unavailable falling back to polling error=%s", exc)
        await poller.run()

    def stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.stop()
            self._poller = None
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None

    def _make_poller(
        self,
        callback: SnapshotCallback,
        interval: float | None,
        on_new: NewRequestsCallback | None,
        callee_id: str | None,
    ) -> RequestPoller:
        async def fetch() -> PendingRequestList:
            return await self.get_pending_requests(callee_id)

        return RequestPoller(
            fetch,
            callback,
            interval=settings.poll_interval_seconds if interval is None else interval,
            on_new=on_new,
        )


def _created_ms(item: dict[str, Any]) -> int:
    created = item.get("createdAt")
    if isinstance(created, (int, float)):
        return int(created)
    timestamp = item.get("timestamp")
    if isinstance(timestamp, str):
        try:
            return int(datetime.fromisoformat(timestamp.replace("Z", "+00:00")).timestamp() * 1000)
        except ValueError:
            return 0
    return 0
