from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from telemed.core.config import settings
from telemed.core.errors import CallRequestNotFound
from telemed.models.call_request import (
    ACCEPTED,
    DECLINED,
    CallRequest,
    generate_room_name,
    now_ms,
    utc_iso,
)
from telemed.services import events
from telemed.services.events import EventBroadcaster
from telemed.services.request_store import CallRequestRepository


logger = logging.getLogger(__name__)


class CallRequestService:
    def __init__(
        self,
        repository: CallRequestRepository,
        broadcaster: EventBroadcaster | None = None,
        *,
        room_prefix: str | None = None,
        default_max_age_ms: int | None = None,
        filter_pending_by_callee: bool | None = None,
    ) -> None:
        self.repository = repository
        self.broadcaster = broadcaster
        self.room_prefix = room_prefix or settings.room_prefix
        self.default_max_age_ms = (
            settings.cleanup_max_age_ms if default_max_age_ms is None else default_max_age_ms
        )
        self.filter_pending_by_callee = (
            settings.filter_pending_by_callee if filter_pending_by_callee is None else filter_pending_by_callee
        )

    def submit(
        self,
        *,
        caller_name: str,
        caller_id: str | None = None,
        caller_email: str | None = None,
        room_name: str | None = None,
        callee_id: str | None = None,
    ) -> CallRequest:
        created = now_ms()
        request = CallRequest(
            id=uuid4().hex,
            caller_id=caller_id,
            caller_name=caller_name,
            caller_email=caller_email,
            callee_id=callee_id,
            room_name=room_name or generate_room_name(self.room_prefix, created),
            created_at=created,
            timestamp=utc_iso(created),
        )
        stored = self.repository.insert(request)
        logger.info(
            "video_call_request_created id=%s caller_id=%s callee_id=%s room=%s",
            stored.id,
            stored.caller_id,
            stored.callee_id or "any",
            stored.room_name,
        )
        self._publish(events.REQUEST_CREATED, stored)
        return stored

    def get(self, request_id: str) -> CallRequest:
        request = self.repository.find_by_id(request_id)
        if request is None:
            raise CallRequestNotFound(request_id)
        return request

    def list_pending(self, callee_id: str | None = None) -> list[CallRequest]:
        pending = self.repository.find_all_pending()
        if callee_id and self.filter_pending_by_callee:
            return [r for r in pending if r.callee_id in (None, callee_id)]
        if callee_id:
            logger.debug("pending_requests callee_filter_ignored callee_id=%s", callee_id)
        return pending

    def accept(self, request_id: str, callee_info: dict[str, Any] | None = None) -> CallRequest:
        request = self.repository.update_status(request_id, ACCEPTED, callee_info=callee_info or {})
        if request is None:
            raise CallRequestNotFound(request_id)
        logger.info("video_call_request_accepted id=%s room=%s", request.id, request.room_name)
        self._publish(events.REQUEST_ACCEPTED, request)
        return request

    def decline(self, request_id: str) -> CallRequest:
        request = self.repository.update_status(request_id, DECLINED)
        if request is None:
            raise CallRequestNotFound(request_id)
        logger.info("video_call_request_declined id=%s", request.id)
        self._publish(events.REQUEST_DECLINED, request)
        return request

    def cleanup(self, max_age_ms: int | None = None, now: int | None = None) -> int:
        max_age = self.default_max_age_ms if max_age_ms is None else max_age_ms
        removed = self.repository.purge_older_than(max_age, now=now)
        logger.info("video_call_requests_cleanup removed=%s max_age_ms=%s", removed, max_age)
        if removed and self.broadcaster is not None:
            self.broadcaster.publish(events.REQUESTS_PURGED, removedCount=removed)
        return removed

    def _publish(self, event_type: str, request: CallRequest) -> None:
        if self.broadcaster is None:
            return
        self.broadcaster.publish(
            event_type,
            requestId=request.id,
            status=request.status,
            roomName=request.room_name,
            calleeId=request.callee_id,
        )
