import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, StreamingResponse

from telemed.api.deps import get_broadcaster, get_call_request_service
from telemed.core.config import settings
from telemed.core.errors import CallRequestNotFound, InvalidTransitionError
from telemed.models.call_request import CallRequest
from telemed.schemas.video_call import (
    AcceptCallRequest,
    AcceptedCall,
    CallRequestRead,
    CleanupRequest,
    CleanupResult,
    DeclinedCall,
    ErrorResponse,
    ParticipantInfo,
    PendingRequests,
    VideoCallRequestCreate,
    VideoCallRequestCreated,
    VideoCallStatus,
)
from telemed.services.call_requests import CallRequestService
from telemed.services.events import EventBroadcaster, stream_events

router = APIRouter()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _not_found() -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, "Request not found")


def _conflict(exc: InvalidTransitionError) -> JSONResponse:
    return _error(status.HTTP_409_CONFLICT, f"Request already {exc.current}")


def _read(request: CallRequest) -> CallRequestRead:
    return CallRequestRead.model_validate(asdict(request))


@router.post("/video-call-request", response_model=VideoCallRequestCreated, responses=ERROR_RESPONSES)
def submit_request(
    payload: VideoCallRequestCreate,
    service: CallRequestService = Depends(get_call_request_service),
):
    try:
        request = service.submit(**payload.model_dump())
    except Exception:
        logger.exception("video_call_request_failed caller_id=%s", payload.caller_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process video call request")
    return VideoCallRequestCreated(request_id=request.id, room_name=request.room_name)


@router.get("/video-call-status/{request_id}", response_model=VideoCallStatus, responses=ERROR_RESPONSES)
def get_request_status(
    request_id: str,
    service: CallRequestService = Depends(get_call_request_service),
):
    try:
        request = service.get(request_id)
    except CallRequestNotFound:
        return _not_found()
    except Exception:
        logger.exception("video_call_status_failed id=%s", request_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to check request status")
    return VideoCallStatus(
        status=request.status,
        room_name=request.room_name,
        callee_info=request.callee_info,
    )


@router.get("/pending-requests", response_model=PendingRequests)
def list_pending_requests(
    callee_id: str | None = Query(None, alias="calleeId"),
    service: CallRequestService = Depends(get_call_request_service),
) -> PendingRequests:
    try:
        pending = service.list_pending(callee_id=callee_id)
    except Exception:
        logger.exception("pending_requests_failed callee_id=%s", callee_id)
        return PendingRequests(success=False, requests=[], error="Failed to get pending requests")
    return PendingRequests(requests=[_read(r) for r in pending])


@router.post("/accept-request/{request_id}", response_model=AcceptedCall, responses=ERROR_RESPONSES)
def accept_request(
    request_id: str,
    payload: AcceptCallRequest | None = None,
    service: CallRequestService = Depends(get_call_request_service),
):
    callee_info = None
    if payload is not None and payload.callee_info is not None:
        callee_info = payload.callee_info.model_dump(exclude_none=True)
    try:
        request = service.accept(request_id, callee_info=callee_info)
    except CallRequestNotFound:
        return _not_found()
    except InvalidTransitionError as exc:
        return _conflict(exc)
    except Exception:
        logger.exception("accept_request_failed id=%s", request_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to accept video call")
    return AcceptedCall(room_name=request.room_name, caller_info=ParticipantInfo(**request.caller_info()))


@router.post("/decline-request/{request_id}", response_model=DeclinedCall, responses=ERROR_RESPONSES)
def decline_request(
    request_id: str,
    service: CallRequestService = Depends(get_call_request_service),
):
    try:
        service.decline(request_id)
    except CallRequestNotFound:
        return _not_found()
    except InvalidTransitionError as exc:
        return _conflict(exc)
    except Exception:
        logger.exception("decline_request_failed id=%s", request_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to decline video call")
    return DeclinedCall()


@router.post("/cleanup-old-requests", response_model=CleanupResult, responses=ERROR_RESPONSES)
def cleanup_old_requests(
    payload: CleanupRequest | None = None,
    service: CallRequestService = Depends(get_call_request_service),
):
    max_age = payload.max_age if payload is not None else None
    try:
        removed = service.cleanup(max_age_ms=max_age)
    except Exception:
        logger.exception("cleanup_failed max_age=%s", max_age)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to cleanup old requests")
    return CleanupResult(removed_count=removed)


@router.get("/events")
async def request_events(broadcaster: EventBroadcaster = Depends(get_broadcaster)) -> StreamingResponse:
    return StreamingResponse(
        stream_events(broadcaster, settings.events_keepalive_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
