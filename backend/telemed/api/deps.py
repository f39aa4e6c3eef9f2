from fastapi import Request

from telemed.services.call_requests import CallRequestService
from telemed.services.events import EventBroadcaster


def get_call_request_service(request: Request) -> CallRequestService:
    return request.app.state.call_requests


def get_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.broadcaster
