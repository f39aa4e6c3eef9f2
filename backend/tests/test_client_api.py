import httpx
import pytest

from telemed.client.api import TelemedAPI
from telemed.client.errors import CallRequestConflictError, CallRequestNotFoundError, TelemedUnreachable


def _api_for(app) -> TelemedAPI:
    return TelemedAPI("http://test/api/telemed", transport=httpx.ASGITransport(app=app))


@pytest.mark.asyncio
async def test_round_trip_against_app(app):
    async with _api_for(app) as api:
        created = await api.submit_request({"callerName": "John Doe", "roomName": "Room-1"})
        request_id = created["requestId"]

        pending = await api.get_pending_requests()
        assert [r["id"] for r in pending] == [request_id]

        accepted = await api.accept_request(request_id, {"name": "Dr. X"})
        assert accepted["roomName"] == "Room-1"
        assert accepted["callerInfo"]["name"] == "John Doe"

        status = await api.get_status(request_id)
        assert status["status"] == "accepted"
        assert await api.get_pending_requests() == []
        assert await api.cleanup_old_requests(60_000) == 0


@pytest.mark.asyncio
async def test_unknown_request_raises_not_found(app):
    async with _api_for(app) as api:
        with pytest.raises(CallRequestNotFoundError):
            await api.get_status("missing")
        with pytest.raises(CallRequestNotFoundError):
            await api.decline_request("missing")


@pytest.mark.asyncio
async def test_terminal_request_raises_conflict(app):
    async with _api_for(app) as api:
        request_id = (await api.submit_request({"callerName": "John Doe"}))["requestId"]
        await api.decline_request(request_id)
        with pytest.raises(CallRequestConflictError):
            await api.accept_request(request_id, {"name": "Dr. X"})


@pytest.mark.asyncio
async def test_connection_error_raises_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with TelemedAPI("http://test/api/telemed", transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(TelemedUnreachable):
            await api.get_pending_requests()


@pytest.mark.asyncio
async def test_unsuccessful_body_raises_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "error": "Failed to get pending requests", "requests": []})

    async with TelemedAPI("http://test/api/telemed", transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(TelemedUnreachable, match="Failed to get pending requests"):
            await api.get_pending_requests()


@pytest.mark.asyncio
async def test_server_error_raises_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"success": False, "error": "Failed to process video call request"})

    async with TelemedAPI("http://test/api/telemed", transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(TelemedUnreachable, match="HTTP 500"):
            await api.submit_request({"callerName": "John"})


@pytest.mark.asyncio
async def test_pending_passes_callee_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={"success": True, "requests": []})

    async with TelemedAPI("http://test/api/telemed", transport=httpx.MockTransport(handler)) as api:
        await api.get_pending_requests("DOC001")

    assert seen["url"].path == "/api/telemed/pending-requests"
    assert seen["url"].params["calleeId"] == "DOC001"


@pytest.mark.asyncio
async def test_events_parses_data_frames():
    body = (
        b": connected\n\n"
        b'data: {"type":"request.created","requestId":"a"}\n\n'
        b": keepalive\n\n"
        b"data: not-json\n\n"
        b'data: {"type":"request.accepted","requestId":"a"}\n\n'
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["accept"] == "text/event-stream"
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

    async with TelemedAPI("http://test/api/telemed", transport=httpx.MockTransport(handler)) as api:
        received = [event async for event in api.events()]

    assert [e["type"] for e in received] == ["request.created", "request.accepted"]


@pytest.mark.asyncio
async def test_events_error_status_raises_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    async with TelemedAPI("http://test/api/telemed", transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(TelemedUnreachable):
            async for _ in api.events():
                pass
