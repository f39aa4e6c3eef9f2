from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import quote

import httpx

from telemed.client.errors import VideoWidgetUnavailable
from telemed.client.storage import CURRENT_ROOM_KEY, LocalRequestMirror
from telemed.core.config import settings


logger = logging.getLogger(__name__)

TOOLBAR_BUTTONS = [
    "microphone",
    "camera",
    "hangup",
    "chat",
    "raisehand",
    "participants-pane",
    "tileview",
]


@dataclass
class CallSession:
    room_name: str
    domain: str
    join_url: str
    options: dict[str, Any] = field(default_factory=dict)


class JitsiWidget:
    def __init__(
        self,
        domain: str | None = None,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.domain = domain or settings.jitsi_domain
        self._timeout = timeout
        self._transport = transport
        self._loaded = False

    @property
    def script_url(self) -> str:
        return f"https://{self.domain}/external_api.js"

    def join_url(self, room_name: str) -> str:
        return f"https://{self.domain}/{quote(room_name)}"

    async def ensure_loaded(self) -> None:
        if self._loaded:
            return
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self.script_url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("video_widget_unavailable domain=%s error=%s", self.domain, exc)
            raise VideoWidgetUnavailable() from exc
        self._loaded = True

    def build_options(self, room_name: str, display_name: str, email: str | None = None) -> dict[str, Any]:
        return {
            "roomName": room_name,
            "width": "100%",
            "height": 700,
            "userInfo": {"displayName": display_name, "email": email},
            "configOverwrite": {
                "prejoinPageEnabled": False,
                "startWithAudioMuted": False,
                "startWithVideoMuted": False,
            },
            "interfaceConfigOverwrite": {"TOOLBAR_BUTTONS": list(TOOLBAR_BUTTONS)},
        }


class CallSessionLauncher:
    """Opens the shared room once a request has been accepted."""

    def __init__(
        self,
        mirror: LocalRequestMirror,
        widget: JitsiWidget | None = None,
        navigator: Callable[[CallSession], Any] | None = None,
    ) -> None:
        self.mirror = mirror
        self.widget = widget or JitsiWidget()
        self.navigator = navigator

    async def launch(self, room_name: str, display_name: str, email: str | None = None) -> CallSession:
        if not room_name:
            raise ValueError("room_name is required")
        await self.widget.ensure_loaded()

        self.mirror.set(CURRENT_ROOM_KEY, room_name)
        session = CallSession(
            room_name=room_name,
            domain=self.widget.domain,
            join_url=self.widget.join_url(room_name),
            options=self.widget.build_options(room_name, display_name, email),
        )
        logger.info("call_session_launch room=%s domain=%s", room_name, session.domain)
        if self.navigator is not None:
            result = self.navigator(session)
            if inspect.isawaitable(result):
                await result
        return session

    def current_room(self) -> str | None:
        return self.mirror.get(CURRENT_ROOM_KEY)

    def end_session(self) -> None:
        self.mirror.remove(CURRENT_ROOM_KEY)
