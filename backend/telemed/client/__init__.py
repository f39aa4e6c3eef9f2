from telemed.client.api import TelemedAPI
from telemed.client.errors import (
    CallRequestConflictError,
    CallRequestNotFoundError,
    TelemedUnreachable,
    VideoWidgetUnavailable,
)
from telemed.client.launcher import CallSession, CallSessionLauncher, JitsiWidget
from telemed.client.poller import PendingRequestList, PollSnapshot, RequestPoller
from telemed.client.storage import LocalRequestMirror
from telemed.client.video_calls import UserInfo, VideoCallService

__all__ = [
    "CallRequestConflictError",
    "CallRequestNotFoundError",
    "CallSession",
    "CallSessionLauncher",
    "JitsiWidget",
    "LocalRequestMirror",
    "PendingRequestList",
    "PollSnapshot",
    "RequestPoller",
    "TelemedAPI",
    "TelemedUnreachable",
    "UserInfo",
    "VideoCallService",
    "VideoWidgetUnavailable",
]
