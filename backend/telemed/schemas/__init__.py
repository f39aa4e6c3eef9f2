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

__all__ = [
    "AcceptCallRequest",
    "AcceptedCall",
    "CallRequestRead",
    "CleanupRequest",
    "CleanupResult",
    "DeclinedCall",
    "ErrorResponse",
    "ParticipantInfo",
    "PendingRequests",
    "VideoCallRequestCreate",
    "VideoCallRequestCreated",
    "VideoCallStatus",
]
