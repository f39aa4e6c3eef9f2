from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ParticipantInfo(CamelModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None

    class Config:
        extra = "allow"


class VideoCallRequestCreate(CamelModel):
    caller_name: str = Field(min_length=1, max_length=128)
    caller_id: str | None = Field(default=None, max_length=64)
    caller_email: str | None = Field(default=None, max_length=256)
    room_name: str | None = Field(default=None, min_length=1, max_length=128)
    callee_id: str | None = Field(default=None, max_length=64)


class VideoCallRequestCreated(CamelModel):
    success: bool = True
    request_id: str
    room_name: str
    message: str = "Video call request sent to doctor"


class CallRequestRead(CamelModel):
    id: str
    caller_id: str | None
    caller_name: str
    caller_email: str | None
    callee_id: str | None
    room_name: str
    status: str
    created_at: int
    timestamp: str
    accepted_at: str | None = None
    declined_at: str | None = None
    callee_info: ParticipantInfo | None = None


class VideoCallStatus(CamelModel):
    success: bool = True
    status: str
    room_name: str
    callee_info: ParticipantInfo | None = None


class PendingRequests(CamelModel):
    success: bool = True
    requests: list[CallRequestRead] = []
    error: str | None = None


class AcceptCallRequest(CamelModel):
    callee_info: ParticipantInfo | None = None


class AcceptedCall(CamelModel):
    success: bool = True
    room_name: str
    caller_info: ParticipantInfo


class DeclinedCall(CamelModel):
    success: bool = True


class CleanupRequest(CamelModel):
    max_age: int | None = Field(default=None, ge=0)


class CleanupResult(CamelModel):
    success: bool = True
    removed_count: int


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
