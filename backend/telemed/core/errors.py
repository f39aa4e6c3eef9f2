class TelemedError(Exception):
    """Base class for video-call request failures raised by the service layer."""


class CallRequestNotFound(TelemedError):
    def __init__(self, request_id: str) -> None:
        super().__init__(f"Call request {request_id} not found")
        self.request_id = request_id


class InvalidTransitionError(TelemedError):
    """Raised when a terminal request (accepted/declined) is asked to change again."""

    def __init__(self, request_id: str, current: str, requested: str) -> None:
        super().__init__(f"Call request {request_id} is already {current}, cannot mark {requested}")
        self.request_id = request_id
        self.current = current
        self.requested = requested
