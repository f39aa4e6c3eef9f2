class TelemedClientError(Exception):
    pass


class TelemedUnreachable(TelemedClientError):
    """The telemed API could not be reached or answered with an unusable response."""


class CallRequestNotFoundError(TelemedClientError):
    def __init__(self, request_id: str) -> None:
        super().__init__(f"Call request {request_id} not found")
        self.request_id = request_id


class CallRequestConflictError(TelemedClientError):
    pass


class VideoWidgetUnavailable(TelemedClientError):
    """Shown to the user when the video-conferencing widget cannot be loaded."""

    default_message = "Video call service is not available. Please refresh the page and try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.user_message = message or self.default_message
