from telemed.models.call_request import CallRequest, CallRequestRecord

__all__ = ["CallRequest", "CallRequestRecord"]
