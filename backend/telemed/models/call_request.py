from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from telemed.db.base import Base


PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"
TERMINAL_STATUSES = frozenset({ACCEPTED, DECLINED})

_ROOM_ALPHABET = string.ascii_lowercase + string.digits
_random = random.SystemRandom()


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_iso(epoch_ms: int | None = None) -> str:
    if epoch_ms is None:
        moment = datetime.now(timezone.utc)
    else:
        moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_room_name(prefix: str = "SmartMed", epoch_ms: int | None = None) -> str:
    stamp = now_ms() if epoch_ms is None else epoch_ms
    suffix = "".join(_random.choice(_ROOM_ALPHABET) for _ in range(9))
    return f"{prefix}-{stamp}-{suffix}"


@dataclass
class CallRequest:
    id: str
    caller_name: str
    room_name: str
    created_at: int
    timestamp: str
    caller_id: str | None = None
    caller_email: str | None = None
    callee_id: str | None = None
    status: str = PENDING
    accepted_at: str | None = None
    declined_at: str | None = None
    callee_info: dict[str, Any] | None = field(default=None)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def caller_info(self) -> dict[str, str | None]:
        return {"id": self.caller_id, "name": self.caller_name, "email": self.caller_email}


class CallRequestRecord(Base):
    __tablename__ = "video_call_requests"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    caller_id: Mapped[str | None] = mapped_column(String(64), index=True)
    caller_name: Mapped[str] = mapped_column(String(128))
    caller_email: Mapped[str | None] = mapped_column(String(256))
    callee_id: Mapped[str | None] = mapped_column(String(64), index=True)
    room_name: Mapped[str] = mapped_column(String(128), index=True)
    status: Mapped[str] = mapped_column(String(16), default=PENDING, index=True)
    created_at: Mapped[int] = mapped_column(BigInteger, index=True)
    timestamp: Mapped[str] = mapped_column(String(32))
    accepted_at: Mapped[str | None] = mapped_column(String(32))
    declined_at: Mapped[str | None] = mapped_column(String(32))
    callee_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    def to_domain(self) -> CallRequest:
        return CallRequest(
            id=self.id,
            caller_id=self.caller_id,
            caller_name=self.caller_name,
            caller_email=self.caller_email,
            callee_id=self.callee_id,
            room_name=self.room_name,
            status=self.status,
            created_at=self.created_at,
            timestamp=self.timestamp,
            accepted_at=self.accepted_at,
            declined_at=self.declined_at,
            callee_info=self.callee_info,
        )

    @classmethod
    def from_domain(cls, request: CallRequest) -> "CallRequestRecord":
        return cls(
            id=request.id,
            caller_id=request.caller_id,
            caller_name=request.caller_name,
            caller_email=request.caller_email,
            callee_id=request.callee_id,
            room_name=request.room_name,
            status=request.status,
            created_at=request.created_at,
            timestamp=request.timestamp,
            accepted_at=request.accepted_at,
            declined_at=request.declined_at,
            callee_info=request.callee_info,
        )
