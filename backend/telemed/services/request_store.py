from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session

from telemed.core.errors import InvalidTransitionError
from telemed.models.call_request import (
    ACCEPTED,
    DECLINED,
    PENDING,
    CallRequest,
    CallRequestRecord,
    now_ms,
    utc_iso,
)


logger = logging.getLogger(__name__)

_STAMP_FIELD = {ACCEPTED: "accepted_at", DECLINED: "declined_at"}


class CallRequestRepository(Protocol):
    def insert(self, request: CallRequest) -> CallRequest:
        ...

    def find_by_id(self, request_id: str) -> CallRequest | None:
        ...

    def find_all_pending(self) -> list[CallRequest]:
        ...

    def update_status(self, request_id: str, status: str, **extra: Any) -> CallRequest | None:
        ...

    def purge_older_than(self, max_age_ms: int, now: int | None = None) -> int:
        ...


def _check_transition(current: CallRequest, status: str) -> None:
    if status not in _STAMP_FIELD:
        raise ValueError(f"Unsupported status: {status}")
    if current.status != PENDING:
        raise InvalidTransitionError(current.id, current.status, status)


def _transition_fields(status: str, extra: dict[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {"status": status, _STAMP_FIELD[status]: utc_iso()}
    fields.update(extra)
    return fields


class InMemoryCallRequestRepository:
    """Process-local store; contents vanish on restart and are not shared across workers."""

    def __init__(self) -> None:
        self._items: list[CallRequest] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def insert(self, request: CallRequest) -> CallRequest:
        with self._lock:
            self._items.append(request)
        return replace(request)

    def find_by_id(self, request_id: str) -> CallRequest | None:
        with self._lock:
            item = self._locate(request_id)
            return replace(item) if item else None

    def find_all_pending(self) -> list[CallRequest]:
        with self._lock:
            return [replace(item) for item in self._items if item.status == PENDING]

    def update_status(self, request_id: str, status: str, **extra: Any) -> CallRequest | None:
        with self._lock:
            item = self._locate(request_id)
            if item is None:
                return None
            _check_transition(item, status)
            for key, value in _transition_fields(status, extra).items():
                setattr(item, key, value)
            return replace(item)

    def purge_older_than(self, max_age_ms: int, now: int | None = None) -> int:
        cutoff = (now_ms() if now is None else now) - max_age_ms
        with self._lock:
            before = len(self._items)
            self._items = [item for item in self._items if item.created_at >= cutoff]
            return before - len(self._items)

    def _locate(self, request_id: str) -> CallRequest | None:
        for item in self._items:
            if item.id == request_id:
                return item
        return None


def _find_record(db: Session, request_id: str, for_update: bool = False) -> CallRequestRecord | None:
    query = db.query(CallRequestRecord).filter(CallRequestRecord.id == request_id)
    if for_update:
        query = query.with_for_update()
    return query.one_or_none()


class SqlCallRequestRepository:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def insert(self, request: CallRequest) -> CallRequest:
        with self._session_factory() as db:
            record = CallRequestRecord.from_domain(request)
            db.add(record)
            db.commit()
            return record.to_domain()

    def find_by_id(self, request_id: str) -> CallRequest | None:
        with self._session_factory() as db:
            record = _find_record(db, request_id)
            return record.to_domain() if record else None

    def find_all_pending(self) -> list[CallRequest]:
        with self._session_factory() as db:
            records = (
                db.query(CallRequestRecord)
                .filter(CallRequestRecord.status == PENDING)
                .order_by(CallRequestRecord.seq.asc())
                .all()
            )
            return [record.to_domain() for record in records]

    def update_status(self, request_id: str, status: str, **extra: Any) -> CallRequest | None:
        with self._session_factory() as db:
            record = _find_record(db, request_id, for_update=True)
            if record is None:
                return None
            _check_transition(record.to_domain(), status)
            for key, value in _transition_fields(status, extra).items():
                setattr(record, key, value)
            db.commit()
            return record.to_domain()

    def purge_older_than(self, max_age_ms: int, now: int | None = None) -> int:
        cutoff = (now_ms() if now is None else now) - max_age_ms
        with self._session_factory() as db:
            count = (
                db.query(CallRequestRecord)
                .filter(CallRequestRecord.created_at < cutoff)
                .delete(synchronize_session=False)
            )
            db.commit()
            return int(count)


def build_repository(kind: str, session_factory: Callable[[], Session] | None = None) -> CallRequestRepository:
    kind = (kind or "memory").strip().lower()
    if kind == "memory":
        return InMemoryCallRequestRepository()
    if kind == "database":
        if session_factory is None:
            raise ValueError("database store requires a session factory")
        return SqlCallRequestRepository(session_factory)
    raise ValueError(f"Unknown call request store: {kind}")
