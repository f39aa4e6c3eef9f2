from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)

REQUESTS_KEY = "telemed_notifications"
CURRENT_ROOM_KEY = "currentVideoRoom"


class LocalRequestMirror:
    """Key/value JSON storage that stands in for the browser's local storage.

    With ``path=None`` everything stays in memory. Nothing guards against a
    second process writing the same file.
    """

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._memory: dict[str, Any] = {}

    def _load(self) -> dict[str, Any]:
        if self.path is None:
            return self._memory
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _dump(self, data: dict[str, Any]) -> None:
        if self.path is None:
            self._memory = data
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = dict(self._load())
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = dict(self._load())
        if data.pop(key, None) is not None:
            self._dump(data)

    def requests(self) -> list[dict[str, Any]]:
        items = self.get(REQUESTS_KEY, [])
        return [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []

    def save_requests(self, items: list[dict[str, Any]]) -> None:
        self.set(REQUESTS_KEY, items)

    def append_request(self, item: dict[str, Any]) -> None:
        items = self.requests()
        items.append(item)
        self.save_requests(items)

    def update_request(self, request_id: str, **changes: Any) -> dict[str, Any] | None:
        items = self.requests()
        updated = None
        for item in items:
            if str(item.get("id")) == str(request_id):
                item.update(changes)
                updated = item
        if updated is not None:
            self.save_requests(items)
        return updated

    def find_request(self, request_id: str) -> dict[str, Any] | None:
        return next((item for item in self.requests() if str(item.get("id")) == str(request_id)), None)
