from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable


logger = logging.getLogger(__name__)


@dataclass
class PendingRequestList:
    success: bool
    requests: list[dict[str, Any]] = field(default_factory=list)
    offline: bool = False
    error: str | None = None


@dataclass
class PollSnapshot:
    requests: list[dict[str, Any]]
    added: list[dict[str, Any]]
    removed_ids: set[str]
    offline: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed_ids)


Fetcher = Callable[[], Awaitable[PendingRequestList]]
SnapshotCallback = Callable[[PollSnapshot], Any]
NewRequestsCallback = Callable[[list[dict[str, Any]]], Any]


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class RequestPoller:
    """Repeatedly fetches the pending list and reports what changed by request id.

    ``callback`` receives every successful snapshot; ``on_new`` only fires when
    ids appear that were not in the previous snapshot, so a request replaced by
    another one is still noticed even though the count stays the same.
    """

    def __init__(
        self,
        fetch: Fetcher,
        callback: SnapshotCallback,
        interval: float = 3.0,
        on_new: NewRequestsCallback | None = None,
    ) -> None:
        self._fetch = fetch
        self._callback = callback
        self._on_new = on_new
        self.interval = interval
        self._seen: set[str] = set()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def seen_ids(self) -> set[str]:
        return set(self._seen)

    async def poll_once(self) -> PollSnapshot | None:
        result = await self._fetch()
        if not result.success:
            logger.warning("poll_skipped error=%s", result.error)
            return None

        current = {str(item.get("id")) for item in result.requests}
        added = [item for item in result.requests if str(item.get("id")) not in self._seen]
        removed = self._seen - current
        self._seen = current

        snapshot = PollSnapshot(requests=result.requests, added=added, removed_ids=removed, offline=result.offline)
        try:
            await _invoke(self._callback, snapshot)
            if added and self._on_new is not None:
                await _invoke(self._on_new, added)
        except Exception:
            logger.exception("poll_callback_failed")
        return snapshot

    async def run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("poll_tick_failed")
            await asyncio.sleep(self.interval)

    def start(self) -> Callable[[], None]:
        self.stop()
        self._task = asyncio.create_task(self.run())
        return self.stop

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
