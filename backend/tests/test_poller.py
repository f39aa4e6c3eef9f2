import asyncio

import pytest

from telemed.client.poller import PendingRequestList, RequestPoller


def _fetcher(*batches):
    queue = list(batches)

    async def fetch():
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    return fetch


def _ok(*ids, offline=False):
    return PendingRequestList(success=True, requests=[{"id": i} for i in ids], offline=offline)


@pytest.mark.asyncio
async def test_first_poll_reports_everything_as_added():
    snapshots = []
    poller = RequestPoller(_fetcher(_ok("a", "b")), snapshots.append)

    snapshot = await poller.poll_once()

    assert [r["id"] for r in snapshot.added] == ["a", "b"]
    assert snapshot.removed_ids == set()
    assert snapshots == [snapshot]


@pytest.mark.asyncio
async def test_same_count_replacement_is_detected():
    new_batches = []
    poller = RequestPoller(_fetcher(_ok("a"), _ok("b")), lambda s: None, on_new=new_batches.append)

    await poller.poll_once()
    snapshot = await poller.poll_once()

    assert [r["id"] for r in snapshot.added] == ["b"]
    assert snapshot.removed_ids == {"a"}
    assert snapshot.changed
    assert [[r["id"] for r in batch] for batch in new_batches] == [["a"], ["b"]]


@pytest.mark.asyncio
async def test_unchanged_poll_does_not_fire_on_new():
    new_batches = []
    poller = RequestPoller(_fetcher(_ok("a"), _ok("a")), lambda s: None, on_new=new_batches.append)

    await poller.poll_once()
    snapshot = await poller.poll_once()

    assert not snapshot.changed
    assert len(new_batches) == 1


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_state():
    poller = RequestPoller(
        _fetcher(_ok("a"), PendingRequestList(success=False, error="down"), _ok("a")),
        lambda s: None,
    )

    await poller.poll_once()
    assert await poller.poll_once() is None
    snapshot = await poller.poll_once()

    assert snapshot.added == []
    assert poller.seen_ids == {"a"}


@pytest.mark.asyncio
async def test_offline_flag_is_forwarded_and_async_callbacks_awaited():
    received = []

    async def callback(snapshot):
        received.append(snapshot.offline)

    poller = RequestPoller(_fetcher(_ok("a", offline=True)), callback)
    await poller.poll_once()

    assert received == [True]


@pytest.mark.asyncio
async def test_callback_errors_do_not_stop_polling():
    calls = []

    def callback(snapshot):
        calls.append(snapshot)
        raise RuntimeError("ui crashed")

    poller = RequestPoller(_fetcher(_ok("a")), callback, interval=0.01)
    stop = poller.start()
    await asyncio.sleep(0.08)
    stop()

    assert len(calls) >= 2
    assert not poller.running
