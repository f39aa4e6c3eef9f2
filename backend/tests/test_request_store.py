import pytest

from telemed.core.errors import InvalidTransitionError
from telemed.models.call_request import ACCEPTED, DECLINED, PENDING
from tests.factories import make_request


def test_insert_and_find_by_id(repository):
    request = make_request()
    repository.insert(request)

    found = repository.find_by_id(request.id)

    assert found is not None
    assert found.id == request.id
    assert found.caller_name == "John Doe"
    assert found.status == PENDING


def test_find_by_id_unknown_returns_none(repository):
    repository.insert(make_request())
    assert repository.find_by_id("missing") is None


def test_find_all_pending_keeps_insertion_order(repository):
    first = make_request(created_at=1_000)
    second = make_request(created_at=2_000)
    done = make_request(created_at=1_500)
    for item in (first, done, second):
        repository.insert(item)
    repository.update_status(done.id, DECLINED)

    pending = repository.find_all_pending()

    assert [r.id for r in pending] == [first.id, second.id]


def test_find_all_pending_same_millisecond_keeps_insertion_order(repository):
    items = [make_request(created_at=5_000) for _ in range(10)]
    for item in items:
        repository.insert(item)

    assert [r.id for r in repository.find_all_pending()] == [item.id for item in items]


def test_update_status_accept_stamps_accepted_at(repository):
    request = repository.insert(make_request())

    updated = repository.update_status(request.id, ACCEPTED, callee_info={"name": "Dr. X"})

    assert updated.status == ACCEPTED
    assert updated.accepted_at is not None
    assert updated.declined_at is None
    assert updated.callee_info == {"name": "Dr. X"}
    assert repository.find_by_id(request.id).status == ACCEPTED


def test_update_status_decline_stamps_declined_at(repository):
    request = repository.insert(make_request())

    updated = repository.update_status(request.id, DECLINED)

    assert updated.status == DECLINED
    assert updated.declined_at is not None
    assert updated.callee_info is None


def test_update_status_unknown_id_returns_none(repository):
    request = repository.insert(make_request())

    assert repository.update_status("missing", ACCEPTED) is None
    assert repository.find_by_id(request.id).status == PENDING


@pytest.mark.parametrize("first,second", [(ACCEPTED, DECLINED), (DECLINED, ACCEPTED), (ACCEPTED, ACCEPTED)])
def test_terminal_status_cannot_change(repository, first, second):
    request = repository.insert(make_request())
    repository.update_status(request.id, first)

    with pytest.raises(InvalidTransitionError):
        repository.update_status(request.id, second)

    assert repository.find_by_id(request.id).status == first


def test_update_status_rejects_unknown_status(repository):
    request = repository.insert(make_request())
    with pytest.raises(ValueError):
        repository.update_status(request.id, PENDING)


def test_purge_removes_only_records_older_than_cutoff(repository):
    now = 10_000_000
    max_age = 1_000
    old_pending = make_request(created_at=now - 5_000)
    old_accepted = make_request(created_at=now - 1_001)
    at_cutoff = make_request(created_at=now - 1_000)
    fresh = make_request(created_at=now - 10)
    for item in (old_pending, old_accepted, at_cutoff, fresh):
        repository.insert(item)
    repository.update_status(old_accepted.id, ACCEPTED)

    removed = repository.purge_older_than(max_age, now=now)

    assert removed == 2
    assert repository.find_by_id(old_pending.id) is None
    assert repository.find_by_id(old_accepted.id) is None
    assert repository.find_by_id(at_cutoff.id) is not None
    assert repository.find_by_id(fresh.id) is not None


def test_purge_with_nothing_stale_returns_zero(repository):
    repository.insert(make_request(created_at=5_000))
    assert repository.purge_older_than(1_000, now=5_500) == 0


def test_returned_records_are_snapshots(memory_repository):
    request = memory_repository.insert(make_request())

    snapshot = memory_repository.find_by_id(request.id)
    snapshot.status = DECLINED

    assert memory_repository.find_by_id(request.id).status == PENDING
