from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from seneparking.const import PENDING_MUTATIONS_KEY
from seneparking.exceptions import StoreError, ValidationError
from seneparking.local import LocalStore
from seneparking.models import PendingUpdate, PendingUser
from seneparking.offline import OfflineMutationQueue


def _queue(local, store) -> OfflineMutationQueue:
    return OfflineMutationQueue(local, store)


def test_capacity_edits_coalesce_per_lot(local, store) -> None:
    queue = _queue(local, store)
    queue.enqueue_capacity_edit("lot1", 5, 1)
    queue.enqueue_capacity_edit("lot1", 8, 2)
    assert queue.list_queued() == [PendingUpdate("lot1", 8, 2)]


def test_coalescing_moves_entry_to_the_end(local, store) -> None:
    queue = _queue(local, store)
    queue.enqueue_capacity_edit("lot1", 5, 1)
    queue.enqueue_registration({"email": "a@gmail.com"})
    queue.enqueue_capacity_edit("lot2", 3, 0)
    queue.enqueue_capacity_edit("lot1", 9, 9)
    assert queue.list_queued() == [
        PendingUser({"email": "a@gmail.com"}),
        PendingUpdate("lot2", 3, 0),
        PendingUpdate("lot1", 9, 9),
    ]


def test_registrations_are_never_coalesced(local, store) -> None:
    queue = _queue(local, store)
    queue.enqueue_registration({"email": "a@gmail.com"})
    queue.enqueue_registration({"email": "a@gmail.com"})
    assert len(queue.pending_users()) == 2
    assert queue.pending_updates() == []


def test_enqueue_validates_input(local, store) -> None:
    queue = _queue(local, store)
    with pytest.raises(ValidationError):
        queue.enqueue_capacity_edit("", 1, 1)
    with pytest.raises(ValidationError):
        queue.enqueue_capacity_edit("lot1", -1, 1)
    with pytest.raises(ValidationError):
        queue.enqueue_capacity_edit("lot1", 1, True)
    with pytest.raises(ValidationError):
        queue.enqueue_registration({})
    with pytest.raises(ValidationError):
        queue.enqueue_registration(
            {"email": "ana@gmail.com", "signedUpAt": datetime(2030, 1, 1, tzinfo=UTC)}
        )
    assert queue.list_queued() == []


def test_dequeue_removes_only_the_matching_entry(local, store) -> None:
    queue = _queue(local, store)
    queue.enqueue_capacity_edit("lot1", 5, 1)
    queue.enqueue_capacity_edit("lot2", 6, 1)
    queue.enqueue_registration({"email": "a@gmail.com"})
    assert queue.dequeue("lot1") is True
    assert queue.dequeue("lot1") is False
    assert queue.dequeue_registration({"email": "a@gmail.com"}) is True
    assert queue.list_queued() == [PendingUpdate("lot2", 6, 1)]
    assert queue.has_pending("lot2")
    assert not queue.has_pending("lot1")


def test_queue_survives_restart(tmp_path, store) -> None:
    path = tmp_path / "state.json"
    _queue(LocalStore(path), store).enqueue_capacity_edit("lot1", 4, 2)
    assert _queue(LocalStore(path), store).list_queued() == [PendingUpdate("lot1", 4, 2)]


def test_malformed_entries_are_skipped(local, store) -> None:
    local.set(
        PENDING_MUTATIONS_KEY,
        [
            {"kind": "capacity", "lotId": "lot1"},
            "garbage",
            {"kind": "capacity", "lotId": "lot2", "availableSpots": 1, "availableEvSpots": 0},
        ],
    )
    assert _queue(local, store).list_queued() == [PendingUpdate("lot2", 1, 0)]


@pytest.mark.asyncio
async def test_replay_applies_successes_and_keeps_failures(local, store) -> None:
    queue = _queue(local, store)
    queue.enqueue_capacity_edit("lot1", 5, 1)
    queue.enqueue_capacity_edit("lot2", 6, 2)
    queue.enqueue_registration({"email": "a@gmail.com"})
    store.fail("patch", "lot1", StoreError("status 500"))

    report = await queue.replay_all()

    assert report.applied == (PendingUpdate("lot2", 6, 2), PendingUser({"email": "a@gmail.com"}))
    assert report.failed == (PendingUpdate("lot1", 5, 1),)
    assert queue.list_queued() == [PendingUpdate("lot1", 5, 1)]
    assert store.collections["parkingLots"]["lot2"] == {
        "availableSpots": 6,
        "available_ev_spots": 2,
    }
    assert list(store.collections["users"].values()) == [{"email": "a@gmail.com"}]


@pytest.mark.asyncio
async def test_failed_entry_is_retried_on_next_replay(local, store) -> None:
    queue = _queue(local, store)
    queue.enqueue_capacity_edit("lot1", 5, 1)
    store.fail("patch", "lot1")
    assert (await queue.replay_all()).failed == (PendingUpdate("lot1", 5, 1),)
    store.failures.clear()
    assert (await queue.replay_all()).applied == (PendingUpdate("lot1", 5, 1),)
    assert queue.list_queued() == []


@pytest.mark.asyncio
async def test_replay_of_empty_queue_makes_no_calls(local, store) -> None:
    report = await _queue(local, store).replay_all()
    assert report.applied == ()
    assert report.failed == ()
    assert store.calls == []


@pytest.mark.asyncio
async def test_newer_edit_queued_during_replay_is_kept(local, store) -> None:
    queue = _queue(local, store)
    queue.enqueue_capacity_edit("lot1", 5, 1)
    release = asyncio.Event()
    original_patch = store.patch_document

    async def slow_patch(*args, **kwargs):
        await release.wait()
        return await original_patch(*args, **kwargs)

    store.patch_document = slow_patch  # type: ignore[method-assign]
    replay = asyncio.ensure_future(queue.replay_all())
    await asyncio.sleep(0)
    queue.enqueue_capacity_edit("lot1", 7, 3)
    release.set()
    report = await replay

    assert report.applied == (PendingUpdate("lot1", 5, 1),)
    assert queue.list_queued() == [PendingUpdate("lot1", 7, 3)]


@pytest.mark.asyncio
async def test_overlapping_replay_runs_another_pass(local, store) -> None:
    queue = _queue(local, store)
    queue.enqueue_capacity_edit("lot1", 5, 1)
    release = asyncio.Event()
    original_patch = store.patch_document

    async def slow_patch(*args, **kwargs):
        await release.wait()
        return await original_patch(*args, **kwargs)

    store.patch_document = slow_patch  # type: ignore[method-assign]
    first = asyncio.ensure_future(queue.replay_all())
    await asyncio.sleep(0)
    queue.enqueue_capacity_edit("lot2", 9, 1)
    second = await queue.replay_all()
    release.set()
    assert second.applied == ()
    report = await first
    assert report.applied == (PendingUpdate("lot1", 5, 1), PendingUpdate("lot2", 9, 1))
    assert report.failed == ()
    assert queue.list_queued() == []
