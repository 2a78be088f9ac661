from __future__ import annotations

import dataclasses
from datetime import UTC, datetime

import pytest

from seneparking.connectivity import ConnectivityObserver
from seneparking.exceptions import StoreError, ValidationError
from seneparking.lots import LotForm, LotService, validate_lot_form
from seneparking.models import ResultStatus
from seneparking.offline import OfflineCache, OfflineMutationQueue

LOT_FIELDS = {
    "name": "Lot A",
    "latitude": 4.602,
    "longitude": -74.066,
    "availableSpots": 3,
    "available_ev_spots": 1,
    "farePerDay": 24000,
    "open_time": "06:00am",
    "close_time": "10:00pm",
}

FORM = LotForm(
    name="Lot B",
    fare_per_day="18000",
    open_time="07:00am",
    close_time="09:30pm",
    available_spots="12",
    available_ev_spots="2",
    latitude="4.6",
    longitude="-74.1",
)


@pytest.fixture
def connectivity() -> ConnectivityObserver:
    return ConnectivityObserver()


@pytest.fixture
def service(store, local, connectivity) -> LotService:
    return LotService(store, OfflineCache(local), OfflineMutationQueue(local, store), connectivity)


@pytest.mark.asyncio
async def test_list_lots_caches_result(store, local, service) -> None:
    store.add("parkingLots", "lot1", LOT_FIELDS)
    store.add("parkingLots", "broken", {"name": "No spots"})

    result = await service.list_lots()

    assert [lot.id for lot in result.lots] == ["lot1"]
    assert result.lots[0].has_ev_spots
    assert not result.stale
    assert result.updated_at is not None
    assert [lot.id for lot in OfflineCache(local).cached_lots()] == ["lot1"]


@pytest.mark.asyncio
async def test_list_lots_falls_back_to_cache(store, local, service, lot) -> None:
    cache = OfflineCache(local)
    cache.cache_lots([lot], now=datetime(2030, 1, 1, tzinfo=UTC))
    store.fail("list")

    result = await service.list_lots()

    assert result.stale
    assert result.lots == [lot]
    assert result.updated_at == datetime(2030, 1, 1, tzinfo=UTC)
    assert result.message


@pytest.mark.asyncio
async def test_list_lots_without_cache(store, service) -> None:
    store.fail("list")
    result = await service.list_lots()
    assert result.stale
    assert result.lots == []
    assert result.updated_at is None


@pytest.mark.asyncio
async def test_get_lot_uses_cache_when_store_fails(store, local, service, lot) -> None:
    store.add("parkingLots", "lot1", LOT_FIELDS)
    assert (await service.get_lot("lot1")).name == "Lot A"

    OfflineCache(local).cache_lots([lot])
    store.fail("get")
    assert await service.get_lot("lot1") == lot
    assert await service.get_lot("unknown") is None


@pytest.mark.asyncio
async def test_register_lot(store, service) -> None:
    result = await service.register_lot(FORM)
    assert result.status is ResultStatus.SAVED
    assert result.document_id == "doc1"
    assert store.collections["parkingLots"]["doc1"]["farePerDay"] == 18000
    assert store.collections["parkingLots"]["doc1"]["latitude"] == 4.6


@pytest.mark.asyncio
async def test_register_lot_store_failure(store, service) -> None:
    store.fail("create", exc=StoreError("nope"))
    result = await service.register_lot(FORM)
    assert result.status is ResultStatus.FAILED


@pytest.mark.parametrize(
    ("changes", "message"),
    [
        ({"name": " "}, "Please fill in all fields."),
        ({"fare_per_day": "0"}, "Fare Per Day must be a valid positive number."),
        ({"available_spots": "-1"}, "Available Spots must be a valid non-negative number."),
        ({"available_ev_spots": "x"}, "Available EV Spots must be a valid non-negative number."),
        ({"longitude": "200"}, "Longitude must be a valid number between -180 and 180."),
        ({"latitude": "-91"}, "Latitude must be a valid number between -90 and 90."),
        ({"open_time": "7:00am"}, "Open Time must be in the format hh:mmam or hh:mmpm."),
        ({"close_time": "21:30"}, "Close Time must be in the format hh:mmam or hh:mmpm."),
    ],
)
def test_validate_lot_form(changes, message) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_lot_form(dataclasses.replace(FORM, **changes))
    assert str(excinfo.value) == message


@pytest.mark.asyncio
async def test_capacity_edit_online(store, local, service) -> None:
    store.add("parkingLots", "lot1", LOT_FIELDS)
    result = await service.update_capacity("lot1", 5, 0)
    assert result.status is ResultStatus.SAVED
    assert store.collections["parkingLots"]["lot1"]["availableSpots"] == 5
    assert store.collections["parkingLots"]["lot1"]["available_ev_spots"] == 0
    assert store.collections["parkingLots"]["lot1"]["name"] == "Lot A"


@pytest.mark.asyncio
async def test_capacity_edit_offline_is_queued(store, local, service, connectivity) -> None:
    connectivity.update(False)
    result = await service.update_capacity("lot1", 5, 0)
    assert result.status is ResultStatus.QUEUED
    assert store.calls == []
    assert OfflineMutationQueue(local, store).has_pending("lot1")


@pytest.mark.asyncio
async def test_capacity_edit_network_failure_is_queued(store, local, service) -> None:
    store.fail("patch")
    result = await service.update_capacity("lot1", 5, 0)
    assert result.status is ResultStatus.QUEUED
    assert OfflineMutationQueue(local, store).has_pending("lot1")


@pytest.mark.asyncio
async def test_capacity_edit_store_failure(store, local, service) -> None:
    store.fail("patch", exc=StoreError("rejected"))
    result = await service.update_capacity("lot1", 5, 0)
    assert result.status is ResultStatus.FAILED
    assert not OfflineMutationQueue(local, store).has_pending("lot1")


@pytest.mark.asyncio
async def test_online_save_drops_older_queued_edit(store, local, service) -> None:
    queue = OfflineMutationQueue(local, store)
    queue.enqueue_capacity_edit("lot1", 1, 1)
    await service.update_capacity("lot1", 5, 0)
    assert not queue.has_pending("lot1")


@pytest.mark.asyncio
async def test_capacity_edit_rejects_negative(service) -> None:
    with pytest.raises(ValidationError):
        await service.update_capacity("lot1", -1, 0)
