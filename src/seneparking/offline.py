"""Offline mutation queue and local caches."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from .const import (
    CACHED_LOTS_KEY,
    CACHED_RESERVATIONS_KEY,
    LAST_UPDATE_TIME_KEY,
    LOTS_COLLECTION,
    PENDING_MUTATIONS_KEY,
    USERS_COLLECTION,
)
from .exceptions import SeneParkingError, ValidationError
from .local import LocalStore
from .models import (
    ParkingLot,
    PendingUpdate,
    PendingUser,
    ReplayReport,
    Reservation,
    ReservationStatus,
)
from .store.base import DocumentStore
from .util import format_utc_timestamp, parse_timestamp

_LOGGER = logging.getLogger(__name__)

_KIND_CAPACITY = "capacity"
_KIND_REGISTRATION = "registration"

PendingMutation = PendingUpdate | PendingUser


class OfflineMutationQueue:
    """Durable queue of writes made while offline.

    Capacity edits coalesce per lot (last write wins). Registrations are
    appended as-is. Entries leave the queue only after their own remote
    write succeeds; a failed entry waits for the next reconnect.
    """

    def __init__(self, local: LocalStore, store: DocumentStore) -> None:
        self._local = local
        self._store = store
        self._replaying = False
        self._rerun = False

    def enqueue_capacity_edit(
        self,
        lot_id: str,
        available_spots: int,
        available_ev_spots: int,
    ) -> PendingUpdate:
        update = capacity_update(lot_id, available_spots, available_ev_spots)
        with self._local.lock:
            entries = [
                entry
                for entry in self._read()
                if not (entry.get("kind") == _KIND_CAPACITY and entry.get("lotId") == update.lot_id)
            ]
            entries.append(_encode_entry(update))
            self._write(entries)
        _LOGGER.debug("Queued capacity edit for lot %s", update.lot_id)
        return update

    def enqueue_registration(self, payload: Mapping[str, Any]) -> PendingUser:
        if not isinstance(payload, Mapping) or not payload:
            raise ValidationError("Registration payload must be a non-empty mapping.")
        try:
            json.dumps(dict(payload))
        except (TypeError, ValueError) as exc:
            raise ValidationError("Registration payload must hold only JSON values.") from exc
        pending = PendingUser(payload=dict(payload))
        with self._local.lock:
            entries = self._read()
            entries.append(_encode_entry(pending))
            self._write(entries)
        _LOGGER.debug("Queued offline registration")
        return pending

    def list_queued(self) -> list[PendingMutation]:
        queued: list[PendingMutation] = []
        for raw in self._read():
            entry = _decode_entry(raw)
            if entry is not None:
                queued.append(entry)
        return queued

    def pending_updates(self) -> list[PendingUpdate]:
        return [entry for entry in self.list_queued() if isinstance(entry, PendingUpdate)]

    def pending_users(self) -> list[PendingUser]:
        return [entry for entry in self.list_queued() if isinstance(entry, PendingUser)]

    def has_pending(self, lot_id: str) -> bool:
        return any(update.lot_id == lot_id for update in self.pending_updates())

    def dequeue(self, lot_id: str) -> bool:
        with self._local.lock:
            entries = self._read()
            remaining = [
                entry
                for entry in entries
                if not (entry.get("kind") == _KIND_CAPACITY and entry.get("lotId") == lot_id)
            ]
            if len(remaining) == len(entries):
                return False
            self._write(remaining)
        return True

    def dequeue_registration(self, payload: Mapping[str, Any]) -> bool:
        return self._remove_entry(PendingUser(payload=dict(payload)))

    async def replay_all(self) -> ReplayReport:
        """Send every queued entry; drop each one once its write succeeds.

        A call made while a replay is running returns an empty report and
        makes the running replay take one more pass over the queue.
        """
        if self._replaying:
            _LOGGER.debug("Replay already running; another pass will follow")
            self._rerun = True
            return ReplayReport()
        self._replaying = True
        applied: list[PendingMutation] = []
        failed: list[PendingMutation] = []
        try:
            while True:
                self._rerun = False
                queued = self.list_queued()
                failed = []
                if queued:
                    _LOGGER.info("Replaying %d queued mutation(s)", len(queued))
                    outcomes = await asyncio.gather(
                        *(self._replay_entry(entry) for entry in queued)
                    )
                    for entry, ok in zip(queued, outcomes, strict=True):
                        (applied if ok else failed).append(entry)
                if not self._rerun:
                    break
        finally:
            self._replaying = False
            self._rerun = False
        if failed:
            _LOGGER.warning("%d queued mutation(s) remain after replay", len(failed))
        return ReplayReport(applied=tuple(applied), failed=tuple(failed))

    async def _replay_entry(self, entry: PendingMutation) -> bool:
        try:
            if isinstance(entry, PendingUpdate):
                await apply_capacity_update(self._store, entry)
            else:
                await self._store.create_document(USERS_COLLECTION, entry.payload)
        except SeneParkingError as exc:
            _LOGGER.warning("Replay of %s failed: %s", _describe(entry), exc)
            return False
        # A newer edit for the same lot may have been queued meanwhile; keep it.
        self._remove_entry(entry)
        return True

    def _remove_entry(self, entry: PendingMutation) -> bool:
        encoded = _encode_entry(entry)
        with self._local.lock:
            entries = self._read()
            for index, raw in enumerate(entries):
                if raw == encoded:
                    del entries[index]
                    self._write(entries)
                    return True
        return False

    def _read(self) -> list[dict[str, Any]]:
        entries = self._local.get(PENDING_MUTATIONS_KEY, [])
        if not isinstance(entries, list):
            _LOGGER.warning("Pending mutation queue is malformed; ignoring it")
            return []
        return [entry for entry in entries if isinstance(entry, dict)]

    def _write(self, entries: list[dict[str, Any]]) -> None:
        self._local.set(PENDING_MUTATIONS_KEY, entries)


class OfflineCache:
    """Last known lots and reservations for display while offline."""

    def __init__(self, local: LocalStore) -> None:
        self._local = local

    def cache_lots(self, lots: list[ParkingLot], *, now: datetime | None = None) -> None:
        self._local.set(CACHED_LOTS_KEY, [_lot_to_cache(lot) for lot in lots])
        self._save_update_time(now)

    def cached_lots(self) -> list[ParkingLot] | None:
        raw = self._local.get(CACHED_LOTS_KEY)
        if not isinstance(raw, list):
            return None
        lots: list[ParkingLot] = []
        for item in raw:
            try:
                lots.append(_lot_from_cache(item))
            except (KeyError, TypeError, ValueError):
                _LOGGER.debug("Skipping malformed cached lot")
        return lots

    def cache_reservations(self, reservations: list[Reservation]) -> None:
        self._local.set(
            CACHED_RESERVATIONS_KEY,
            [_reservation_to_cache(reservation) for reservation in reservations],
        )

    def cached_reservations(self) -> list[Reservation]:
        raw = self._local.get(CACHED_RESERVATIONS_KEY)
        if not isinstance(raw, list):
            return []
        reservations: list[Reservation] = []
        for item in raw:
            try:
                reservations.append(_reservation_from_cache(item))
            except (KeyError, TypeError, ValueError, ValidationError):
                _LOGGER.debug("Skipping malformed cached reservation")
        return reservations

    def last_update_time(self) -> datetime | None:
        raw = self._local.get(LAST_UPDATE_TIME_KEY)
        if not isinstance(raw, str):
            return None
        try:
            return parse_timestamp(raw)
        except ValidationError:
            return None

    def _save_update_time(self, now: datetime | None) -> None:
        self._local.set(LAST_UPDATE_TIME_KEY, format_utc_timestamp(now or datetime.now(UTC)))


def _encode_entry(entry: PendingMutation) -> dict[str, Any]:
    if isinstance(entry, PendingUpdate):
        return {
            "kind": _KIND_CAPACITY,
            "lotId": entry.lot_id,
            "availableSpots": entry.available_spots,
            "availableEvSpots": entry.available_ev_spots,
        }
    return {"kind": _KIND_REGISTRATION, "payload": entry.payload}


def _decode_entry(raw: dict[str, Any]) -> PendingMutation | None:
    kind = raw.get("kind")
    if kind == _KIND_CAPACITY:
        lot_id = raw.get("lotId")
        spots = raw.get("availableSpots")
        ev_spots = raw.get("availableEvSpots")
        if isinstance(lot_id, str) and isinstance(spots, int) and isinstance(ev_spots, int):
            return PendingUpdate(lot_id=lot_id, available_spots=spots, available_ev_spots=ev_spots)
    elif kind == _KIND_REGISTRATION:
        payload = raw.get("payload")
        if isinstance(payload, dict):
            return PendingUser(payload=payload)
    _LOGGER.debug("Skipping malformed queue entry")
    return None


def _describe(entry: PendingMutation) -> str:
    if isinstance(entry, PendingUpdate):
        return f"capacity edit for lot {entry.lot_id}"
    return "registration"


async def apply_capacity_update(store: DocumentStore, update: PendingUpdate) -> None:
    await store.patch_document(
        LOTS_COLLECTION,
        update.lot_id,
        {
            "availableSpots": update.available_spots,
            "available_ev_spots": update.available_ev_spots,
        },
        update_mask=("availableSpots", "available_ev_spots"),
    )


def capacity_update(lot_id: str, available_spots: int, available_ev_spots: int) -> PendingUpdate:
    """Validate a capacity edit and return it as a queue entry."""
    if not isinstance(lot_id, str) or not lot_id.strip():
        raise ValidationError("lot_id must be a non-empty string.")
    return PendingUpdate(
        lot_id=lot_id.strip(),
        available_spots=_require_count(available_spots, "available_spots"),
        available_ev_spots=_require_count(available_ev_spots, "available_ev_spots"),
    )


def _require_count(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer.")
    return value


def _lot_to_cache(lot: ParkingLot) -> dict[str, Any]:
    return {
        "id": lot.id,
        "name": lot.name,
        "latitude": lot.latitude,
        "longitude": lot.longitude,
        "availableSpots": lot.available_spots,
        "availableEvSpots": lot.available_ev_spots,
        "farePerDay": lot.fare_per_day,
        "openTime": lot.open_time,
        "closeTime": lot.close_time,
    }


def _lot_from_cache(data: dict[str, Any]) -> ParkingLot:
    return ParkingLot(
        id=str(data["id"]),
        name=str(data["name"]),
        latitude=float(data["latitude"]),
        longitude=float(data["longitude"]),
        available_spots=int(data["availableSpots"]),
        available_ev_spots=int(data["availableEvSpots"]),
        fare_per_day=int(data["farePerDay"]),
        open_time=str(data["openTime"]),
        close_time=str(data["closeTime"]),
    )


def _reservation_to_cache(reservation: Reservation) -> dict[str, Any]:
    return {
        "id": reservation.id,
        "parkingLotId": reservation.parking_lot_id,
        "parkingLotName": reservation.parking_lot_name,
        "startTime": format_utc_timestamp(reservation.start_time),
        "endTime": format_utc_timestamp(reservation.end_time),
        "status": reservation.status.value,
        "fareAmount": reservation.fare_amount,
    }


def _reservation_from_cache(data: dict[str, Any]) -> Reservation:
    return Reservation(
        id=str(data["id"]),
        parking_lot_id=str(data["parkingLotId"]),
        parking_lot_name=str(data["parkingLotName"]),
        start_time=parse_timestamp(data["startTime"]),
        end_time=parse_timestamp(data["endTime"]),
        status=ReservationStatus(data["status"]),
        fare_amount=float(data["fareAmount"]),
    )
