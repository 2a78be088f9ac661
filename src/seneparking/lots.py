"""Parking lot listing, registration and capacity edits."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .connectivity import ConnectivityObserver
from .const import LOTS_COLLECTION
from .exceptions import NetworkError, SeneParkingError, SerializationError, ValidationError
from .models import LotList, ParkingLot, ResultStatus, ServiceResult
from .offline import (
    OfflineCache,
    OfflineMutationQueue,
    apply_capacity_update,
    capacity_update,
)
from .store.base import Document, DocumentStore

_LOGGER = logging.getLogger(__name__)

# Registration accepts zero-padded times such as 06:00am or 10:30pm.
_REGISTRATION_TIME_RE = re.compile(r"^(0[1-9]|1[0-2]):[0-5][0-9](am|pm)$")


@dataclass(frozen=True, slots=True)
class LotForm:
    name: str
    fare_per_day: str
    open_time: str
    close_time: str
    available_spots: str
    available_ev_spots: str
    latitude: str
    longitude: str


def lot_from_document(document: Document) -> ParkingLot:
    fields = document.fields
    try:
        return ParkingLot(
            id=document.id,
            name=_expect(fields, "name", str),
            latitude=float(_expect(fields, "latitude", (int, float))),
            longitude=float(_expect(fields, "longitude", (int, float))),
            available_spots=_expect(fields, "availableSpots", int),
            available_ev_spots=_expect(fields, "available_ev_spots", int),
            fare_per_day=_expect(fields, "farePerDay", int),
            open_time=_expect(fields, "open_time", str),
            close_time=_expect(fields, "close_time", str),
        )
    except SerializationError as exc:
        raise SerializationError(f"Lot {document.id} is malformed: {exc}") from exc


def validate_lot_form(form: LotForm) -> dict[str, str | int | float]:
    """Check a registration form and return the remote field map."""
    values = (
        form.name,
        form.fare_per_day,
        form.close_time,
        form.available_spots,
        form.open_time,
        form.longitude,
        form.latitude,
        form.available_ev_spots,
    )
    if any(not isinstance(value, str) or not value.strip() for value in values):
        raise ValidationError("Please fill in all fields.")
    fare = _parse_int(form.fare_per_day)
    if fare is None or fare <= 0:
        raise ValidationError("Fare Per Day must be a valid positive number.")
    spots = _parse_int(form.available_spots)
    if spots is None or spots < 0:
        raise ValidationError("Available Spots must be a valid non-negative number.")
    ev_spots = _parse_int(form.available_ev_spots)
    if ev_spots is None or ev_spots < 0:
        raise ValidationError("Available EV Spots must be a valid non-negative number.")
    longitude = _parse_float(form.longitude)
    if longitude is None or not -180.0 <= longitude <= 180.0:
        raise ValidationError("Longitude must be a valid number between -180 and 180.")
    latitude = _parse_float(form.latitude)
    if latitude is None or not -90.0 <= latitude <= 90.0:
        raise ValidationError("Latitude must be a valid number between -90 and 90.")
    if not _REGISTRATION_TIME_RE.match(form.open_time):
        raise ValidationError("Open Time must be in the format hh:mmam or hh:mmpm.")
    if not _REGISTRATION_TIME_RE.match(form.close_time):
        raise ValidationError("Close Time must be in the format hh:mmam or hh:mmpm.")
    return {
        "name": form.name.strip(),
        "farePerDay": fare,
        "close_time": form.close_time,
        "availableSpots": spots,
        "open_time": form.open_time,
        "longitude": longitude,
        "latitude": latitude,
        "available_ev_spots": ev_spots,
    }


class LotService:
    """Read lots with a cache fallback and write owner edits."""

    def __init__(
        self,
        store: DocumentStore,
        cache: OfflineCache,
        queue: OfflineMutationQueue,
        connectivity: ConnectivityObserver,
    ) -> None:
        self._store = store
        self._cache = cache
        self._queue = queue
        self._connectivity = connectivity

    async def list_lots(self) -> LotList:
        try:
            documents = await self._store.list_documents(LOTS_COLLECTION)
        except SeneParkingError as exc:
            _LOGGER.warning("Listing lots failed, using cache: %s", exc)
            cached = self._cache.cached_lots() or []
            return LotList(
                lots=cached,
                stale=True,
                updated_at=self._cache.last_update_time(),
                message=exc.user_message or "Showing saved parking lots.",
            )
        lots: list[ParkingLot] = []
        for document in documents:
            try:
                lots.append(lot_from_document(document))
            except SerializationError as exc:
                _LOGGER.debug("Skipping lot: %s", exc)
        self._cache.cache_lots(lots)
        return LotList(lots=lots, updated_at=self._cache.last_update_time())

    async def get_lot(self, lot_id: str) -> ParkingLot | None:
        try:
            return lot_from_document(await self._store.get_document(LOTS_COLLECTION, lot_id))
        except SeneParkingError as exc:
            _LOGGER.warning("Fetching lot %s failed, using cache: %s", lot_id, exc)
        for lot in self._cache.cached_lots() or []:
            if lot.id == lot_id:
                return lot
        return None

    async def register_lot(self, form: LotForm) -> ServiceResult:
        fields = validate_lot_form(form)
        try:
            document = await self._store.create_document(LOTS_COLLECTION, fields)
        except SeneParkingError as exc:
            _LOGGER.warning("Lot registration failed: %s", exc)
            return ServiceResult(
                ResultStatus.FAILED,
                exc.user_message or "Failed to register parking lot.",
            )
        _LOGGER.info("Registered lot %s", document.id)
        return ServiceResult(
            ResultStatus.SAVED,
            "Successfully registered parking lot!",
            document_id=document.id,
        )

    async def update_capacity(
        self,
        lot_id: str,
        available_spots: int,
        available_ev_spots: int,
    ) -> ServiceResult:
        if not self._connectivity.is_connected:
            self._queue.enqueue_capacity_edit(lot_id, available_spots, available_ev_spots)
            return ServiceResult(
                ResultStatus.QUEUED,
                "You are offline. Changes will sync when the connection returns.",
            )
        update = capacity_update(lot_id, available_spots, available_ev_spots)
        try:
            await apply_capacity_update(self._store, update)
        except NetworkError:
            _LOGGER.warning("Capacity edit for lot %s queued after network failure", lot_id)
            self._queue.enqueue_capacity_edit(lot_id, available_spots, available_ev_spots)
            return ServiceResult(
                ResultStatus.QUEUED,
                "Connection problem. Changes will sync when the connection returns.",
            )
        except SeneParkingError as exc:
            _LOGGER.warning("Capacity edit for lot %s failed: %s", lot_id, exc)
            return ServiceResult(
                ResultStatus.FAILED,
                exc.user_message or "Failed to save changes. Please try again.",
            )
        # An older offline edit would overwrite this one on the next replay.
        self._queue.dequeue(update.lot_id)
        return ServiceResult(ResultStatus.SAVED, "Changes saved successfully!")


def _expect(fields: dict, name: str, kind: type | tuple[type, ...]):
    value = fields.get(name)
    if isinstance(value, bool) or not isinstance(value, kind):
        raise SerializationError(f"field {name!r} is missing or has the wrong type")
    return value


def _parse_int(value: str) -> int | None:
    try:
        return int(value.strip())
    except ValueError:
        return None


def _parse_float(value: str) -> float | None:
    try:
        return float(value.strip())
    except ValueError:
        return None
