"""Reservation listing, creation, cancellation and status transitions."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timedelta

from .const import REMINDER_LEAD, RESERVATIONS_COLLECTION
from .exceptions import SeneParkingError, SerializationError, ValidationError
from .models import ParkingLot, Reservation, ReservationList, ReservationStatus
from .offline import OfflineCache
from .store.base import Document, DocumentStore
from .store.values import PlainValue
from .util import ensure_aware, validate_duration_hours

_LOGGER = logging.getLogger(__name__)

_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.UPCOMING: frozenset({ReservationStatus.ACTIVE, ReservationStatus.CANCELLED}),
    ReservationStatus.ACTIVE: frozenset({ReservationStatus.COMPLETED}),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}


def transition(reservation: Reservation, status: ReservationStatus) -> Reservation:
    """Return ``reservation`` moved to ``status`` if the move is allowed."""
    if status not in _TRANSITIONS[reservation.status]:
        raise ValidationError(
            f"Reservation cannot move from {reservation.status.value} to {status.value}."
        )
    return dataclasses.replace(reservation, status=status)


def reminder_time(reservation: Reservation, lead: timedelta = REMINDER_LEAD) -> datetime:
    return reservation.start_time - lead


def reservation_from_document(document: Document) -> Reservation:
    fields = document.fields
    start = fields.get("startTime")
    end = fields.get("endTime")
    fare = fields.get("fareAmount")
    lot_id = fields.get("parkingLotId")
    lot_name = fields.get("parkingLotName")
    status = fields.get("status")
    if not isinstance(start, datetime) or not isinstance(end, datetime):
        raise SerializationError(f"Reservation {document.id} has invalid times.")
    if end <= start:
        raise SerializationError(f"Reservation {document.id} ends before it starts.")
    if not isinstance(lot_id, str) or not isinstance(lot_name, str):
        raise SerializationError(f"Reservation {document.id} has no parking lot.")
    if isinstance(fare, bool) or not isinstance(fare, int | float):
        raise SerializationError(f"Reservation {document.id} has no fare.")
    try:
        parsed_status = ReservationStatus(status)
    except ValueError as exc:
        raise SerializationError(f"Reservation {document.id} has an unknown status.") from exc
    return Reservation(
        id=document.id,
        parking_lot_id=lot_id,
        parking_lot_name=lot_name,
        start_time=start,
        end_time=end,
        status=parsed_status,
        fare_amount=float(fare),
    )


def reservation_fields(reservation: Reservation) -> dict[str, PlainValue]:
    return {
        "parkingLotId": reservation.parking_lot_id,
        "parkingLotName": reservation.parking_lot_name,
        "startTime": reservation.start_time,
        "endTime": reservation.end_time,
        "status": reservation.status.value,
        "fareAmount": float(reservation.fare_amount),
    }


class ReservationService:
    """Reservations backed by the remote store with an offline copy."""

    def __init__(self, store: DocumentStore, cache: OfflineCache) -> None:
        self._store = store
        self._cache = cache

    async def list_reservations(self) -> ReservationList:
        try:
            documents = await self._store.list_documents(RESERVATIONS_COLLECTION)
        except SeneParkingError as exc:
            _LOGGER.warning("Listing reservations failed, using cache: %s", exc)
            return ReservationList(
                reservations=self._cache.cached_reservations(),
                stale=True,
                message=exc.user_message or "Showing saved reservations.",
            )
        reservations: list[Reservation] = []
        for document in documents:
            try:
                reservations.append(reservation_from_document(document))
            except SerializationError as exc:
                _LOGGER.debug("Skipping reservation: %s", exc)
        self._cache.cache_reservations(reservations)
        return ReservationList(reservations=reservations)

    async def create_reservation(
        self,
        lot: ParkingLot,
        start: datetime,
        duration_hours: int,
        fare_amount: float,
    ) -> Reservation:
        """Store a new upcoming reservation; store errors propagate."""
        start_utc = ensure_aware(start, "start")
        end_utc = start_utc + timedelta(hours=validate_duration_hours(duration_hours))
        draft = Reservation(
            id="",
            parking_lot_id=lot.id,
            parking_lot_name=lot.name,
            start_time=start_utc,
            end_time=end_utc,
            status=ReservationStatus.UPCOMING,
            fare_amount=fare_amount,
        )
        document = await self._store.create_document(
            RESERVATIONS_COLLECTION,
            reservation_fields(draft),
        )
        _LOGGER.info("Created reservation %s for lot %s", document.id, lot.id)
        return dataclasses.replace(draft, id=document.id)

    async def cancel_reservation(self, reservation: Reservation) -> Reservation | None:
        """Cancel an upcoming reservation; return None when the store write fails."""
        cancelled = transition(reservation, ReservationStatus.CANCELLED)
        try:
            await self._store.patch_document(
                RESERVATIONS_COLLECTION,
                reservation.id,
                reservation_fields(cancelled),
            )
        except SeneParkingError as exc:
            _LOGGER.warning("Cancelling reservation %s failed: %s", reservation.id, exc)
            return None
        return cancelled
