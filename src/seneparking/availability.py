"""Remaining-capacity checks for a lot over a requested window."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta, tzinfo

from .const import DEFAULT_CLOSED_WEEKDAY, DEFAULT_TIMEZONE, RESERVATIONS_COLLECTION
from .exceptions import ConfigError, SeneParkingError, ValidationError
from .models import AvailabilityReason, AvailabilityResult, ParkingLot, ReservationStatus
from .store.base import Document, DocumentStore, FieldFilter, FilterOp
from .util import (
    ensure_aware,
    intervals_overlap,
    parse_time_of_day,
    resolve_timezone,
    validate_duration_hours,
)

_LOGGER = logging.getLogger(__name__)


class AvailabilityChecker:
    """Count free spots of a lot for ``[start, start + duration)``."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        closed_weekday: int | None = DEFAULT_CLOSED_WEEKDAY,
        timezone: str | tzinfo = DEFAULT_TIMEZONE,
    ) -> None:
        if closed_weekday is not None and closed_weekday not in range(7):
            raise ConfigError("closed_weekday must be between 0 (Monday) and 6 (Sunday).")
        self._store = store
        self._closed_weekday = closed_weekday
        self._tz = resolve_timezone(timezone)

    async def check(
        self,
        lot: ParkingLot,
        start: datetime,
        duration_hours: int,
        *,
        now: datetime | None = None,
    ) -> AvailabilityResult:
        start_utc = ensure_aware(start, "start")
        duration = validate_duration_hours(duration_hours)
        now_utc = ensure_aware(now, "now") if now is not None else datetime.now(UTC)
        if start_utc < now_utc:
            raise ValidationError("Reservations cannot start in the past.")
        end_utc = start_utc + timedelta(hours=duration)

        rejection = self._check_schedule(lot, start_utc)
        if rejection is not None:
            return rejection

        _LOGGER.debug("Checking availability for lot %s", lot.id)
        try:
            documents = await self._store.run_query(
                RESERVATIONS_COLLECTION,
                [
                    FieldFilter("parkingLotId", FilterOp.EQUAL, lot.id),
                    FieldFilter("startTime", FilterOp.LESS_THAN, end_utc),
                    FieldFilter("endTime", FilterOp.GREATER_THAN, start_utc),
                ],
            )
        except SeneParkingError as exc:
            # Optimistic on purpose: an unreachable store reports the nominal capacity.
            _LOGGER.warning(
                "Availability query for lot %s failed, assuming nominal capacity: %s",
                lot.id,
                exc,
            )
            return AvailabilityResult(
                available=max(0, lot.available_spots),
                fallback=True,
                message=exc.user_message or "Availability could not be confirmed.",
            )

        taken = sum(
            1 for document in documents if self._competes(document, lot.id, start_utc, end_utc)
        )
        available = max(0, lot.available_spots - taken)
        _LOGGER.debug("Lot %s has %d of %d spots free", lot.id, available, lot.available_spots)
        return AvailabilityResult(available=available)

    def _check_schedule(self, lot: ParkingLot, start: datetime) -> AvailabilityResult | None:
        local_start = start.astimezone(self._tz)
        if self._closed_weekday is not None and local_start.weekday() == self._closed_weekday:
            return AvailabilityResult(
                available=0,
                reason=AvailabilityReason.CLOSED_DAY,
                message="Reservations are not available on this day.",
            )
        open_time = parse_time_of_day(lot.open_time)
        close_time = parse_time_of_day(lot.close_time)
        # Same-day comparison of the start only.
        start_time = local_start.time().replace(second=0, microsecond=0, tzinfo=None)
        if start_time < open_time:
            return AvailabilityResult(
                available=0,
                reason=AvailabilityReason.BEFORE_OPEN,
                message=f"{lot.name} opens at {lot.open_time}.",
            )
        if start_time > close_time:
            return AvailabilityResult(
                available=0,
                reason=AvailabilityReason.AFTER_CLOSE,
                message=f"{lot.name} closes at {lot.close_time}.",
            )
        return None

    def _competes(self, document: Document, lot_id: str, start: datetime, end: datetime) -> bool:
        fields = document.fields
        existing_start = fields.get("startTime")
        existing_end = fields.get("endTime")
        if not isinstance(existing_start, datetime) or not isinstance(existing_end, datetime):
            _LOGGER.debug("Ignoring reservation %s without valid times", document.id)
            return False
        if fields.get("parkingLotId") != lot_id:
            return False
        if fields.get("status") == ReservationStatus.CANCELLED.value:
            return False
        return intervals_overlap(existing_start, existing_end, start, end)
