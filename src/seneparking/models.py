"""Public data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class ReservationStatus(StrEnum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AvailabilityReason(StrEnum):
    CLOSED_DAY = "closed_day"
    BEFORE_OPEN = "before_open"
    AFTER_CLOSE = "after_close"


class ResultStatus(StrEnum):
    SAVED = "saved"
    QUEUED = "queued"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ParkingLot:
    id: str
    name: str
    latitude: float
    longitude: float
    available_spots: int
    available_ev_spots: int
    fare_per_day: int
    open_time: str
    close_time: str

    @property
    def has_ev_spots(self) -> bool:
        return self.available_ev_spots > 0


@dataclass(frozen=True, slots=True)
class Reservation:
    id: str
    parking_lot_id: str
    parking_lot_name: str
    start_time: datetime
    end_time: datetime
    status: ReservationStatus
    fare_amount: float


@dataclass(frozen=True, slots=True)
class PendingUpdate:
    lot_id: str
    available_spots: int
    available_ev_spots: int


@dataclass(frozen=True, slots=True)
class PendingUser:
    payload: dict[str, Any]


@dataclass(frozen=True, slots=True)
class AvailabilityResult:
    available: int
    reason: AvailabilityReason | None = None
    fallback: bool = False
    message: str | None = None


@dataclass(frozen=True, slots=True)
class ReplayReport:
    applied: tuple[PendingUpdate | PendingUser, ...] = ()
    failed: tuple[PendingUpdate | PendingUser, ...] = ()


@dataclass(frozen=True, slots=True)
class ServiceResult:
    status: ResultStatus
    message: str | None = None
    document_id: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    parking_lot_name: str
    amount: float
    date: datetime
    last_four_digits: str


@dataclass(frozen=True, slots=True)
class SavedCard:
    id: str
    last_four_digits: str
    card_holder_name: str
    is_default: bool


@dataclass(frozen=True, slots=True)
class ReservationList:
    reservations: list[Reservation] = field(default_factory=list)
    stale: bool = False
    message: str | None = None

    @property
    def upcoming(self) -> list[Reservation]:
        return [r for r in self.reservations if r.status is ReservationStatus.UPCOMING]

    @property
    def active(self) -> list[Reservation]:
        return [r for r in self.reservations if r.status is ReservationStatus.ACTIVE]

    @property
    def past(self) -> list[Reservation]:
        return [
            r
            for r in self.reservations
            if r.status in (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED)
        ]


@dataclass(frozen=True, slots=True)
class LotList:
    lots: list[ParkingLot] = field(default_factory=list)
    stale: bool = False
    updated_at: datetime | None = None
    message: str | None = None
