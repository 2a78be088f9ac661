"""Reservation booking: availability, payment, then the reservation itself."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from .availability import AvailabilityChecker
from .exceptions import SeneParkingError
from .models import AvailabilityResult, ParkingLot, Reservation
from .payments import PaymentDataManager, PaymentProcessor, calculate_fare
from .reservations import ReservationService
from .util import last_four_digits

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BookingResult:
    reservation: Reservation | None
    amount: float
    availability: AvailabilityResult | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.reservation is not None


class BookingService:
    def __init__(
        self,
        availability: AvailabilityChecker,
        reservations: ReservationService,
        processor: PaymentProcessor,
        payments: PaymentDataManager,
    ) -> None:
        self._availability = availability
        self._reservations = reservations
        self._processor = processor
        self._payments = payments

    async def book(
        self,
        lot: ParkingLot,
        start: datetime,
        duration_hours: int,
        card_number: str,
        *,
        card_holder: str | None = None,
        save_card: bool = False,
        now: datetime | None = None,
    ) -> BookingResult:
        """Book a spot; input errors raise, everything else lands in the result."""
        amount = calculate_fare(lot.fare_per_day, duration_hours)
        last_four = last_four_digits(card_number)
        availability = await self._availability.check(lot, start, duration_hours, now=now)
        if availability.available <= 0:
            return BookingResult(
                reservation=None,
                amount=amount,
                availability=availability,
                message=availability.message or "No spots are available for this time.",
            )
        if not await self._processor.charge(amount, card_number):
            return BookingResult(
                reservation=None,
                amount=amount,
                availability=availability,
                message="Payment failed. Please try again.",
            )
        try:
            reservation = await self._reservations.create_reservation(
                lot,
                start,
                duration_hours,
                amount,
            )
        except SeneParkingError as exc:
            # TODO: refund through the processor once it supports reversals.
            _LOGGER.warning("Reservation for lot %s failed after payment: %s", lot.id, exc)
            return BookingResult(
                reservation=None,
                amount=amount,
                availability=availability,
                message=exc.user_message or "Your reservation could not be saved.",
            )
        self._payments.save_payment(lot.name, amount, last_four, now=now)
        if save_card and card_holder:
            self._payments.save_card(last_four, card_holder, make_default=True)
        return BookingResult(
            reservation=reservation,
            amount=amount,
            availability=availability,
            message="Your parking spot has been reserved.",
        )
