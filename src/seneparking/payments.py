"""Fare calculation, simulated payment processing and payment records."""

from __future__ import annotations

import asyncio
import logging
import random
import re
import uuid
from datetime import UTC, date, datetime

from .const import (
    PAYMENT_HISTORY_KEY,
    PAYMENT_HISTORY_LIMIT,
    PAYMENT_SUCCESS_RATE,
    SAVED_CARDS_KEY,
    SAVED_CARDS_LIMIT,
)
from .exceptions import ConfigError, ValidationError
from .local import LocalStore
from .models import PaymentRecord, SavedCard
from .util import (
    format_utc_timestamp,
    mask_card_number,
    parse_timestamp,
    validate_duration_hours,
)

_LOGGER = logging.getLogger(__name__)

MIN_HOLDER_NAME_LENGTH = 3
_EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/(\d{2})$")


def calculate_fare(fare_per_day: int, duration_hours: int) -> float:
    """Charge the daily fare pro rata per hour."""
    return fare_per_day * validate_duration_hours(duration_hours) / 24.0


def validate_card(
    card_number: str,
    holder: str,
    expiry: str,
    cvv: str,
    *,
    today: date | None = None,
) -> None:
    digits = re.sub(r"\D", "", card_number or "")
    if len(digits) < 16:
        raise ValidationError("Card number must have at least 16 digits.")
    if not holder or not holder.strip():
        raise ValidationError("Card holder name is required.")
    if len(holder.strip()) < MIN_HOLDER_NAME_LENGTH:
        raise ValidationError("Please enter the full card holder name.")
    match = _EXPIRY_RE.match(expiry or "")
    if match is None:
        raise ValidationError("Expiry date must be in MM/YY form.")
    today = today or date.today()
    # Two-digit years; a card is valid through the end of its expiry month.
    if (int(match.group(2)), int(match.group(1))) < (today.year % 100, today.month):
        raise ValidationError("Card has expired.")
    if not (cvv or "").isdigit() or len(cvv) != 3:
        raise ValidationError("CVV must be 3 digits.")


class PaymentProcessor:
    """Simulated processor that approves a fixed share of payments."""

    def __init__(
        self,
        *,
        success_rate: float = PAYMENT_SUCCESS_RATE,
        rng: random.Random | None = None,
        delay: float = 0.0,
    ) -> None:
        if not 0.0 <= success_rate <= 1.0:
            raise ConfigError("success_rate must be between 0 and 1.")
        self._success_rate = success_rate
        self._rng = rng or random.Random()
        self._delay = delay

    async def charge(self, amount: float, card_number: str) -> bool:
        if amount < 0:
            raise ValidationError("Amount must not be negative.")
        if self._delay:
            await asyncio.sleep(self._delay)
        approved = self._rng.random() < self._success_rate
        _LOGGER.debug(
            "Payment of %.2f on card %s approved=%s",
            amount,
            mask_card_number(card_number),
            approved,
        )
        return approved


class PaymentDataManager:
    """Payment history and saved cards kept in the local store."""

    def __init__(self, local: LocalStore) -> None:
        self._local = local

    def save_payment(
        self,
        parking_lot_name: str,
        amount: float,
        last_four: str,
        *,
        now: datetime | None = None,
    ) -> PaymentRecord:
        record = PaymentRecord(
            parking_lot_name=parking_lot_name,
            amount=amount,
            date=now or datetime.now(UTC),
            last_four_digits=last_four,
        )
        with self._local.lock:
            history = [_record_to_dict(item) for item in self.payment_history()]
            history.insert(0, _record_to_dict(record))
            self._local.set(PAYMENT_HISTORY_KEY, history[:PAYMENT_HISTORY_LIMIT])
        return record

    def payment_history(self) -> list[PaymentRecord]:
        raw = self._local.get(PAYMENT_HISTORY_KEY, [])
        if not isinstance(raw, list):
            return []
        history: list[PaymentRecord] = []
        for item in raw:
            try:
                history.append(
                    PaymentRecord(
                        parking_lot_name=str(item["parkingLotName"]),
                        amount=float(item["amount"]),
                        date=parse_timestamp(item["date"]),
                        last_four_digits=str(item["lastFourDigits"]),
                    )
                )
            except (KeyError, TypeError, ValueError, ValidationError):
                continue
        return history

    def save_card(
        self,
        last_four: str,
        card_holder_name: str,
        *,
        make_default: bool = False,
    ) -> SavedCard:
        card = SavedCard(
            id=str(uuid.uuid4()),
            last_four_digits=last_four,
            card_holder_name=card_holder_name,
            is_default=make_default,
        )
        with self._local.lock:
            cards = self.saved_cards()
            if make_default:
                cards = [
                    SavedCard(c.id, c.last_four_digits, c.card_holder_name, False) for c in cards
                ]
            cards = [c for c in cards if c.last_four_digits != last_four]
            cards.insert(0, card)
            self._local.set(
                SAVED_CARDS_KEY,
                [_card_to_dict(c) for c in cards[:SAVED_CARDS_LIMIT]],
            )
        return card

    def saved_cards(self) -> list[SavedCard]:
        raw = self._local.get(SAVED_CARDS_KEY, [])
        if not isinstance(raw, list):
            return []
        cards: list[SavedCard] = []
        for item in raw:
            try:
                cards.append(
                    SavedCard(
                        id=str(item["id"]),
                        last_four_digits=str(item["lastFourDigits"]),
                        card_holder_name=str(item["cardHolderName"]),
                        is_default=bool(item["isDefault"]),
                    )
                )
            except (KeyError, TypeError):
                continue
        return cards

    def clear(self) -> None:
        self._local.remove(PAYMENT_HISTORY_KEY)
        self._local.remove(SAVED_CARDS_KEY)


def _record_to_dict(record: PaymentRecord) -> dict[str, object]:
    return {
        "parkingLotName": record.parking_lot_name,
        "amount": record.amount,
        "date": format_utc_timestamp(record.date),
        "lastFourDigits": record.last_four_digits,
    }


def _card_to_dict(card: SavedCard) -> dict[str, object]:
    return {
        "id": card.id,
        "lastFourDigits": card.last_four_digits,
        "cardHolderName": card.card_holder_name,
        "isDefault": card.is_default,
    }
