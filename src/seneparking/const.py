"""Shared constants."""

from datetime import timedelta

LOTS_COLLECTION = "parkingLots"
RESERVATIONS_COLLECTION = "reservations"
USERS_COLLECTION = "users"

PENDING_MUTATIONS_KEY = "pendingMutations"
CACHED_LOTS_KEY = "cachedParkingLots"
CACHED_RESERVATIONS_KEY = "cachedReservations"
LAST_UPDATE_TIME_KEY = "lastUpdateTime"
PAYMENT_HISTORY_KEY = "paymentHistory"
SAVED_CARDS_KEY = "savedCards"

# datetime.weekday() numbering, Monday is 0.
DEFAULT_CLOSED_WEEKDAY = 6
DEFAULT_TIMEZONE = "America/Bogota"

PAYMENT_HISTORY_LIMIT = 10
SAVED_CARDS_LIMIT = 5
PAYMENT_SUCCESS_RATE = 0.9

REMINDER_LEAD = timedelta(minutes=15)
