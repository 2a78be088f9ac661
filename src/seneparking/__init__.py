"""seneparking package."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .availability import AvailabilityChecker
from .client import Client
from .connectivity import ConnectivityObserver
from .exceptions import (
    ConfigError,
    NetworkError,
    NotFoundError,
    SeneParkingError,
    SerializationError,
    StoreError,
    ValidationError,
)
from .local import LocalStore
from .models import (
    AvailabilityReason,
    AvailabilityResult,
    ParkingLot,
    PendingUpdate,
    PendingUser,
    ReplayReport,
    Reservation,
    ReservationStatus,
)
from .offline import OfflineMutationQueue

try:
    __version__ = version("seneparking")
except PackageNotFoundError:  # pragma: no cover - not installed
    __version__ = "0.0.0"

__all__ = [
    "AvailabilityChecker",
    "AvailabilityReason",
    "AvailabilityResult",
    "Client",
    "ConfigError",
    "ConnectivityObserver",
    "LocalStore",
    "NetworkError",
    "NotFoundError",
    "OfflineMutationQueue",
    "ParkingLot",
    "PendingUpdate",
    "PendingUser",
    "ReplayReport",
    "Reservation",
    "ReservationStatus",
    "SeneParkingError",
    "SerializationError",
    "StoreError",
    "ValidationError",
    "__version__",
]
