"""Client facade wiring the store, local state and services."""

from __future__ import annotations

import logging
import os
from datetime import tzinfo

import aiohttp

from .availability import AvailabilityChecker
from .booking import BookingService
from .connectivity import ConnectivityObserver
from .const import DEFAULT_CLOSED_WEEKDAY, DEFAULT_TIMEZONE
from .exceptions import ConfigError
from .local import LocalStore
from .lots import LotService
from .models import ReplayReport
from .offline import OfflineCache, OfflineMutationQueue
from .payments import PaymentDataManager, PaymentProcessor
from .reservations import ReservationService
from .store.base import DocumentStore
from .store.firestore import FirestoreStore
from .users import UserService

_LOGGER = logging.getLogger(__name__)
_DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=30)


class Client:
    """Owns every service; nothing is shared through module globals."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        project_id: str | None = None,
        base_url: str | None = None,
        store: DocumentStore | None = None,
        storage_path: str | os.PathLike[str] | None = None,
        local: LocalStore | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_count: int = 0,
        closed_weekday: int | None = DEFAULT_CLOSED_WEEKDAY,
        timezone: str | tzinfo = DEFAULT_TIMEZONE,
        connected: bool = True,
        processor: PaymentProcessor | None = None,
    ) -> None:
        self._session = session
        self._owns_session = session is None and store is None
        self._timeout = timeout or _DEFAULT_TIMEOUT
        if store is None:
            if not project_id:
                raise ConfigError("project_id is required when no store is given.")
            store = FirestoreStore(
                self._ensure_session(),
                project_id,
                base_url=base_url,
                timeout=self._timeout,
                retry_count=retry_count,
            )
        self.store = store
        self.local = local if local is not None else LocalStore(storage_path)
        self.connectivity = ConnectivityObserver(connected=connected)
        self.cache = OfflineCache(self.local)
        self.queue = OfflineMutationQueue(self.local, self.store)
        self.availability = AvailabilityChecker(
            self.store,
            closed_weekday=closed_weekday,
            timezone=timezone,
        )
        self.lots = LotService(self.store, self.cache, self.queue, self.connectivity)
        self.reservations = ReservationService(self.store, self.cache)
        self.users = UserService(self.store, self.queue, self.connectivity)
        self.payments = PaymentDataManager(self.local)
        self.booking = BookingService(
            self.availability,
            self.reservations,
            processor or PaymentProcessor(),
            self.payments,
        )
        self.connectivity.add_listener(self._replay_pending)

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.connectivity.wait_idle()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def set_connected(self, connected: bool) -> bool:
        """Report connectivity from inside the event loop.

        Queued writes replay on the reconnect edge.
        """
        return self.connectivity.update(connected)

    async def _replay_pending(self) -> ReplayReport:
        report = await self.queue.replay_all()
        _LOGGER.info(
            "Replay finished: %d applied, %d still queued",
            len(report.applied),
            len(report.failed),
        )
        return report

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session
