from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from itertools import count
from typing import Any

import pytest

from seneparking.exceptions import NetworkError, NotFoundError
from seneparking.local import LocalStore
from seneparking.models import ParkingLot
from seneparking.store.base import Document, DocumentStore, FieldFilter, FilterOp


class _DummySession:
    def request(self, *args, **kwargs):
        raise RuntimeError("Session should not be used in these tests.")


class FakeStore(DocumentStore):
    """In-memory document store with per-call failure injection."""

    def __init__(self, *, apply_filters: bool = True) -> None:
        super().__init__(_DummySession(), base_url="https://example")  # type: ignore[arg-type]
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.failures: dict[tuple[str, str | None], Exception] = {}
        self.fail_all: Exception | None = None
        self.apply_filters = apply_filters
        self._ids = count(1)

    def add(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> None:
        self.collections.setdefault(collection, {})[document_id] = dict(fields)

    def fail(self, method: str, document_id: str | None = None, exc: Exception | None = None):
        self.failures[(method, document_id)] = exc or NetworkError("boom")

    def _maybe_fail(self, method: str, document_id: str | None) -> None:
        self.calls.append((method, document_id))
        if self.fail_all is not None:
            raise self.fail_all
        exc = self.failures.get((method, document_id)) or self.failures.get((method, None))
        if exc is not None:
            raise exc

    async def list_documents(self, collection: str) -> list[Document]:
        self._maybe_fail("list", None)
        return [
            Document(id=doc_id, fields=dict(fields))
            for doc_id, fields in self.collections.get(collection, {}).items()
        ]

    async def get_document(self, collection: str, document_id: str) -> Document:
        self._maybe_fail("get", document_id)
        fields = self.collections.get(collection, {}).get(document_id)
        if fields is None:
            raise NotFoundError("Document not found.")
        return Document(id=document_id, fields=dict(fields))

    async def create_document(self, collection: str, fields: Mapping[str, Any]) -> Document:
        self._maybe_fail("create", None)
        document_id = f"doc{next(self._ids)}"
        self.add(collection, document_id, fields)
        return Document(id=document_id, fields=dict(fields))

    async def patch_document(
        self,
        collection: str,
        document_id: str,
        fields: Mapping[str, Any],
        *,
        update_mask: Iterable[str] | None = None,
    ) -> Document:
        self._maybe_fail("patch", document_id)
        current = self.collections.setdefault(collection, {}).setdefault(document_id, {})
        current.update(fields)
        return Document(id=document_id, fields=dict(current))

    async def run_query(self, collection: str, filters: Iterable[FieldFilter]) -> list[Document]:
        self._maybe_fail("query", None)
        filters = list(filters)
        results = []
        for doc_id, fields in self.collections.get(collection, {}).items():
            if self.apply_filters and not all(_matches(fields, item) for item in filters):
                continue
            results.append(Document(id=doc_id, fields=dict(fields)))
        return results


def _matches(fields: dict[str, Any], item: FieldFilter) -> bool:
    value = fields.get(item.field)
    if value is None:
        return False
    if item.op is FilterOp.EQUAL:
        return value == item.value
    if item.op is FilterOp.LESS_THAN:
        return value < item.value
    return value > item.value


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def unfiltered_store() -> FakeStore:
    return FakeStore(apply_filters=False)


@pytest.fixture
def local() -> LocalStore:
    return LocalStore()


@pytest.fixture
def lot() -> ParkingLot:
    return ParkingLot(
        id="lot1",
        name="Lot A",
        latitude=4.602,
        longitude=-74.066,
        available_spots=3,
        available_ev_spots=1,
        fare_per_day=24000,
        open_time="6:00am",
        close_time="10:00pm",
    )


@pytest.fixture
def now() -> datetime:
    # Tuesday.
    return datetime(2030, 1, 1, 0, 0, tzinfo=UTC)
