"""Firestore REST document store implementation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import aiohttp

from ...exceptions import SerializationError, ValidationError
from ..base import Document, DocumentStore, FieldFilter
from ..values import PlainValue, decode_fields, encode_fields, to_value
from .const import (
    COLLECTION_ENDPOINT,
    DEFAULT_BASE_URL,
    DEFAULT_DATABASE,
    DEFAULT_HEADERS,
    DOCUMENT_ENDPOINT,
    MAX_PAGES,
    PAGE_SIZE,
    RUN_QUERY_ENDPOINT,
)

_LOGGER = logging.getLogger(__name__)


class FirestoreStore(DocumentStore):
    """Document store backed by the Firestore v1 REST API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        project_id: str,
        *,
        base_url: str | None = None,
        database: str = DEFAULT_DATABASE,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_count: int = 0,
    ) -> None:
        """Initialize the store."""
        super().__init__(
            session,
            base_url=base_url if base_url is not None else DEFAULT_BASE_URL,
            timeout=timeout,
            retry_count=retry_count,
        )
        if not isinstance(project_id, str) or not project_id.strip():
            raise ValidationError("project_id must be a non-empty string.")
        self._project_id = project_id.strip()
        self._database = database

    @property
    def project_id(self) -> str:
        return self._project_id

    async def list_documents(self, collection: str) -> list[Document]:
        """Return every document in a collection, following page tokens."""
        _LOGGER.debug("Store list_documents %s started", collection)
        path = self._collection_path(collection)
        documents: list[Document] = []
        page_token: str | None = None
        for _ in range(MAX_PAGES):
            params: dict[str, Any] = {"pageSize": PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            data = await self._request_json("GET", path, params=params, headers=DEFAULT_HEADERS)
            if not isinstance(data, dict):
                raise SerializationError("List response must be an object.")
            raw_documents = data.get("documents") or []
            if not isinstance(raw_documents, list):
                raise SerializationError("List response documents must be a list.")
            documents.extend(self._map_document(item) for item in raw_documents)
            page_token = data.get("nextPageToken")
            if not page_token:
                break
        _LOGGER.debug("Store list_documents %s returned %d", collection, len(documents))
        return documents

    async def get_document(self, collection: str, document_id: str) -> Document:
        """Return one document by id."""
        path = self._document_path(collection, document_id)
        data = await self._request_json("GET", path, headers=DEFAULT_HEADERS)
        return self._map_document(data)

    async def create_document(
        self,
        collection: str,
        fields: Mapping[str, PlainValue],
    ) -> Document:
        """Create a document with a generated id."""
        path = self._collection_path(collection)
        payload = {"fields": encode_fields(fields)}
        data = await self._request_json("POST", path, json=payload, headers=DEFAULT_HEADERS)
        return self._map_document(data)

    async def patch_document(
        self,
        collection: str,
        document_id: str,
        fields: Mapping[str, PlainValue],
        *,
        update_mask: Iterable[str] | None = None,
    ) -> Document:
        """Update the given fields; only masked fields change when a mask is set."""
        path = self._document_path(collection, document_id)
        payload = {"fields": encode_fields(fields)}
        params: list[tuple[str, str]] = []
        if update_mask is not None:
            params = [("updateMask.fieldPaths", name) for name in update_mask]
        data = await self._request_json(
            "PATCH",
            path,
            json=payload,
            params=params,
            headers=DEFAULT_HEADERS,
        )
        return self._map_document(data)

    async def run_query(
        self,
        collection: str,
        filters: Iterable[FieldFilter],
    ) -> list[Document]:
        """Return documents in ``collection`` matching every filter."""
        self._require_id(collection, "collection")
        structured: dict[str, Any] = {"from": [{"collectionId": collection}]}
        where = self._build_where(list(filters))
        if where is not None:
            structured["where"] = where
        path = RUN_QUERY_ENDPOINT.format(project_id=self._project_id, database=self._database)
        data = await self._request_json(
            "POST",
            path,
            json={"structuredQuery": structured},
            headers=DEFAULT_HEADERS,
        )
        if not isinstance(data, list):
            raise SerializationError("Query response must be a list.")
        documents: list[Document] = []
        for item in data:
            # Entries without a document only carry read metadata.
            if not isinstance(item, dict) or "document" not in item:
                continue
            documents.append(self._map_document(item["document"]))
        return documents

    def _build_where(self, filters: list[FieldFilter]) -> dict[str, Any] | None:
        if not filters:
            return None
        encoded = [
            {
                "fieldFilter": {
                    "field": {"fieldPath": item.field},
                    "op": item.op.value,
                    "value": to_value(item.value).encode(),
                }
            }
            for item in filters
        ]
        if len(encoded) == 1:
            return encoded[0]
        return {"compositeFilter": {"op": "AND", "filters": encoded}}

    def _collection_path(self, collection: str) -> str:
        return COLLECTION_ENDPOINT.format(
            project_id=self._project_id,
            database=self._database,
            collection=self._require_id(collection, "collection"),
        )

    def _document_path(self, collection: str, document_id: str) -> str:
        return DOCUMENT_ENDPOINT.format(
            project_id=self._project_id,
            database=self._database,
            collection=self._require_id(collection, "collection"),
            document_id=self._require_id(document_id, "document_id"),
        )

    def _map_document(self, data: Any) -> Document:
        if not isinstance(data, dict):
            raise SerializationError("Document must be an object.")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise SerializationError("Document is missing its name.")
        return Document(
            id=name.rsplit("/", 1)[-1],
            fields=decode_fields(data.get("fields")),
            name=name,
        )
