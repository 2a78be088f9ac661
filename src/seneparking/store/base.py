"""Document store base class and shared behavior."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import aiohttp

from ..exceptions import NetworkError, NotFoundError, StoreError, ValidationError
from .values import PlainValue

_LOGGER = logging.getLogger(__name__)
_DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=30)


class FilterOp(StrEnum):
    EQUAL = "EQUAL"
    LESS_THAN = "LESS_THAN"
    GREATER_THAN = "GREATER_THAN"


@dataclass(frozen=True, slots=True)
class FieldFilter:
    field: str
    op: FilterOp
    value: PlainValue


@dataclass(frozen=True, slots=True)
class Document:
    id: str
    fields: dict[str, PlainValue] = field(default_factory=dict)
    name: str = ""


class DocumentStore(ABC):
    """Base class for remote document store implementations."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_count: int = 0,
    ) -> None:
        if session is None:
            raise ValidationError("Session is required.")
        self._session = session
        self._base_url = self._normalize_base_url(base_url)
        self._timeout = timeout or _DEFAULT_TIMEOUT
        self._retry_count = max(0, retry_count)

    def _build_url(self, path: str) -> str:
        if not isinstance(path, str) or not path:
            raise ValidationError("Path must be a non-empty string.")
        if path.startswith("http://") or path.startswith("https://"):
            raise ValidationError("Use relative paths when building store requests.")
        if self._base_url is None:
            raise ValidationError("base_url is required to build store requests.")
        normalized_path = path if path.startswith("/") else f"/{path}"
        return f"{self._base_url}{normalized_path}"

    def _require_id(self, value: str, name: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{name} must be a non-empty string.")
        if "/" in value.strip():
            raise ValidationError(f"{name} must not contain '/'.")
        return value.strip()

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._build_url(path)
        return await self._request(method, url, **kwargs)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        retries = self._retry_count if method.upper() == "GET" else 0
        attempts = retries + 1
        timeout = kwargs.pop("timeout", None) or self._timeout
        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                async with self._session.request(
                    method,
                    url,
                    timeout=timeout,
                    ssl=True,
                    **kwargs,
                ) as response:
                    self._raise_for_status(response)
                    try:
                        return await response.json()
                    except (aiohttp.ContentTypeError, ValueError) as exc:
                        raise StoreError("Response did not contain valid JSON.") from exc
            except (aiohttp.ClientError, TimeoutError) as exc:
                last_error = exc
                _LOGGER.debug("%s %s attempt %d failed: %s", method, url, attempt + 1, exc)
                if attempt >= attempts - 1:
                    raise NetworkError(
                        "Network request failed.",
                        user_message="You appear to be offline.",
                    ) from exc
        if last_error is not None:
            raise NetworkError("Network request failed.") from last_error
        raise StoreError("Request failed.")

    def _raise_for_status(self, response: aiohttp.ClientResponse) -> None:
        if 200 <= response.status < 300:
            return
        if response.status == 404:
            raise NotFoundError("Document not found.")
        raise StoreError(
            f"Store request failed with status {response.status}.",
            user_message="The server could not process the request. Please try again.",
        )

    def _normalize_base_url(self, base_url: str | None) -> str | None:
        if base_url is None:
            return None
        if not isinstance(base_url, str) or not base_url.strip():
            raise ValidationError("base_url must be a non-empty string.")
        return base_url.strip().rstrip("/")

    @abstractmethod
    async def list_documents(self, collection: str) -> list[Document]:
        """Return every document in a collection."""

    @abstractmethod
    async def get_document(self, collection: str, document_id: str) -> Document:
        """Return one document by id."""

    @abstractmethod
    async def create_document(
        self,
        collection: str,
        fields: Mapping[str, PlainValue],
    ) -> Document:
        """Create a document with a generated id."""

    @abstractmethod
    async def patch_document(
        self,
        collection: str,
        document_id: str,
        fields: Mapping[str, PlainValue],
        *,
        update_mask: Iterable[str] | None = None,
    ) -> Document:
        """Update the given fields of a document."""

    @abstractmethod
    async def run_query(
        self,
        collection: str,
        filters: Iterable[FieldFilter],
    ) -> list[Document]:
        """Return documents matching every filter."""
