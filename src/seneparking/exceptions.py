"""Library exceptions."""

from __future__ import annotations


class SeneParkingError(Exception):
    """Base exception for the library."""

    error_type = "unknown"
    default_code: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        detail: str | None = None,
        user_message: str | None = None,
    ) -> None:
        text = message if message is not None else detail
        super().__init__(text or "")
        self.error_code = error_code or self.default_code
        self.detail = detail if detail is not None else text
        self.user_message = user_message


class ValidationError(SeneParkingError):
    """Raised when inputs fail validation."""

    error_type = "validation"
    default_code = "validation_error"


class NetworkError(SeneParkingError):
    """Raised when network communication fails."""

    error_type = "network"
    default_code = "network_error"


class StoreError(SeneParkingError):
    """Raised when the remote document store returns an error."""

    error_type = "store"
    default_code = "store_error"


class NotFoundError(StoreError):
    """Raised when a requested document does not exist."""

    default_code = "not_found"


class SerializationError(SeneParkingError):
    """Raised when a document does not have the expected shape."""

    error_type = "serialization"
    default_code = "serialization_error"


class ConfigError(SeneParkingError):
    """Raised when the library is misconfigured."""

    error_type = "config"
    default_code = "config_error"
