"""Remote document store interface and implementations."""

from .base import Document, DocumentStore, FieldFilter, FilterOp
from .firestore import FirestoreStore

__all__ = ["Document", "DocumentStore", "FieldFilter", "FilterOp", "FirestoreStore"]
