"""Firestore REST document store."""

from .api import FirestoreStore

__all__ = ["FirestoreStore"]
