"""Core module for the kicktrack application."""

from .store import DocumentStore
from .types import APIResponse, FirestoreDocument, Player

__all__ = ["APIResponse", "DocumentStore", "FirestoreDocument", "Player"]
