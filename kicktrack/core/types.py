"""Core data types for the kicktrack application."""

from typing import Any, Dict, List, Optional, TypedDict  # noqa: UP035


class FirestoreDocument(TypedDict, total=False):
    """Generic Firestore document structure."""

    version: int
    createdAt: Any
    updatedAt: Any


class Player(TypedDict, total=False):
    """A player attached to a game or tournament.

    A ``userId`` starting with ``guest_`` marks an ephemeral guest that has
    no user document.
    """

    userId: str
    username: str
    avatarUrl: Optional[str]


class ParticipantUnit(TypedDict, total=False):
    """Anything that fields players: a game team or a tournament team."""

    players: List[Player]  # noqa: UP006


class APIResponse(TypedDict):
    """Generic API response structure."""

    success: bool
    message: str
    data: Optional[Dict[str, Any]]  # noqa: UP006
