"""Utility functions for the application."""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from typing import Any

from .core.constants import GUEST_PREFIX


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: Any) -> datetime.datetime | None:
    """Coerce a stored timestamp to an aware UTC datetime."""
    if value is None:
        return None
    if hasattr(value, "to_datetime"):
        value = value.to_datetime()
    if isinstance(value, (int, float)):
        return datetime.datetime.fromtimestamp(value, datetime.timezone.utc)
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def is_guest(player: dict[str, Any]) -> bool:
    """Check whether a player is an ephemeral guest."""
    return str(player.get("userId") or "").startswith(GUEST_PREFIX)


def has_guest_players(units: Iterable[dict[str, Any]]) -> bool:
    """Check whether any team holds a guest player."""
    return any(is_guest(p) for unit in units for p in unit.get("players") or [])


def player_ids(units: Iterable[dict[str, Any]]) -> list[str]:
    """Flatten the user IDs of every player fielded by the given teams."""
    return [
        p["userId"]
        for unit in units
        for p in unit.get("players") or []
        if p.get("userId")
    ]


def sanitize_player(player: dict[str, Any]) -> dict[str, Any]:
    """Keep only the stored player fields, with an explicit null avatar."""
    return {
        "userId": player.get("userId"),
        "username": player.get("username"),
        "avatarUrl": player.get("avatarUrl") or None,
    }
