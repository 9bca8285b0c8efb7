"""Common utilities for tests."""

from __future__ import annotations

import datetime
from typing import Any, Optional

from mockfirestore import CollectionReference, Query
from mockfirestore.document import DocumentReference

NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


def patch_mockfirestore() -> None:
    """Teach mockfirestore FieldFilter queries and transactional reads."""

    def where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    for cls in (CollectionReference, Query):
        if not hasattr(cls, "_where"):
            cls._where = cls.where
            cls.where = where

    if not hasattr(DocumentReference, "_orig_get"):
        DocumentReference._orig_get = DocumentReference.get

        def get(self: Any, transaction: Any = None) -> Any:
            return self._orig_get()

        DocumentReference.get = get


def make_player(user_id: str, username: Optional[str] = None) -> dict[str, Any]:
    """Build a player entry."""
    return {"userId": user_id, "username": username or user_id, "avatarUrl": None}


def make_teams(*rosters: list[str]) -> list[dict[str, Any]]:
    """Build game teams from lists of user IDs."""
    return [{"players": [make_player(uid) for uid in roster]} for roster in rosters]


def make_tournament_teams(count: int, size: int = 1) -> list[dict[str, Any]]:
    """Build ``count`` tournament teams named team0, team1, ..."""
    return [
        {
            "teamId": f"team{i}",
            "name": f"Team {i}",
            "players": [make_player(f"p{i}_{j}") for j in range(size)],
        }
        for i in range(count)
    ]
