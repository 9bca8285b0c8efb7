"""Service layer for player and venue statistics."""

from __future__ import annotations

import datetime
import logging
from collections import Counter
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from kicktrack.core.constants import (
    GAME_COMPLETED,
    GAMES_COLLECTION,
    NO_VENUE_ID,
    USERS_COLLECTION,
    VENUES_COLLECTION,
)
from kicktrack.utils import has_guest_players, utcnow

from .calculator import PlayerStatsCalculator

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction


EMPTY_STATS = {
    "totalGames": 0,
    "wins": 0,
    "losses": 0,
    "goalsScored": 0,
    "goalsConceded": 0,
    "winRate": 0,
}


class StatsService:
    """Aggregates finished games into user and venue statistics."""

    @staticmethod
    def merge_player_stats(
        current: dict[str, Any] | None,
        is_winner: bool,
        goals_scored: int,
        goals_conceded: int,
        today: str,
    ) -> dict[str, Any]:
        """Fold one finished game into a player's stats block."""
        stats = {**EMPTY_STATS, **(current or {})}
        history = dict(stats.get("history") or {})
        daily = history.get(today) or {
            "date": today,
            "gamesPlayed": 0,
            "wins": 0,
            "goalsScored": 0,
        }
        history[today] = {
            "date": today,
            "gamesPlayed": daily["gamesPlayed"] + 1,
            "wins": daily["wins"] + (1 if is_winner else 0),
            "goalsScored": daily["goalsScored"] + goals_scored,
        }

        total_games = stats["totalGames"] + 1
        wins = stats["wins"] + (1 if is_winner else 0)
        return {
            "totalGames": total_games,
            "wins": wins,
            "losses": stats["losses"] + (0 if is_winner else 1),
            "goalsScored": stats["goalsScored"] + goals_scored,
            "goalsConceded": stats["goalsConceded"] + goals_conceded,
            "winRate": wins / total_games,
            "history": history,
        }

    @staticmethod
    def _update_player_stats_in_transaction(  # noqa: PLR0913
        transaction: Transaction,
        player_ref: DocumentReference,
        is_winner: bool,
        goals_scored: int,
        goals_conceded: int,
        today: str,
    ) -> bool:
        """Read, merge and write one player's stats inside a transaction."""
        snapshot = cast("DocumentSnapshot", player_ref.get(transaction=transaction))
        if not snapshot.exists:
            return False
        user_data = snapshot.to_dict() or {}
        new_stats = StatsService.merge_player_stats(
            user_data.get("stats"), is_winner, goals_scored, goals_conceded, today
        )
        transaction.update(player_ref, {"stats": new_stats})
        return True

    @staticmethod
    def record_game_stats(
        teams: list[dict[str, Any]],
        goals: list[dict[str, Any]],
        winner: int,
        db: Client | None = None,
        today: datetime.date | None = None,
    ) -> int:
        """Update every player's stats after a won game.

        Games with a guest are skipped for all players. Returns the number of
        user documents updated.
        """
        if has_guest_players(teams):
            logging.info("Skipping stats update: game contains guest players.")
            return 0
        if db is None:
            db = firestore.client()

        day = (today or utcnow().date()).isoformat()
        goals_by_player = Counter(goal.get("scoredBy") for goal in goals)
        updated = 0
        for team_index, team in enumerate(teams):
            conceded = int(teams[1 - team_index].get("score", 0))
            for player in team.get("players") or []:
                player_ref = db.collection(USERS_COLLECTION).document(player["userId"])
                update = firestore.transactional(
                    StatsService._update_player_stats_in_transaction
                )
                if update(
                    db.transaction(),
                    player_ref,
                    team_index == winner,
                    goals_by_player.get(player["userId"], 0),
                    conceded,
                    day,
                ):
                    updated += 1
        return updated

    @staticmethod
    def increment_venue_stats(
        venue_id: str | None, players_count: int, db: Client | None = None
    ) -> None:
        """Bump a venue's game counter. Failures are logged, never raised."""
        if not venue_id or venue_id == NO_VENUE_ID:
            return
        if db is None:
            db = firestore.client()
        try:
            db.collection(VENUES_COLLECTION).document(venue_id).update(
                {
                    "stats.totalGames": firestore.Increment(1),
                    "stats.lastGameAt": firestore.SERVER_TIMESTAMP,
                }
            )
        except Exception as e:
            logging.error(
                f"Venue stats update failed for {venue_id} "
                f"({players_count} players): {e}"
            )

    @staticmethod
    def get_player_games(
        user_id: str, db: Client | None = None
    ) -> list[dict[str, Any]]:
        """Fetch the completed games a user played in."""
        if db is None:
            db = firestore.client()
        query = (
            db.collection(GAMES_COLLECTION)
            .where(filter=firestore.FieldFilter("playerIds", "array_contains", user_id))
            .where(filter=firestore.FieldFilter("status", "==", GAME_COMPLETED))
        )
        return [doc.to_dict() for doc in query.stream()]

    @staticmethod
    def get_player_stats(
        user_id: str, db: Client | None = None, **filters: str | None
    ) -> dict[str, Any]:
        """Return the stored stats block and the advanced stats of a user."""
        if db is None:
            db = firestore.client()
        user_ref = db.collection(USERS_COLLECTION).document(user_id)
        user_doc = cast("DocumentSnapshot", user_ref.get())
        stored = (user_doc.to_dict() or {}).get("stats") if user_doc.exists else None
        games = StatsService.get_player_games(user_id, db)
        return {
            "userId": user_id,
            "stats": {**EMPTY_STATS, **(stored or {})},
            "advanced": PlayerStatsCalculator.calculate(games, user_id, **filters),
        }
