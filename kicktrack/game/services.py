"""Service layer for the game lifecycle."""

from __future__ import annotations

import datetime
import logging
from collections import Counter
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from kicktrack.core.constants import (
    DEFAULT_TARGET_SCORE,
    GAMES_COLLECTION,
    MAX_PLAYERS_PER_TEAM,
    NO_VENUE_ID,
    TARGET_SCORES,
)
from kicktrack.core.store import DocumentStore
from kicktrack.errors import InvalidStateError, ValidationError
from kicktrack.stats.services import StatsService
from kicktrack.utils import has_guest_players, player_ids, sanitize_player, utcnow

from . import scoring
from .models import (
    ABANDONED,
    COMPLETED,
    IN_PROGRESS,
    POSITIONS,
    TEAM_COLORS,
    Game,
    GameResults,
)
from .scoring import MatchState

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


def _store(db: Client | None) -> DocumentStore:
    return DocumentStore(GAMES_COLLECTION, db, label="Game")


class GameService:
    """Handles the lifecycle of a single game.

    A game is ``in_progress`` from creation until it is won, ended manually,
    forfeited (all ``completed``) or abandoned. Every write goes through a
    read-modify-write of the game document; a concurrent write between the
    read and the write surfaces as ``ConcurrencyError``.
    """

    @staticmethod
    def _build_teams(teams: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if len(teams) != 2:  # noqa: PLR2004
            raise ValidationError("A game needs exactly two teams.")
        built = []
        for index, team in enumerate(teams):
            players = [sanitize_player(p) for p in team.get("players") or []]
            if not 1 <= len(players) <= MAX_PLAYERS_PER_TEAM:
                raise ValidationError("Each team needs one or two players.")
            if any(not p["userId"] for p in players):
                raise ValidationError("Every player needs a user ID.")
            built_team = {
                "players": players,
                "score": 0,
                "color": team.get("color") or TEAM_COLORS[index],
            }
            for key in ("name", "teamId"):
                if team.get(key):
                    built_team[key] = team[key]
            built.append(built_team)

        ids = player_ids(built)
        if len(ids) != len(set(ids)):
            raise ValidationError("A player cannot appear twice in a game.")
        return built

    @staticmethod
    def create_game(  # noqa: PLR0913
        host_id: str,
        teams: list[dict[str, Any]],
        venue_id: str | None = None,
        venue_name: str | None = None,
        target_score: int = DEFAULT_TARGET_SCORE,
        tournament_id: str | None = None,
        tournament_match_id: str | None = None,
        game_id: str | None = None,
        db: Client | None = None,
        now: datetime.datetime | None = None,
    ) -> Game:
        """Create an in-progress game and return it."""
        if target_score not in TARGET_SCORES:
            raise ValidationError("Target score must be 6 or 11.")
        built_teams = GameService._build_teams(teams)
        store = _store(db)
        game_id = game_id or store.new_id()
        started_at = now or utcnow()

        game: dict[str, Any] = {
            "gameId": game_id,
            "venueId": venue_id or NO_VENUE_ID,
            "venueName": venue_name,
            "gameType": str(target_score),
            "teams": built_teams,
            "score": [0, 0],
            "goals": [],
            "multiplier": 1,
            "status": IN_PROGRESS,
            "startedAt": started_at,
            "duration": 0,
            "hostId": host_id,
            "isGuestGame": has_guest_players(built_teams),
            "playerIds": player_ids(built_teams),
        }
        if tournament_id:
            game["tournamentId"] = tournament_id
            game["tournamentMatchId"] = tournament_match_id
        logging.info(f"Game {game_id} started ({target_score} points).")
        return store.create(game_id, game)  # type: ignore[return-value]

    @staticmethod
    def get_game(game_id: str, db: Client | None = None) -> Game:
        """Fetch a game or raise ``NotFoundError``."""
        return _store(db).load(game_id)  # type: ignore[return-value]

    @staticmethod
    def subscribe(
        game_id: str,
        callback: Callable[[dict[str, Any] | None], None],
        db: Client | None = None,
    ) -> Callable[[], None]:
        """Watch a game; returns the unsubscribe function."""
        return _store(db).subscribe(game_id, callback)

    @staticmethod
    def _check_tournament_open(game: Game, db: Client | None = None) -> None:
        """Reject results for a game whose tournament is no longer played."""
        tournament_id = game.get("tournamentId")
        if not tournament_id:
            return
        from kicktrack.tournament.services import TournamentService

        TournamentService.check_accepts_results(tournament_id, db)

    @staticmethod
    def _save_state(store: DocumentStore, game: Game, state: MatchState) -> Game:
        updated = state.apply_to(game)
        return store.save(  # type: ignore[return-value]
            game["gameId"], dict(updated), expected_version=game.get("version")
        )

    @staticmethod
    def add_goal(  # noqa: PLR0913
        game_id: str,
        team_index: int,
        scorer_id: str,
        scorer_name: str,
        position: str,
        goal_type: str = "normal",
        db: Client | None = None,
        now: datetime.datetime | None = None,
    ) -> Game:
        """Record a goal; a winning goal completes the game."""
        store = _store(db)
        game: Game = store.load(game_id)  # type: ignore[assignment]
        state = MatchState.from_game(game)
        if team_index in (0, 1):
            scorers = {p.get("userId") for p in game["teams"][team_index]["players"]}
            if scorer_id not in scorers:
                raise ValidationError("The scorer does not play for that team.")

        new_state, goal = scoring.apply_goal(
            state, team_index, scorer_id, scorer_name, position, goal_type, now
        )
        GameService._check_tournament_open(game, db)
        saved = GameService._save_state(store, game, new_state)
        if new_state.status == COMPLETED:
            logging.info(f"Game {game_id} won by team {team_index} ({goal.id}).")
            GameService._on_completed(saved, db)
        return saved

    @staticmethod
    def remove_last_goal(game_id: str, db: Client | None = None) -> Game:
        """Undo the most recent goal of an in-progress game."""
        store = _store(db)
        game: Game = store.load(game_id)  # type: ignore[assignment]
        state = MatchState.from_game(game)
        new_state = scoring.undo_last_goal(state)
        if new_state is state:
            return game
        return GameService._save_state(store, game, new_state)

    @staticmethod
    def end_game(
        game_id: str, db: Client | None = None, now: datetime.datetime | None = None
    ) -> GameResults:
        """End a game on the current score and return its results."""
        store = _store(db)
        game: Game = store.load(game_id)  # type: ignore[assignment]
        state = MatchState.from_game(game)
        if game.get("tournamentId") and state.scores[0] == state.scores[1]:
            raise ValidationError("A tournament match cannot end in a draw.")

        new_state = scoring.end_game(state, now)
        GameService._check_tournament_open(game, db)
        saved = GameService._save_state(store, game, new_state)
        GameService._on_completed(saved, db)
        return GameService.calculate_game_results(saved)

    @staticmethod
    def forfeit_game(
        game_id: str,
        forfeiting_team_index: int,
        db: Client | None = None,
        now: datetime.datetime | None = None,
    ) -> Game:
        """Award the game to the team that did not forfeit."""
        store = _store(db)
        game: Game = store.load(game_id)  # type: ignore[assignment]
        state = MatchState.from_game(game)
        new_state = scoring.forfeit(state, forfeiting_team_index, now)
        GameService._check_tournament_open(game, db)
        saved = GameService._save_state(store, game, new_state)
        logging.info(f"Game {game_id} forfeited by team {forfeiting_team_index}.")
        GameService._on_completed(saved, db)
        return saved

    @staticmethod
    def abandon_game(game_id: str, db: Client | None = None) -> Game:
        """Cancel an in-progress game. No statistics are recorded."""
        store = _store(db)
        game: Game = store.load(game_id)  # type: ignore[assignment]
        state = MatchState.from_game(game)
        if state.status != IN_PROGRESS:
            raise InvalidStateError(f"Game is {state.status}, not in progress.")
        game_data = {**game, "status": ABANDONED}
        saved = store.save(game_id, game_data, expected_version=game.get("version"))

        tournament_id = game.get("tournamentId")
        if tournament_id:
            from kicktrack.tournament.services import TournamentService

            try:
                TournamentService.release_match(
                    tournament_id, game["tournamentMatchId"], game_id, db=db
                )
            except Exception as e:
                logging.error(
                    f"Could not release match of abandoned game {game_id}: {e}"
                )
        return saved  # type: ignore[return-value]

    @staticmethod
    def _on_completed(game: Game, db: Client | None = None) -> None:
        """Run the end-of-game side effects, once per completion."""
        teams = game["teams"]
        winner = game.get("winner")
        if winner is not None:
            try:
                goals = game.get("goals") or []
                StatsService.record_game_stats(teams, goals, winner, db)
            except Exception as e:
                logging.error(f"Stats update failed for game {game['gameId']}: {e}")

        StatsService.increment_venue_stats(
            game.get("venueId"),
            sum(len(team.get("players") or []) for team in teams),
            db,
        )

        tournament_id = game.get("tournamentId")
        if tournament_id and winner is not None:
            from kicktrack.tournament.services import TournamentService

            try:
                TournamentService.complete_tournament_match(
                    tournament_id,
                    game["tournamentMatchId"],
                    game["gameId"],
                    teams[winner].get("teamId", ""),
                    (game["score"][0], game["score"][1]),
                    db=db,
                )
            except Exception as e:
                logging.error(
                    f"Tournament update failed for game {game['gameId']}: {e}"
                )

    @staticmethod
    def calculate_game_results(game: Game) -> GameResults:
        """Summarise goals per player and position and pick the MVP."""
        goals = game.get("goals") or []
        goals_by_player = dict(Counter(goal.get("scoredBy") for goal in goals))
        goals_by_position = dict.fromkeys(POSITIONS, 0)
        for goal in goals:
            if goal.get("position") in goals_by_position:
                goals_by_position[goal["position"]] += 1

        mvp = None
        max_goals = 0
        for team in game.get("teams") or []:
            for player in team.get("players") or []:
                if mvp is None:
                    mvp = player
                scored = goals_by_player.get(player.get("userId"), 0)
                if scored > max_goals:
                    max_goals = scored
                    mvp = player

        return {
            "game": game,
            "mvp": mvp,
            "goalsByPlayer": goals_by_player,
            "goalsByPosition": goals_by_position,
        }
