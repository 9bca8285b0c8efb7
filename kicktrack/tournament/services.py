"""Service layer for tournament business logic."""

from __future__ import annotations

import datetime
import logging
import random
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from kicktrack.core.constants import (
    BRACKET_MAX_TEAMS,
    DEFAULT_TARGET_SCORE,
    GAME_ABANDONED,
    GAME_COMPLETED,
    GAMES_COLLECTION,
    GUEST_PREFIX,
    MIN_TOURNAMENT_TEAMS,
    NO_VENUE_ID,
    ROUND_ROBIN_MAX_TEAMS,
    TARGET_SCORES,
    TOURNAMENT_TTL_MINUTES,
    TOURNAMENTS_COLLECTION,
)
from kicktrack.core.store import DocumentStore
from kicktrack.errors import (
    DuplicateResourceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from kicktrack.game.services import GameService
from kicktrack.utils import as_utc, sanitize_player, utcnow

from . import bracket as bracket_engine
from . import round_robin
from .models import (
    BRACKET,
    CANCELLED,
    COMPLETED,
    FORMAT_1V1,
    FORMATS,
    IN_PROGRESS,
    MATCH_COMPLETED,
    MATCH_IN_PROGRESS,
    MATCH_PENDING,
    MODES,
    ROUND_ROBIN,
    TEAM_SETUP,
    WAITING,
    Tournament,
    TournamentMatch,
    TournamentTeam,
    is_placeholder,
    players_per_team,
)
from .utils import (
    assigned_player_ids,
    find_match,
    find_team,
    game_teams,
    new_id,
    team_order,
)
from .utils import get_next_pending_match as _next_pending_match

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from kicktrack.game.models import Game


def _store(db: Client | None) -> DocumentStore:
    return DocumentStore(TOURNAMENTS_COLLECTION, db, label="Tournament")


class TournamentService:
    """Handles the tournament lifecycle.

    ``waiting -> team_setup -> in_progress -> completed``, with ``cancelled``
    reachable from any non-terminal state. Writes against a finished or
    cancelled tournament raise ``InvalidStateError``.
    """

    @staticmethod
    def _require_status(tournament: Tournament, *statuses: str) -> None:
        status = tournament.get("status")
        if status not in statuses:
            raise InvalidStateError(
                f"Tournament is {status}; expected {' or '.join(statuses)}."
            )

    @staticmethod
    def _save(store: DocumentStore, tournament: Tournament) -> Tournament:
        return store.save(  # type: ignore[return-value]
            tournament["tournamentId"],
            dict(tournament),
            expected_version=tournament.get("version"),
        )

    @staticmethod
    def _solo_teams(
        players: list[dict[str, Any]], rng: random.Random | None = None
    ) -> list[TournamentTeam]:
        return [
            {"teamId": new_id(rng), "name": p.get("username") or "", "players": [p]}
            for p in players
        ]

    @staticmethod
    def _team_players(
        tournament: Tournament, player_ids: Sequence[str], exclude_team_id: str = ""
    ) -> list[dict[str, Any]]:
        """Resolve and validate the players of a new or edited team."""
        if len(set(player_ids)) != len(player_ids):
            raise ValidationError("A player cannot be listed twice in a team.")
        size = players_per_team(tournament.get("format", FORMAT_1V1))
        if len(player_ids) != size:
            raise ValidationError(f"A team needs exactly {size} player(s).")

        by_id = {p["userId"]: p for p in tournament.get("players") or []}
        missing = [pid for pid in player_ids if pid not in by_id]
        if missing:
            raise NotFoundError("Some players are not in the tournament.")
        taken = assigned_player_ids(tournament.get("teams") or [], exclude_team_id)
        if taken.intersection(player_ids):
            raise ValidationError("Some players already belong to a team.")
        return [by_id[pid] for pid in player_ids]

    @staticmethod
    def create_tournament(  # noqa: PLR0913
        host_id: str,
        host_name: str,
        venue_id: str | None = None,
        venue_name: str | None = None,
        tournament_format: str = FORMAT_1V1,
        mode: str = ROUND_ROBIN,
        target_score: int = DEFAULT_TARGET_SCORE,
        ttl_minutes: int = TOURNAMENT_TTL_MINUTES,
        host_avatar_url: str | None = None,
        db: Client | None = None,
        now: datetime.datetime | None = None,
    ) -> Tournament:
        """Open a tournament lobby with the host as its first player."""
        if tournament_format not in FORMATS:
            raise ValidationError(f"Unknown format: {tournament_format}.")
        if mode not in MODES:
            raise ValidationError(f"Unknown mode: {mode}.")
        if target_score not in TARGET_SCORES:
            raise ValidationError("Target score must be 6 or 11.")

        store = _store(db)
        tournament_id = store.new_id()
        created_at = now or utcnow()
        host = sanitize_player(
            {"userId": host_id, "username": host_name, "avatarUrl": host_avatar_url}
        )
        max_teams = ROUND_ROBIN_MAX_TEAMS if mode == ROUND_ROBIN else BRACKET_MAX_TEAMS
        tournament: dict[str, Any] = {
            "tournamentId": tournament_id,
            "name": f"Tournoi de {host_name}",
            "format": tournament_format,
            "mode": mode,
            "targetScore": target_score,
            "venueId": venue_id or NO_VENUE_ID,
            "venueName": venue_name,
            "hostId": host_id,
            "hostName": host_name,
            "maxTeams": max_teams,
            "players": [host],
            "teams": [],
            "matches": [],
            "createdAt": created_at,
            "expiresAt": created_at + datetime.timedelta(minutes=ttl_minutes),
            "status": WAITING,
        }
        logging.info(f"Tournament {tournament_id} created ({mode}).")
        return store.create(tournament_id, tournament)  # type: ignore[return-value]

    @staticmethod
    def get_tournament(tournament_id: str, db: Client | None = None) -> Tournament:
        """Fetch a tournament or raise ``NotFoundError``."""
        return _store(db).load(tournament_id)  # type: ignore[return-value]

    @staticmethod
    def subscribe(
        tournament_id: str,
        callback: Callable[[dict[str, Any] | None], None],
        db: Client | None = None,
    ) -> Callable[[], None]:
        """Watch a tournament; returns the unsubscribe function."""
        return _store(db).subscribe(tournament_id, callback)

    @staticmethod
    def join_tournament(
        tournament_id: str,
        player: dict[str, Any],
        db: Client | None = None,
        now: datetime.datetime | None = None,
    ) -> Tournament:
        """Add a player to the lobby. Joining twice is a no-op."""
        if not player.get("userId"):
            raise ValidationError("A player needs a user ID.")
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        players = tournament.get("players") or []
        if any(p.get("userId") == player["userId"] for p in players):
            return tournament

        if tournament.get("status") not in (WAITING, TEAM_SETUP):
            raise InvalidStateError("Tournament has already started.")
        expires_at = as_utc(tournament.get("expiresAt"))
        if expires_at is not None and (now or utcnow()) > expires_at:
            raise InvalidStateError("Tournament has expired.")

        tournament["players"] = [*players, sanitize_player(player)]
        return TournamentService._save(store, tournament)

    @staticmethod
    def add_guest(
        tournament_id: str,
        guest_name: str,
        db: Client | None = None,
        now: datetime.datetime | None = None,
        rng: random.Random | None = None,
    ) -> Tournament:
        """Add a guest player, who never gets stats."""
        if not guest_name or not guest_name.strip():
            raise ValidationError("A guest needs a name.")
        guest = {
            "userId": f"{GUEST_PREFIX}{new_id(rng)}",
            "username": guest_name.strip(),
            "avatarUrl": None,
        }
        return TournamentService.join_tournament(tournament_id, guest, db, now)

    @staticmethod
    def remove_player(
        tournament_id: str, player_id: str, db: Client | None = None
    ) -> Tournament:
        """Remove a player from the lobby and from any team they were in."""
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        TournamentService._require_status(tournament, WAITING, TEAM_SETUP)
        if player_id == tournament.get("hostId"):
            raise ValidationError("The host cannot be removed from the tournament.")
        players = tournament.get("players") or []
        if not any(p.get("userId") == player_id for p in players):
            raise NotFoundError("Player not found in tournament.")

        tournament["players"] = [p for p in players if p.get("userId") != player_id]
        teams = []
        for team in tournament.get("teams") or []:
            members = team.get("players") or []
            kept = [p for p in members if p.get("userId") != player_id]
            if kept:
                teams.append({**team, "players": kept})
        tournament["teams"] = teams  # type: ignore[typeddict-item]
        return TournamentService._save(store, tournament)

    @staticmethod
    def start_team_setup(
        tournament_id: str,
        db: Client | None = None,
        rng: random.Random | None = None,
    ) -> Tournament:
        """Close the lobby. In 1v1 every player becomes a team of one."""
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        TournamentService._require_status(tournament, WAITING)
        if tournament.get("format") == FORMAT_1V1:
            tournament["teams"] = TournamentService._solo_teams(
                tournament.get("players") or [], rng
            )
        tournament["status"] = TEAM_SETUP
        logging.info(f"Tournament {tournament_id} moved to team setup.")
        return TournamentService._save(store, tournament)

    @staticmethod
    def create_team(
        tournament_id: str,
        team_name: str,
        player_ids: Sequence[str],
        db: Client | None = None,
        rng: random.Random | None = None,
    ) -> TournamentTeam:
        """Group unassigned players into a named team."""
        if not team_name or not team_name.strip():
            raise ValidationError("A team needs a name.")
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        TournamentService._require_status(tournament, TEAM_SETUP)
        teams = tournament.get("teams") or []
        if len(teams) >= tournament.get("maxTeams", BRACKET_MAX_TEAMS):
            raise ValidationError("The tournament is full.")
        if any(t.get("name", "").lower() == team_name.strip().lower() for t in teams):
            raise DuplicateResourceError("A team with this name already exists.")

        players = TournamentService._team_players(tournament, player_ids)
        team: TournamentTeam = {
            "teamId": new_id(rng),
            "name": team_name.strip(),
            "players": players,  # type: ignore[typeddict-item]
        }
        tournament["teams"] = [*teams, team]
        TournamentService._save(store, tournament)
        return team

    @staticmethod
    def update_team(
        tournament_id: str,
        team_id: str,
        team_name: str,
        player_ids: Sequence[str],
        db: Client | None = None,
    ) -> Tournament:
        """Rename a team and replace its players."""
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        TournamentService._require_status(tournament, TEAM_SETUP)
        teams = tournament.get("teams") or []
        if find_team(teams, team_id) is None:
            raise NotFoundError("Team not found.")
        players = TournamentService._team_players(tournament, player_ids, team_id)

        name = team_name.strip()
        tournament["teams"] = [
            {**team, "name": name or team.get("name", ""), "players": players}
            if team.get("teamId") == team_id
            else team
            for team in teams
        ]
        return TournamentService._save(store, tournament)

    @staticmethod
    def delete_team(
        tournament_id: str, team_id: str, db: Client | None = None
    ) -> Tournament:
        """Disband a team; its players become unassigned."""
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        TournamentService._require_status(tournament, TEAM_SETUP)
        teams = tournament.get("teams") or []
        if find_team(teams, team_id) is None:
            raise NotFoundError("Team not found.")
        tournament["teams"] = [t for t in teams if t.get("teamId") != team_id]
        return TournamentService._save(store, tournament)

    @staticmethod
    def auto_assign_teams(
        tournament_id: str,
        db: Client | None = None,
        rng: random.Random | None = None,
    ) -> Tournament:
        """Rebuild the one-player teams of a 1v1 tournament."""
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        if tournament.get("format") != FORMAT_1V1:
            raise ValidationError("Automatic teams are only available in 1v1.")
        TournamentService._require_status(tournament, TEAM_SETUP)
        tournament["teams"] = TournamentService._solo_teams(
            tournament.get("players") or [], rng
        )
        return TournamentService._save(store, tournament)

    @staticmethod
    def start_tournament(
        tournament_id: str,
        db: Client | None = None,
        rng: random.Random | None = None,
    ) -> Tournament:
        """Generate the fixtures and open play.

        Incomplete teams are dropped. Round robin fills ``standings`` and
        bracket mode fills ``bracket``; both fill the flat ``matches`` list.
        """
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        TournamentService._require_status(tournament, TEAM_SETUP)
        size = players_per_team(tournament.get("format", FORMAT_1V1))
        teams = [
            t
            for t in tournament.get("teams") or []
            if len(t.get("players") or []) == size
        ]
        if len(teams) < MIN_TOURNAMENT_TEAMS:
            raise ValidationError("At least two complete teams are needed.")

        rng = rng or random.Random()
        if tournament.get("mode") == BRACKET:
            if len(teams) > BRACKET_MAX_TEAMS:
                raise ValidationError(
                    f"A bracket is limited to {BRACKET_MAX_TEAMS} teams."
                )
            bracket = bracket_engine.generate_bracket(teams, rng)
            tournament["bracket"] = bracket
            tournament["matches"] = bracket_engine.flatten(bracket)
            tournament.pop("standings", None)
        else:
            if len(teams) > ROUND_ROBIN_MAX_TEAMS:
                raise ValidationError(
                    f"Round robin is limited to {ROUND_ROBIN_MAX_TEAMS} teams."
                )
            tournament["matches"] = round_robin.generate_fixtures(teams, rng)
            tournament["standings"] = round_robin.initialize_standings(teams)
            tournament.pop("bracket", None)

        tournament["teams"] = teams
        tournament["status"] = IN_PROGRESS
        tournament["currentMatchIndex"] = 0
        logging.info(
            f"Tournament {tournament_id} started with {len(teams)} teams "
            f"({len(tournament['matches'])} matches)."
        )
        return TournamentService._save(store, tournament)

    @staticmethod
    def _set_match(tournament: Tournament, match_id: str, **fields: Any) -> None:
        """Update a match in ``matches`` and, in bracket mode, in ``bracket``."""
        matches = tournament.get("matches") or []
        index = find_match(matches, match_id)
        matches[index] = {**matches[index], **fields}  # type: ignore[typeddict-item]
        for bracket_round in tournament.get("bracket") or []:
            round_index = find_match(bracket_round["matches"], match_id)
            if round_index != -1:
                bracket_round["matches"][round_index] = matches[index]

    @staticmethod
    def start_tournament_match(
        tournament_id: str,
        match_id: str,
        db: Client | None = None,
        now: datetime.datetime | None = None,
    ) -> tuple[Tournament, Game]:
        """Start a pending match and create the game that plays it."""
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        TournamentService._require_status(tournament, IN_PROGRESS)
        matches = tournament.get("matches") or []
        index = find_match(matches, match_id)
        if index == -1:
            raise NotFoundError("Match not found.")
        match = matches[index]
        status = match.get("status")
        if status == MATCH_IN_PROGRESS and TournamentService._game_is_lost(
            match.get("gameId"), db
        ):
            logging.warning(f"Restarting match {match_id}; its game is gone.")
        elif status != MATCH_PENDING:
            raise InvalidStateError(f"Match is {status}, not pending.")
        if is_placeholder(match.get("team1")) or is_placeholder(match.get("team2")):
            raise InvalidStateError("Match opponents are not known yet.")

        games = DocumentStore(GAMES_COLLECTION, db)
        game_id = games.new_id()
        game = GameService.create_game(
            host_id=tournament["hostId"],
            teams=game_teams(match),
            venue_id=tournament.get("venueId"),
            venue_name=tournament.get("venueName"),
            target_score=int(tournament.get("targetScore", DEFAULT_TARGET_SCORE)),
            tournament_id=tournament_id,
            tournament_match_id=match_id,
            game_id=game_id,
            db=db,
            now=now,
        )

        TournamentService._set_match(
            tournament, match_id, status=MATCH_IN_PROGRESS, gameId=game_id
        )
        tournament["currentMatchIndex"] = index
        try:
            saved = TournamentService._save(store, tournament)
        except Exception:
            games.delete(game_id)
            raise
        return saved, game

    @staticmethod
    def _game_is_lost(game_id: str | None, db: Client | None = None) -> bool:
        """Whether a started match's game was abandoned or never written."""
        if not game_id:
            return True
        try:
            game = GameService.get_game(game_id, db)
        except NotFoundError:
            return True
        return game.get("status") == GAME_ABANDONED

    @staticmethod
    def release_match(
        tournament_id: str, match_id: str, game_id: str, db: Client | None = None
    ) -> Tournament | None:
        """Put a started match back to pending once its game is abandoned.

        Does nothing when the tournament is over or the match has moved on
        to another game.
        """
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        if tournament.get("status") != IN_PROGRESS:
            return None
        matches = tournament.get("matches") or []
        index = find_match(matches, match_id)
        if index == -1:
            raise NotFoundError("Match not found.")
        match = matches[index]
        if match.get("status") != MATCH_IN_PROGRESS or match.get("gameId") != game_id:
            return None

        TournamentService._set_match(
            tournament, match_id, status=MATCH_PENDING, gameId=None
        )
        logging.info(f"Match {match_id} is pending again; game {game_id} abandoned.")
        return TournamentService._save(store, tournament)

    @staticmethod
    def check_accepts_results(tournament_id: str, db: Client | None = None) -> None:
        """Raise ``InvalidStateError`` unless the tournament is being played."""
        try:
            tournament = TournamentService.get_tournament(tournament_id, db)
        except NotFoundError as e:
            raise InvalidStateError("The game's tournament no longer exists.") from e
        TournamentService._require_status(tournament, IN_PROGRESS)

    @staticmethod
    def complete_tournament_match(  # noqa: PLR0913
        tournament_id: str,
        match_id: str,
        game_id: str,
        winner_team_id: str,
        score: Sequence[int],
        db: Client | None = None,
    ) -> Tournament:
        """Record a match result and finish the tournament when it was the last.

        Re-delivering a result already recorded with the same winner is a
        no-op; a different winner raises ``InvalidStateError``.
        """
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        matches = tournament.get("matches") or []
        index = find_match(matches, match_id)
        if index == -1:
            raise NotFoundError("Match not found.")
        match: TournamentMatch = matches[index]

        if match.get("status") == MATCH_COMPLETED:
            if match.get("winnerId") == winner_team_id:
                logging.info(f"Match {match_id} already recorded; ignoring replay.")
                return tournament
            raise InvalidStateError("Match already has a different winner.")
        TournamentService._require_status(tournament, IN_PROGRESS)

        team1_id = match["team1"]["teamId"]
        team2_id = match["team2"]["teamId"]
        if winner_team_id not in (team1_id, team2_id):
            raise ValidationError("The winner must be one of the match's teams.")

        if tournament.get("mode") == BRACKET:
            bracket, is_complete = bracket_engine.advance_bracket(
                tournament.get("bracket") or [],
                match_id,
                winner_team_id,
                score,
                game_id,
            )
            tournament["bracket"] = bracket
            tournament["matches"] = bracket_engine.flatten(bracket)
        else:
            TournamentService._set_match(
                tournament,
                match_id,
                status=MATCH_COMPLETED,
                winnerId=winner_team_id,
                score=list(score),
                gameId=game_id,
            )
            tournament["standings"] = round_robin.apply_result(
                tournament.get("standings")
                or round_robin.initialize_standings(tournament.get("teams") or []),
                team1_id,
                team2_id,
                score,
                winner_team_id,
                team_order(tournament.get("teams") or []),
            )
            is_complete = all(
                m.get("status") == MATCH_COMPLETED for m in tournament["matches"]
            )

        if is_complete:
            tournament["status"] = COMPLETED
            logging.info(f"Tournament {tournament_id} completed.")
        return TournamentService._save(store, tournament)

    @staticmethod
    def sync_match_result(
        tournament_id: str, match_id: str, db: Client | None = None
    ) -> Tournament:
        """Re-apply the result of a match's finished game.

        Recovers a tournament whose completion callback failed after the game
        itself was saved.
        """
        tournament = TournamentService.get_tournament(tournament_id, db)
        matches = tournament.get("matches") or []
        index = find_match(matches, match_id)
        if index == -1:
            raise NotFoundError("Match not found.")
        game_id = matches[index].get("gameId")
        if not game_id:
            raise InvalidStateError("Match has not been started.")

        game = GameService.get_game(game_id, db)
        winner = game.get("winner")
        if game.get("status") != GAME_COMPLETED or winner is None:
            raise InvalidStateError("The match's game is not finished.")
        return TournamentService.complete_tournament_match(
            tournament_id,
            match_id,
            game_id,
            game["teams"][winner].get("teamId", ""),
            game["score"],
            db=db,
        )

    @staticmethod
    def get_next_pending_match(tournament: Tournament) -> TournamentMatch | None:
        """Return the next match that can be started, if any."""
        return _next_pending_match(tournament)

    @staticmethod
    def cancel_tournament(tournament_id: str, db: Client | None = None) -> Tournament:
        """Cancel a tournament that has not finished."""
        store = _store(db)
        tournament: Tournament = store.load(tournament_id)  # type: ignore[assignment]
        TournamentService._require_status(tournament, WAITING, TEAM_SETUP, IN_PROGRESS)
        tournament["status"] = CANCELLED
        logging.info(f"Tournament {tournament_id} cancelled.")
        return TournamentService._save(store, tournament)

    @staticmethod
    def delete_tournament(tournament_id: str, db: Client | None = None) -> None:
        """Delete a tournament document."""
        store = _store(db)
        store.load(tournament_id)
        store.delete(tournament_id)
