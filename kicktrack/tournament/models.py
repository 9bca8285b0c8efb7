"""Data models for the tournament blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict

from kicktrack.core.types import FirestoreDocument, ParticipantUnit, Player

# Formats and modes
FORMAT_1V1 = "1v1"
FORMAT_2V2 = "2v2"
FORMATS = (FORMAT_1V1, FORMAT_2V2)
ROUND_ROBIN = "round_robin"
BRACKET = "bracket"
MODES = (ROUND_ROBIN, BRACKET)

# Tournament statuses
WAITING = "waiting"
TEAM_SETUP = "team_setup"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
CANCELLED = "cancelled"

# Match statuses
MATCH_PENDING = "pending"
MATCH_IN_PROGRESS = "in_progress"
MATCH_COMPLETED = "completed"
MATCH_BYE = "bye"

TBD_NAME = "TBD"
BYE_NAME = "BYE"


class TournamentTeam(ParticipantUnit, total=False):
    """The unit of competition; a 1v1 player is wrapped as a one-player team."""

    teamId: str
    name: str
    color: str


class TournamentMatch(TypedDict, total=False):
    """A fixture between two tournament teams."""

    matchId: str
    gameId: Optional[str]
    team1: TournamentTeam
    team2: TournamentTeam
    winnerId: str
    score: list[int]
    status: str
    round: int
    matchNumber: int


class TournamentStanding(TypedDict):
    """A round robin table row."""

    teamId: str
    teamName: str
    players: list[Player]
    played: int
    wins: int
    losses: int
    goalsFor: int
    goalsAgainst: int
    points: int


class BracketRound(TypedDict):
    """One round of a single-elimination bracket."""

    roundNumber: int
    roundName: str
    matches: list[TournamentMatch]


class Tournament(FirestoreDocument, total=False):
    """A tournament document in Firestore."""

    tournamentId: str
    name: str
    hostId: str
    hostName: str
    venueId: str
    venueName: Optional[str]
    format: str
    targetScore: int
    mode: str
    players: list[Player]
    teams: list[TournamentTeam]
    maxTeams: int
    status: str
    createdAt: Any
    expiresAt: Any
    standings: list[TournamentStanding]
    bracket: list[BracketRound]
    matches: list[TournamentMatch]
    currentMatchIndex: int


def placeholder_team(name: str = TBD_NAME) -> TournamentTeam:
    """A team slot that is not known yet."""
    return {"teamId": "", "name": name, "players": []}


def is_placeholder(team: TournamentTeam | None) -> bool:
    """Check whether a match slot is still waiting for a team."""
    return not team or not team.get("teamId")


def players_per_team(tournament_format: str) -> int:
    """Number of players a complete team fields in the given format."""
    return 1 if tournament_format == FORMAT_1V1 else 2
