"""Data models for the game blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict

from kicktrack.core.constants import (  # noqa: F401
    ATTACK,
    DEFENSE,
    GAMELLE,
    GAMELLE_RENTRANTE,
    GAMELLE_TYPES,
    GOAL_TYPES,
    GOALKEEPER,
    MIDFIELD,
    NORMAL,
    POSITIONS,
)
from kicktrack.core.constants import GAME_ABANDONED as ABANDONED
from kicktrack.core.constants import GAME_COMPLETED as COMPLETED
from kicktrack.core.constants import GAME_IN_PROGRESS as IN_PROGRESS
from kicktrack.core.types import FirestoreDocument, ParticipantUnit, Player

TEAM_COLORS = ("red", "blue", "green", "yellow", "orange", "purple")


class Team(ParticipantUnit, total=False):
    """One side of a game. ``score`` is its only field that changes live."""

    score: int
    color: str
    name: str
    teamId: str


class Goal(TypedDict, total=False):
    """A goal record, as stored in the game's append-only goal list."""

    id: str
    timestamp: Any
    type: str
    position: str
    scoredBy: str
    scorerName: str
    teamIndex: int
    points: int
    previousMultiplier: int


class Game(FirestoreDocument, total=False):
    """A game document in Firestore."""

    gameId: str
    venueId: str
    venueName: Optional[str]
    gameType: str
    teams: list[Team]
    score: list[int]
    goals: list[Goal]
    multiplier: int
    status: str
    startedAt: Any
    endedAt: Any
    duration: int
    winner: Optional[int]
    hostId: str
    isGuestGame: bool
    playerIds: list[str]
    tournamentId: str
    tournamentMatchId: str


class GameResults(TypedDict):
    """Summary returned when a game is ended manually."""

    game: Game
    mvp: Optional[Player]
    goalsByPlayer: dict[str, int]
    goalsByPosition: dict[str, int]
