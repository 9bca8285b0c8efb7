"""Live scoring engine for foosball games.

The engine is a set of pure functions over an immutable ``MatchState``:

* ``apply_goal`` computes the effect of a goal from the current multiplier,
  the scorer's position and the goal type, and detects the win.
* ``undo_last_goal`` pops the most recent goal and replays its stored effect
  backwards. Only the last goal can be undone and there is no redo.
* ``forfeit`` and ``end_game`` close a game without recording goals.

Persistence and side effects (stats, venue counters, tournament callbacks)
live in ``GameService``.
"""

from __future__ import annotations

import dataclasses
import datetime
from dataclasses import dataclass
from typing import Any

from kicktrack.errors import InvalidStateError, ValidationError
from kicktrack.utils import as_utc, utcnow

from .models import (
    COMPLETED,
    GAMELLE,
    GAMELLE_RENTRANTE,
    GAMELLE_TYPES,
    GOAL_TYPES,
    IN_PROGRESS,
    MIDFIELD,
    NORMAL,
    POSITIONS,
    Game,
    Goal,
)


@dataclass(frozen=True)
class GoalRecord:
    """Immutable view of a stored goal."""

    id: str
    timestamp: datetime.datetime
    type: str
    position: str
    scored_by: str
    scorer_name: str
    team_index: int
    points: int
    previous_multiplier: int = 1

    @classmethod
    def from_dict(cls, data: Goal) -> GoalRecord:
        """Build a record from its Firestore representation."""
        return cls(
            id=data.get("id", ""),
            timestamp=data.get("timestamp"),
            type=data.get("type", NORMAL),
            position=data.get("position", ""),
            scored_by=data.get("scoredBy", ""),
            scorer_name=data.get("scorerName", ""),
            team_index=int(data.get("teamIndex", 0)),
            points=int(data.get("points") or 0),
            previous_multiplier=int(data.get("previousMultiplier") or 1),
        )

    def to_dict(self) -> Goal:
        """Return the Firestore representation of the goal."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type,
            "position": self.position,
            "scoredBy": self.scored_by,
            "scorerName": self.scorer_name,
            "teamIndex": self.team_index,
            "points": self.points,
            "previousMultiplier": self.previous_multiplier,
        }


@dataclass(frozen=True)
class MatchState:
    """The scoring-relevant part of a game."""

    game_type: str
    scores: tuple[int, int] = (0, 0)
    multiplier: int = 1
    goals: tuple[GoalRecord, ...] = ()
    status: str = IN_PROGRESS
    started_at: datetime.datetime | None = None
    ended_at: datetime.datetime | None = None
    duration: int | None = None
    winner: int | None = None

    @property
    def target_score(self) -> int:
        """Points needed to win."""
        return int(self.game_type)

    @classmethod
    def from_game(cls, game: Game) -> MatchState:
        """Extract the state from a game document."""
        teams = game.get("teams") or []
        if len(teams) != 2:  # noqa: PLR2004
            raise ValidationError("A game needs exactly two teams.")
        return cls(
            game_type=str(game.get("gameType", "6")),
            scores=(int(teams[0].get("score", 0)), int(teams[1].get("score", 0))),
            multiplier=int(game.get("multiplier") or 1),
            goals=tuple(GoalRecord.from_dict(g) for g in game.get("goals") or []),
            status=game.get("status", IN_PROGRESS),
            started_at=as_utc(game.get("startedAt")),
            ended_at=as_utc(game.get("endedAt")),
            duration=game.get("duration"),
            winner=game.get("winner"),
        )

    def apply_to(self, game: Game) -> Game:
        """Return a copy of ``game`` carrying this state.

        ``score`` is rewritten from the team scores so the mirror never drifts.
        """
        updated: dict[str, Any] = dict(game)
        updated["teams"] = [
            {**team, "score": self.scores[i]} for i, team in enumerate(game["teams"])
        ]
        updated["score"] = list(self.scores)
        updated["goals"] = [g.to_dict() for g in self.goals]
        updated["multiplier"] = self.multiplier
        updated["status"] = self.status
        for key, value in (
            ("endedAt", self.ended_at),
            ("duration", self.duration),
            ("winner", self.winner),
        ):
            if value is None:
                updated.pop(key, None)
            else:
                updated[key] = value
        return updated  # type: ignore[return-value]


def goal_effect(multiplier: int, position: str, goal_type: str) -> tuple[int, int, int]:
    """Return ``(points, opponent_delta, next_multiplier)`` for a goal.

    A midfield goal scores nothing and raises the multiplier, which the next
    normal goal cashes in. Gamelles take a point off the opponent and leave
    the multiplier alone.
    """
    if position == MIDFIELD:
        return 0, 0, multiplier + 1
    if goal_type == NORMAL:
        return multiplier, 0, 1
    if goal_type == GAMELLE:
        return 0, -1, multiplier
    if goal_type == GAMELLE_RENTRANTE:
        return 1, -1, multiplier
    return 1, 0, multiplier


def _check_team_index(team_index: int) -> None:
    if team_index not in (0, 1):
        raise ValidationError("Team index must be 0 or 1.")


def _check_in_progress(state: MatchState) -> None:
    if state.status != IN_PROGRESS:
        raise InvalidStateError(f"Game is {state.status}, not in progress.")


def _elapsed_seconds(
    started_at: datetime.datetime | None, now: datetime.datetime
) -> int:
    if started_at is None:
        return 0
    return max(0, int((now - started_at).total_seconds()))


def _finish(state: MatchState, now: datetime.datetime) -> MatchState:
    """Close the game; the higher score wins, equal scores are a draw."""
    first, second = state.scores
    winner = 0 if first > second else 1 if second > first else None
    return dataclasses.replace(
        state,
        status=COMPLETED,
        ended_at=now,
        duration=_elapsed_seconds(state.started_at, now),
        winner=winner,
    )


def apply_goal(  # noqa: PLR0913
    state: MatchState,
    team_index: int,
    scorer_id: str,
    scorer_name: str,
    position: str,
    goal_type: str = NORMAL,
    now: datetime.datetime | None = None,
) -> tuple[MatchState, GoalRecord]:
    """Record a goal and return the new state with the goal record.

    The opponent's score is not floored at zero here: a gamelle against a
    team on 0 leaves it on -1 until the goal is undone.
    """
    _check_in_progress(state)
    _check_team_index(team_index)
    if position not in POSITIONS:
        raise ValidationError(f"Unknown position: {position}.")
    if goal_type not in GOAL_TYPES:
        raise ValidationError(f"Unknown goal type: {goal_type}.")

    now = now or utcnow()
    points, opponent_delta, next_multiplier = goal_effect(
        state.multiplier, position, goal_type
    )
    goal = GoalRecord(
        id=f"goal-{int(now.timestamp() * 1000)}-{len(state.goals)}",
        timestamp=now,
        type=goal_type,
        position=position,
        scored_by=scorer_id,
        scorer_name=scorer_name,
        team_index=team_index,
        points=points,
        previous_multiplier=state.multiplier,
    )

    scores = list(state.scores)
    scores[team_index] += points
    scores[1 - team_index] += opponent_delta
    new_state = dataclasses.replace(
        state,
        scores=(scores[0], scores[1]),
        multiplier=next_multiplier,
        goals=(*state.goals, goal),
    )

    if scores[team_index] >= state.target_score:
        new_state = dataclasses.replace(
            new_state,
            status=COMPLETED,
            ended_at=now,
            duration=_elapsed_seconds(state.started_at, now),
            winner=team_index,
        )
    return new_state, goal


def undo_last_goal(state: MatchState) -> MatchState:
    """Reverse the most recent goal; a no-op when no goal was scored."""
    _check_in_progress(state)
    if not state.goals:
        return state

    last = state.goals[-1]
    scores = list(state.scores)
    scores[last.team_index] -= last.points
    if last.type in GAMELLE_TYPES:
        opponent = 1 - last.team_index
        scores[opponent] = max(0, scores[opponent] + 1)
    return dataclasses.replace(
        state,
        scores=(scores[0], scores[1]),
        multiplier=last.previous_multiplier or 1,
        goals=state.goals[:-1],
    )


def forfeit(
    state: MatchState, forfeiting_team_index: int, now: datetime.datetime | None = None
) -> MatchState:
    """Give the other team the target score outright and close the game."""
    _check_in_progress(state)
    _check_team_index(forfeiting_team_index)
    scores = list(state.scores)
    scores[1 - forfeiting_team_index] = state.target_score
    return _finish(
        dataclasses.replace(state, scores=(scores[0], scores[1])), now or utcnow()
    )


def end_game(state: MatchState, now: datetime.datetime | None = None) -> MatchState:
    """End a game manually, deciding the winner on the current score."""
    _check_in_progress(state)
    return _finish(state, now or utcnow())
