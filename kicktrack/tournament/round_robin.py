"""Round robin fixtures and standings."""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

from kicktrack.core.constants import MIN_TOURNAMENT_TEAMS, POINTS_PER_WIN
from kicktrack.errors import ValidationError

from .models import MATCH_PENDING, TournamentMatch, TournamentStanding, TournamentTeam
from .utils import new_id

T = TypeVar("T")


def circle_rounds(slots: Sequence[T]) -> list[list[tuple[T, T]]]:
    """Pair an even number of slots into rounds using the circle method.

    The first slot stays fixed while the others rotate one place per round,
    giving ``n - 1`` rounds of ``n / 2`` pairs in which every slot meets every
    other slot exactly once.
    """
    if len(slots) % 2:
        raise ValueError("The circle method needs an even number of slots.")
    ids = list(slots)
    num_slots = len(ids)
    rounds = []
    for _ in range(num_slots - 1):
        rounds.append([(ids[i], ids[num_slots - 1 - i]) for i in range(num_slots // 2)])
        # Rotate ids: keep the first element fixed, rotate others
        ids = [ids[0], ids[-1]] + ids[1:-1]
    return rounds


def schedule_rounds(
    teams: Sequence[TournamentTeam], rng: random.Random | None = None
) -> list[list[tuple[TournamentTeam, TournamentTeam]]]:
    """Seed the teams randomly and return the real pairings of each round.

    An odd field is padded with a bye slot; pairings against it are dropped,
    so one team sits out each round. Round order is shuffled as well.
    """
    if len(teams) < MIN_TOURNAMENT_TEAMS:
        raise ValidationError("A round robin needs at least two teams.")
    rng = rng or random.Random()
    seeded: list[TournamentTeam | None] = list(teams)
    rng.shuffle(seeded)
    if len(seeded) % 2:
        seeded.append(None)

    rounds = [
        [(a, b) for a, b in pairs if a is not None and b is not None]
        for pairs in circle_rounds(seeded)
    ]
    rng.shuffle(rounds)
    return rounds  # type: ignore[return-value]


def generate_fixtures(
    teams: Sequence[TournamentTeam], rng: random.Random | None = None
) -> list[TournamentMatch]:
    """Flatten the scheduled rounds into one ordered list of pending matches."""
    rng = rng or random.Random()
    matches: list[TournamentMatch] = []
    for round_number, pairs in enumerate(schedule_rounds(teams, rng), start=1):
        for team1, team2 in pairs:
            matches.append(
                {
                    "matchId": new_id(rng),
                    "team1": team1,
                    "team2": team2,
                    "status": MATCH_PENDING,
                    "round": round_number,
                    "matchNumber": len(matches) + 1,
                }
            )
    return matches


def initialize_standings(teams: Sequence[TournamentTeam]) -> list[TournamentStanding]:
    """Build an empty table row for every team."""
    return [
        {
            "teamId": team["teamId"],
            "teamName": team.get("name", ""),
            "players": list(team.get("players") or []),
            "played": 0,
            "wins": 0,
            "losses": 0,
            "goalsFor": 0,
            "goalsAgainst": 0,
            "points": 0,
        }
        for team in teams
    ]


def sort_standings(
    standings: list[TournamentStanding], order: dict[str, int]
) -> list[TournamentStanding]:
    """Rank by points, goal difference, goals scored, then team list order."""
    return sorted(
        standings,
        key=lambda s: (
            -s["points"],
            -(s["goalsFor"] - s["goalsAgainst"]),
            -s["goalsFor"],
            order.get(s["teamId"], len(order)),
        ),
    )


def apply_result(  # noqa: PLR0913
    standings: list[TournamentStanding],
    team1_id: str,
    team2_id: str,
    score: Sequence[int],
    winner_id: str,
    order: dict[str, int],
) -> list[TournamentStanding]:
    """Record a finished match in the table and return it re-sorted."""
    if winner_id not in (team1_id, team2_id):
        raise ValidationError("The winner must be one of the match's teams.")
    rows = {s["teamId"]: dict(s) for s in standings}
    if team1_id not in rows or team2_id not in rows:
        raise ValidationError("Both teams must be in the standings.")

    for team_id, goals_for, goals_against in (
        (team1_id, score[0], score[1]),
        (team2_id, score[1], score[0]),
    ):
        row = rows[team_id]
        row["played"] += 1
        row["goalsFor"] += goals_for
        row["goalsAgainst"] += goals_against
        if team_id == winner_id:
            row["wins"] += 1
            row["points"] += POINTS_PER_WIN
        else:
            row["losses"] += 1
    return sort_standings(list(rows.values()), order)  # type: ignore[arg-type]
