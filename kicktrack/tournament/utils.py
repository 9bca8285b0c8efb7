"""Utility functions for tournament management."""

from __future__ import annotations

import random
from typing import Any

from .models import (
    MATCH_PENDING,
    Tournament,
    TournamentMatch,
    TournamentTeam,
    is_placeholder,
)


def new_id(rng: random.Random | None = None) -> str:
    """Generate a 32-character hex ID, reproducible when ``rng`` is seeded."""
    source = rng or random.SystemRandom()
    return f"{source.getrandbits(128):032x}"


def team_order(teams: list[TournamentTeam]) -> dict[str, int]:
    """Map each team ID to its position in the tournament's team list."""
    return {team["teamId"]: index for index, team in enumerate(teams)}


def find_match(matches: list[TournamentMatch], match_id: str) -> int:
    """Return the index of a match in a flat list, or -1."""
    for index, match in enumerate(matches):
        if match.get("matchId") == match_id:
            return index
    return -1


def find_team(teams: list[TournamentTeam], team_id: str) -> TournamentTeam | None:
    """Return the team with the given ID, if any."""
    return next((team for team in teams if team.get("teamId") == team_id), None)


def assigned_player_ids(
    teams: list[TournamentTeam], exclude_team_id: str = ""
) -> set[str]:
    """Collect the IDs of players already placed in a team."""
    return {
        player["userId"]
        for team in teams
        if team.get("teamId") != exclude_team_id
        for player in team.get("players") or []
    }


def game_teams(match: TournamentMatch) -> list[dict[str, Any]]:
    """Convert a fixture's two teams into game teams."""
    teams = []
    for team in (match["team1"], match["team2"]):
        game_team: dict[str, Any] = {
            "teamId": team["teamId"],
            "name": team.get("name"),
            "players": list(team.get("players") or []),
        }
        if team.get("color"):
            game_team["color"] = team["color"]
        teams.append(game_team)
    return teams


def get_next_pending_match(tournament: Tournament) -> TournamentMatch | None:
    """Return the next playable match, lowest bracket round first."""
    for match in tournament.get("matches") or []:
        if (
            match.get("status") == MATCH_PENDING
            and not is_placeholder(match.get("team1"))
            and not is_placeholder(match.get("team2"))
        ):
            return match
    return None
