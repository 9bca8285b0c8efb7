"""Advanced statistics computed from a player's game history."""

from __future__ import annotations

import datetime
from collections import Counter
from collections.abc import Iterator
from typing import Any

from kicktrack.core.constants import (
    GAME_COMPLETED,
    GAMELLE_TYPES,
    POSITIONS,
    RECENT_FORM_LIMIT,
)
from kicktrack.utils import as_utc, has_guest_players

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
WIN_RATE_HISTORY_LIMIT = 20

# Comeback thresholds per target score: (minimum deficit, opponent score range).
REMONTADA_RULES = {
    6: (3, range(4, 6)),
    11: (5, range(8, 11)),
}


def _rate(wins: int, games: int) -> float:
    return wins / games if games else 0


class PlayerStatsCalculator:
    """Derive records, streaks and scoring habits for one player.

    Only completed games without guests count. Games are read oldest first;
    a game without a winner is a draw and breaks no streak.
    """

    @staticmethod
    def _team_index(game: dict[str, Any], user_id: str) -> int:
        for index, team in enumerate(game.get("teams") or []):
            if any(p.get("userId") == user_id for p in team.get("players") or []):
                return index
        return -1

    @staticmethod
    def _started_at(game: dict[str, Any]) -> datetime.datetime:
        return as_utc(game.get("startedAt")) or EPOCH

    @staticmethod
    def filter_games(
        games: list[dict[str, Any]],
        venue_id: str | None = None,
        points: str | None = None,
        mode: str | None = None,
    ) -> list[dict[str, Any]]:
        """Keep the completed, guest-free games matching the optional filters."""
        kept = []
        for game in games:
            teams = game.get("teams") or []
            if game.get("status") != GAME_COMPLETED or len(teams) != 2:  # noqa: PLR2004
                continue
            if game.get("isGuestGame") or has_guest_players(teams):
                continue
            if venue_id and game.get("venueId") != venue_id:
                continue
            if points and points != "all" and game.get("gameType") != points:
                continue
            if mode and mode != "all":
                fielded = sum(len(t.get("players") or []) for t in teams)
                is_2v2 = fielded == 4  # noqa: PLR2004
                if (mode == "2v2") != is_2v2:
                    continue
            kept.append(game)
        return kept

    @staticmethod
    def _replay(
        goals: list[dict[str, Any]],
    ) -> Iterator[tuple[dict[str, Any], list[int], list[int]]]:
        """Yield each goal with the scores before and after it."""
        scores = [0, 0]
        for goal in goals:
            before = list(scores)
            team = int(goal.get("teamIndex", 0))
            scores[team] += int(goal.get("points") or 0)
            if goal.get("type") in GAMELLE_TYPES:
                scores[1 - team] -= 1
            yield goal, before, list(scores)

    @staticmethod
    def is_remontada(game: dict[str, Any], team_index: int) -> bool:
        """Check whether a team won after trailing heavily late in the game."""
        if game.get("winner") != team_index:
            return False
        rule = REMONTADA_RULES.get(int(game.get("gameType", 6)))
        if rule is None:
            return False
        min_deficit, late_scores = rule
        for _, _, after in PlayerStatsCalculator._replay(game.get("goals") or []):
            own, opponent = after[team_index], after[1 - team_index]
            if opponent in late_scores and opponent - own >= min_deficit:
                return True
        return False

    @staticmethod
    def match_points(game: dict[str, Any], team_index: int) -> tuple[int, int]:
        """Count match points saved and missed by a team.

        A match point is saved when the team changes the score while the
        opponent is one point from the target, and missed when the opponent
        does so while the team is one point away.
        """
        target = int(game.get("gameType", 6))
        saved = missed = 0
        for goal, before, _ in PlayerStatsCalculator._replay(game.get("goals") or []):
            if not goal.get("points") and goal.get("type") not in GAMELLE_TYPES:
                continue
            by_team = int(goal.get("teamIndex", 0)) == team_index
            if by_team and before[1 - team_index] == target - 1:
                saved += 1
            if not by_team and before[team_index] == target - 1:
                missed += 1
        return saved, missed

    @staticmethod
    def _current_streak(results: list[str]) -> dict[str, Any]:
        streak_type, count = "none", 0
        for result in reversed(results):
            if result == "D":
                break
            kind = "win" if result == "W" else "loss"
            if streak_type == "none":
                streak_type, count = kind, 1
            elif kind == streak_type:
                count += 1
            else:
                break
        return {"type": streak_type, "count": count}

    @staticmethod
    def calculate(  # noqa: PLR0915
        games: list[dict[str, Any]],
        user_id: str,
        venue_id: str | None = None,
        points: str | None = None,
        mode: str | None = None,
    ) -> dict[str, Any]:
        """Compute the full statistics block for ``user_id``."""
        played = [
            g
            for g in PlayerStatsCalculator.filter_games(games, venue_id, points, mode)
            if PlayerStatsCalculator._team_index(g, user_id) != -1
        ]
        played.sort(key=PlayerStatsCalculator._started_at)

        results: list[str] = []
        goals_by_position = dict.fromkeys(POSITIONS, 0)
        format_stats = {fmt: {"games": 0, "wins": 0, "goals": 0} for fmt in ("6", "11")}
        venues: dict[str, dict[str, Any]] = {}
        h2h: dict[str, dict[str, Any]] = {}
        win_rate_history = []
        totals: Counter[str] = Counter()
        best_streak = streak = 0
        total_duration = timed_games = 0

        for game in played:
            team_index = PlayerStatsCalculator._team_index(game, user_id)
            teams = game["teams"]
            winner = game.get("winner")
            is_draw = winner is None
            is_win = winner == team_index
            own_score = int(teams[team_index].get("score", 0))
            opponent_score = int(teams[1 - team_index].get("score", 0))
            target = int(game.get("gameType", 6))
            result = "D" if is_draw else "W" if is_win else "L"
            results.append(result)

            goals = game.get("goals") or []
            user_goals = [g for g in goals if g.get("scoredBy") == user_id]
            totals["goalsScored"] += len(user_goals)
            totals["goalsConceded"] += opponent_score
            for goal in user_goals:
                if goal.get("position") in goals_by_position:
                    goals_by_position[goal["position"]] += 1

            fmt = format_stats.setdefault(
                str(game.get("gameType")), {"games": 0, "wins": 0, "goals": 0}
            )
            fmt["games"] += 1
            fmt["wins"] += int(is_win)
            fmt["goals"] += len(user_goals)

            venue_name = game.get("venueName")
            if game.get("venueId") and venue_name and venue_name.lower() != "aucun":
                venue = venues.setdefault(
                    game["venueId"], {"name": venue_name, "gamesPlayed": 0, "wins": 0}
                )
                venue["gamesPlayed"] += 1
                venue["wins"] += int(is_win)

            for opponent in teams[1 - team_index].get("players") or []:
                record = h2h.setdefault(
                    opponent["userId"],
                    {"name": opponent.get("username"), "W": 0, "L": 0, "D": 0},
                )
                record[result] += 1

            if is_win and opponent_score <= 0:
                totals["cleanSheets"] += 1
                if own_score >= target:
                    totals["perfectInflicted"] += 1
            if not is_win and not is_draw and own_score <= 0:
                totals["perfectConceded"] += 1
            if PlayerStatsCalculator.is_remontada(game, team_index):
                totals["comebacks"] += 1
            saved, missed = PlayerStatsCalculator.match_points(game, team_index)
            totals["matchPointsSaved"] += saved
            totals["matchPointsMissed"] += missed

            if game.get("duration"):
                total_duration += int(game["duration"])
                timed_games += 1

            if not is_draw:
                streak = streak + 1 if is_win else 0
                best_streak = max(best_streak, streak)

            wins_so_far = results.count("W")
            win_rate_history.append(
                {
                    "date": PlayerStatsCalculator._started_at(game).date().isoformat(),
                    "winRate": wins_so_far / len(results) * 100,
                }
            )

        best_position: str | None = max(
            goals_by_position, key=goals_by_position.__getitem__
        )
        if not goals_by_position[best_position]:
            best_position = None
        venue_stats = sorted(
            (
                {**v, "winRate": _rate(v["wins"], v["gamesPlayed"])}
                for v in venues.values()
            ),
            key=lambda v: -v["gamesPlayed"],
        )
        head_to_head = sorted(
            (
                {
                    "opponentId": opponent_id,
                    "opponentName": r["name"],
                    "gamesPlayed": r["W"] + r["L"] + r["D"],
                    "wins": r["W"],
                    "losses": r["L"],
                    "draws": r["D"],
                    "winRate": _rate(r["W"], r["W"] + r["L"] + r["D"]),
                }
                for opponent_id, r in h2h.items()
            ),
            key=lambda r: -r["gamesPlayed"],
        )
        six, eleven = format_stats["6"]["games"], format_stats["11"]["games"]

        return {
            "gamesPlayed": len(played),
            "wins": results.count("W"),
            "losses": results.count("L"),
            "draws": results.count("D"),
            "winRate": _rate(results.count("W"), len(played)),
            "totalGoalsScored": totals["goalsScored"],
            "totalGoalsConceded": totals["goalsConceded"],
            "goalsPerGame": {
                "overall": _rate(totals["goalsScored"], len(played)),
                "match6": _rate(format_stats["6"]["goals"], six),
                "match11": _rate(format_stats["11"]["goals"], eleven),
            },
            "goalsByPosition": goals_by_position,
            "favoritePosition": best_position,
            "winStreak": best_streak,
            "currentStreak": PlayerStatsCalculator._current_streak(results),
            "recentForm": results[-RECENT_FORM_LIMIT:],
            "averageGameDuration": _rate(total_duration, timed_games) / 60,
            "cleanSheets": totals["cleanSheets"],
            "comebacks": totals["comebacks"],
            "perfectGames": {
                "inflicted": totals["perfectInflicted"],
                "conceded": totals["perfectConceded"],
            },
            "matchPoints": {
                "saved": totals["matchPointsSaved"],
                "missed": totals["matchPointsMissed"],
            },
            "formatStats": {
                fmt: {
                    "games": s["games"],
                    "wins": s["wins"],
                    "winRate": _rate(s["wins"], s["games"]),
                }
                for fmt, s in format_stats.items()
            },
            "preferredFormat": "6" if six > eleven else "11" if eleven > six else None,
            "venueStats": venue_stats,
            "favoriteVenue": venue_stats[0] if venue_stats else None,
            "headToHead": head_to_head,
            "winRateHistory": win_rate_history[-WIN_RATE_HISTORY_LIMIT:],
        }
