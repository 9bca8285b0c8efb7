"""Tests for the live scoring engine."""

from __future__ import annotations

import datetime
import unittest

from kicktrack.errors import InvalidStateError, ValidationError
from kicktrack.game import scoring
from kicktrack.game.models import (
    ATTACK,
    COMPLETED,
    DEFENSE,
    GAMELLE,
    GAMELLE_RENTRANTE,
    IN_PROGRESS,
    MIDFIELD,
    NORMAL,
)
from kicktrack.game.scoring import MatchState
from tests.conftest import NOW


def goal(state, team, position=ATTACK, goal_type=NORMAL, seconds=10):
    """Score a goal for player ``a`` (team 0) or ``b`` (team 1)."""
    scorer = "a" if team == 0 else "b"
    new_state, _ = scoring.apply_goal(
        state,
        team,
        scorer,
        scorer.upper(),
        position,
        goal_type,
        NOW + datetime.timedelta(seconds=seconds),
    )
    return new_state


class GoalEffectTestCase(unittest.TestCase):
    """Test case for the goal rule table."""

    def test_midfield_goal_only_raises_multiplier(self) -> None:
        """A midfield goal scores nothing, whatever its type."""
        for goal_type in (NORMAL, GAMELLE, GAMELLE_RENTRANTE):
            self.assertEqual(scoring.goal_effect(3, MIDFIELD, goal_type), (0, 0, 4))

    def test_normal_goal_cashes_multiplier(self) -> None:
        """A normal goal is worth the multiplier and resets it."""
        self.assertEqual(scoring.goal_effect(1, ATTACK, NORMAL), (1, 0, 1))
        self.assertEqual(scoring.goal_effect(3, DEFENSE, NORMAL), (3, 0, 1))

    def test_gamelles_keep_multiplier(self) -> None:
        """Gamelles penalise the opponent and leave the multiplier alone."""
        self.assertEqual(scoring.goal_effect(2, ATTACK, GAMELLE), (0, -1, 2))
        self.assertEqual(scoring.goal_effect(2, ATTACK, GAMELLE_RENTRANTE), (1, -1, 2))


class ScoringTestCase(unittest.TestCase):
    """Test case for applying and undoing goals."""

    def setUp(self) -> None:
        """Start a 6-point game."""
        self.state = MatchState(game_type="6", started_at=NOW)

    def test_midfield_then_normal_goal(self) -> None:
        """Test that a midfield goal doubles the next normal goal."""
        state = goal(self.state, 0, MIDFIELD)
        self.assertEqual(state.scores, (0, 0))
        self.assertEqual(state.multiplier, 2)

        state = goal(state, 0, ATTACK)
        self.assertEqual(state.scores, (2, 0))
        self.assertEqual(state.multiplier, 1)

    def test_full_game_scenario(self) -> None:
        """Play a 1v1 game to six points with a midfield bonus and a gamelle."""
        state = goal(self.state, 0, MIDFIELD)
        state = goal(state, 0, ATTACK)
        self.assertEqual(state.scores, (2, 0))

        state = goal(state, 1, ATTACK, GAMELLE)
        self.assertEqual(state.scores, (1, 0))
        self.assertEqual(state.multiplier, 1)

        for _ in range(4):
            state = goal(state, 0, ATTACK)
        self.assertEqual(state.scores, (5, 0))
        self.assertEqual(state.status, IN_PROGRESS)

        state = goal(state, 0, ATTACK, seconds=90)
        self.assertEqual(state.scores, (6, 0))
        self.assertEqual(state.status, COMPLETED)
        self.assertEqual(state.winner, 0)
        self.assertEqual(state.duration, 90)
        self.assertEqual(len(state.goals), 8)

    def test_multiplied_goal_can_overshoot_target(self) -> None:
        """Test that reaching or passing the target wins."""
        state = MatchState(game_type="6", scores=(5, 2), multiplier=3, started_at=NOW)
        state = goal(state, 0, ATTACK)
        self.assertEqual(state.scores, (8, 2))
        self.assertEqual(state.winner, 0)

    def test_gamelle_is_not_floored_going_forward(self) -> None:
        """A gamelle against a team on zero leaves it negative."""
        state = goal(self.state, 0, ATTACK, GAMELLE)
        self.assertEqual(state.scores, (0, -1))

        state = scoring.undo_last_goal(state)
        self.assertEqual(state.scores, (0, 0))

    def test_gamelle_rentrante(self) -> None:
        """Test that a gamelle rentrante scores one and takes one."""
        state = MatchState(game_type="6", scores=(2, 3), multiplier=2)
        state = goal(state, 0, DEFENSE, GAMELLE_RENTRANTE)
        self.assertEqual(state.scores, (3, 2))
        self.assertEqual(state.multiplier, 2)

    def test_undo_restores_previous_states_in_order(self) -> None:
        """Undoing every goal walks back through each earlier state."""
        history = [self.state]
        for team, position, goal_type in (
            (0, MIDFIELD, NORMAL),
            (0, MIDFIELD, NORMAL),
            (1, ATTACK, NORMAL),
            (0, ATTACK, GAMELLE),
            (1, DEFENSE, GAMELLE_RENTRANTE),
        ):
            history.append(goal(history[-1], team, position, goal_type))
        self.assertEqual(history[-1].scores, (-1, 3))

        state = history[-1]
        for expected in reversed(history[:-1]):
            state = scoring.undo_last_goal(state)
            self.assertEqual(state.scores, expected.scores)
            self.assertEqual(state.multiplier, expected.multiplier)
            self.assertEqual(state.goals, expected.goals)

    def test_undo_without_goals_is_noop(self) -> None:
        """Test that undo on an empty game changes nothing."""
        self.assertIs(scoring.undo_last_goal(self.state), self.state)

    def test_no_goals_after_completion(self) -> None:
        """Test that a finished game rejects goals and undo."""
        state = MatchState(game_type="6", scores=(5, 0), started_at=NOW)
        state = goal(state, 0, ATTACK)
        self.assertEqual(state.status, COMPLETED)

        with self.assertRaises(InvalidStateError):
            goal(state, 1, ATTACK)
        with self.assertRaises(InvalidStateError):
            scoring.undo_last_goal(state)

    def test_invalid_goal_input(self) -> None:
        """Test that bad team indexes, positions and types are rejected."""
        with self.assertRaises(ValidationError):
            goal(self.state, 2)
        with self.assertRaises(ValidationError):
            goal(self.state, 0, "striker")
        with self.assertRaises(ValidationError):
            goal(self.state, 0, ATTACK, "own_goal")

    def test_goal_record_keeps_effect(self) -> None:
        """Test that the goal record stores points and previous multiplier."""
        state = goal(self.state, 0, MIDFIELD)
        _, record = scoring.apply_goal(state, 0, "a", "A", ATTACK, NORMAL, NOW)
        self.assertEqual(record.points, 2)
        self.assertEqual(record.previous_multiplier, 2)
        self.assertEqual(record.to_dict()["scoredBy"], "a")
        self.assertTrue(record.id.startswith("goal-"))


class FinishTestCase(unittest.TestCase):
    """Test case for forfeits and manual endings."""

    def test_forfeit_gives_target_to_other_team(self) -> None:
        """Test that a forfeit awards the target score to the opponent."""
        state = MatchState(game_type="11", scores=(4, 7), started_at=NOW)
        state = scoring.forfeit(state, 1, NOW + datetime.timedelta(minutes=5))
        self.assertEqual(state.scores, (11, 7))
        self.assertEqual(state.winner, 0)
        self.assertEqual(state.status, COMPLETED)
        self.assertEqual(state.duration, 300)

    def test_end_game_picks_leader(self) -> None:
        """Test that ending manually gives the win to the leading team."""
        state = MatchState(game_type="6", scores=(2, 4), started_at=NOW)
        state = scoring.end_game(state, NOW)
        self.assertEqual(state.winner, 1)
        self.assertEqual(state.status, COMPLETED)

    def test_end_game_draw_has_no_winner(self) -> None:
        """Test that ending on equal scores is a draw."""
        state = scoring.end_game(MatchState(game_type="6", scores=(3, 3)), NOW)
        self.assertIsNone(state.winner)
        self.assertEqual(state.status, COMPLETED)

    def test_state_round_trips_through_game_document(self) -> None:
        """Test that applying a state rewrites team scores and the mirror."""
        game = {
            "gameId": "g1",
            "gameType": "6",
            "teams": [{"players": [], "score": 0}, {"players": [], "score": 0}],
            "score": [0, 0],
            "goals": [],
            "multiplier": 1,
            "status": IN_PROGRESS,
            "startedAt": NOW,
        }
        state = goal(MatchState.from_game(game), 1, ATTACK)
        updated = state.apply_to(game)
        self.assertEqual(updated["score"], [0, 1])
        self.assertEqual(updated["teams"][1]["score"], 1)
        self.assertNotIn("winner", updated)
        self.assertEqual(MatchState.from_game(updated).scores, (0, 1))
