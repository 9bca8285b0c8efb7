"""Single-elimination bracket generation and advancement."""

from __future__ import annotations

import copy
import random
from collections.abc import Sequence

from kicktrack.core.constants import MIN_TOURNAMENT_TEAMS
from kicktrack.errors import InvalidStateError, NotFoundError, ValidationError

from .models import (
    BYE_NAME,
    MATCH_BYE,
    MATCH_COMPLETED,
    MATCH_PENDING,
    BracketRound,
    TournamentMatch,
    TournamentTeam,
    is_placeholder,
    placeholder_team,
)
from .utils import new_id

ROUND_NAMES = {
    0: "Finale",
    1: "Demi-finales",
    2: "Quarts de finale",
    3: "Huitièmes de finale",
}


def next_power_of_two(n: int) -> int:
    """Smallest power of two greater than or equal to ``n``."""
    size = 1
    while size < n:
        size *= 2
    return size


def total_rounds(bracket_size: int) -> int:
    """Number of rounds needed to reduce ``bracket_size`` slots to a winner."""
    return bracket_size.bit_length() - 1


def round_name(round_number: int, rounds: int) -> str:
    """Label a round by how far it is from the final."""
    return ROUND_NAMES.get(rounds - round_number, f"Tour {round_number}")


def bye_slots(slots: int, byes: int) -> set[int]:
    """Spread ``byes`` evenly across ``slots`` first-round matches."""
    if byes <= 0:
        return set()
    return {i * slots // byes for i in range(byes)}


def _next_slot(match_index: int) -> tuple[int, str]:
    return match_index // 2, "team1" if match_index % 2 == 0 else "team2"


def generate_bracket(
    teams: Sequence[TournamentTeam], rng: random.Random | None = None
) -> list[BracketRound]:
    """Seed the teams randomly into a bracket.

    Byes resolve immediately: their winner is already written into round 2,
    while the slots fed by real matches stay TBD until ``advance_bracket``.
    """
    if len(teams) < MIN_TOURNAMENT_TEAMS:
        raise ValidationError("A bracket needs at least two teams.")
    rng = rng or random.Random()
    seeded = list(teams)
    rng.shuffle(seeded)

    size = next_power_of_two(len(seeded))
    rounds = total_rounds(size)
    first_round_slots = size // 2
    byes = bye_slots(first_round_slots, size - len(seeded))

    bracket: list[BracketRound] = []
    remaining = iter(seeded)
    first_round: list[TournamentMatch] = []
    for i in range(first_round_slots):
        team1 = next(remaining)
        if i in byes:
            match: TournamentMatch = {
                "matchId": new_id(rng),
                "team1": team1,
                "team2": placeholder_team(BYE_NAME),
                "winnerId": team1["teamId"],
                "status": MATCH_BYE,
                "round": 1,
                "matchNumber": i + 1,
            }
        else:
            match = {
                "matchId": new_id(rng),
                "team1": team1,
                "team2": next(remaining),
                "status": MATCH_PENDING,
                "round": 1,
                "matchNumber": i + 1,
            }
        first_round.append(match)
    bracket.append(
        {"roundNumber": 1, "roundName": round_name(1, rounds), "matches": first_round}
    )

    for round_number in range(2, rounds + 1):
        matches_in_round = size >> round_number
        bracket.append(
            {
                "roundNumber": round_number,
                "roundName": round_name(round_number, rounds),
                "matches": [
                    {
                        "matchId": new_id(rng),
                        "team1": placeholder_team(),
                        "team2": placeholder_team(),
                        "status": MATCH_PENDING,
                        "round": round_number,
                        "matchNumber": i + 1,
                    }
                    for i in range(matches_in_round)
                ],
            }
        )

    if len(bracket) > 1:
        for index, match in enumerate(first_round):
            if match["status"] == MATCH_BYE:
                target, slot = _next_slot(index)
                next_match = bracket[1]["matches"][target]
                next_match[slot] = match["team1"]  # type: ignore[literal-required]
    return bracket


def locate(bracket: list[BracketRound], match_id: str) -> tuple[int, int]:
    """Return the ``(round index, match index)`` of a match."""
    for round_index, bracket_round in enumerate(bracket):
        for match_index, match in enumerate(bracket_round["matches"]):
            if match.get("matchId") == match_id:
                return round_index, match_index
    raise NotFoundError("Match not found in bracket.")


def advance_bracket(
    bracket: list[BracketRound],
    completed_match_id: str,
    winner_id: str,
    score: Sequence[int] | None = None,
    game_id: str | None = None,
) -> tuple[list[BracketRound], bool]:
    """Mark a match won and move the winner into the next round.

    Returns the updated bracket and whether the final was the match just
    completed. Replaying a completion with the same winner changes nothing;
    replaying it with a different winner raises ``InvalidStateError``.
    """
    round_index, match_index = locate(bracket, completed_match_id)
    is_final = round_index == len(bracket) - 1
    match = bracket[round_index]["matches"][match_index]

    if match.get("status") in (MATCH_COMPLETED, MATCH_BYE):
        if match.get("winnerId") == winner_id:
            return bracket, is_final
        raise InvalidStateError("Match already has a different winner.")
    if is_placeholder(match.get("team1")) or is_placeholder(match.get("team2")):
        raise InvalidStateError("Match opponents are not known yet.")

    teams = {team["teamId"]: team for team in (match["team1"], match["team2"])}
    if winner_id not in teams:
        raise ValidationError("The winner must be one of the match's teams.")

    updated = copy.deepcopy(bracket)
    done = updated[round_index]["matches"][match_index]
    done["status"] = MATCH_COMPLETED
    done["winnerId"] = winner_id
    if score is not None:
        done["score"] = list(score)
    if game_id:
        done["gameId"] = game_id

    if not is_final:
        target, slot = _next_slot(match_index)
        next_match = updated[round_index + 1]["matches"][target]
        occupant = next_match.get(slot)
        if occupant and occupant.get("teamId") not in ("", winner_id):
            raise InvalidStateError("Next round slot is already taken.")
        next_match[slot] = copy.deepcopy(teams[winner_id])  # type: ignore[misc]
    return updated, is_final


def flatten(bracket: list[BracketRound]) -> list[TournamentMatch]:
    """List every match of the bracket, round by round."""
    return [match for bracket_round in bracket for match in bracket_round["matches"]]
