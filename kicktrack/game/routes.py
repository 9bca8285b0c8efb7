"""Routes for the game blueprint."""

from __future__ import annotations

from typing import Any

from flask import current_app, request

from kicktrack.auth.decorators import current_user_id, login_required
from kicktrack.core.responses import api_response, validate_form
from kicktrack.errors import PermissionDeniedError, ValidationError

from . import bp
from .forms import ForfeitForm, GameForm, GoalForm
from .services import GameService


def _hosted_game(game_id: str) -> dict[str, Any]:
    """Load a game the current user may score."""
    game = GameService.get_game(game_id)
    if game.get("hostId") != current_user_id():
        raise PermissionDeniedError("Only the host can update this game.")
    return game  # type: ignore[return-value]


@bp.route("", methods=["POST"])
@login_required
def create_game() -> Any:
    """Start a new game."""
    form = GameForm()
    validate_form(form)
    teams = (request.get_json(silent=True) or {}).get("teams")
    if not isinstance(teams, list):
        raise ValidationError("Teams are required.")

    game = GameService.create_game(
        host_id=current_user_id(),
        teams=teams,
        venue_id=form.venue_id.data or None,
        venue_name=form.venue_name.data or None,
        target_score=form.target_score.data,
    )
    current_app.logger.info(f"Game {game['gameId']} created by {current_user_id()}.")
    return api_response(game, "Game started.", 201)


@bp.route("/<string:game_id>", methods=["GET"])
@login_required
def view_game(game_id: str) -> Any:
    """Return the current state of a game."""
    return api_response(GameService.get_game(game_id))


@bp.route("/<string:game_id>/goals", methods=["POST"])
@login_required
def add_goal(game_id: str) -> Any:
    """Record a goal."""
    _hosted_game(game_id)
    form = GoalForm()
    validate_form(form)
    game = GameService.add_goal(
        game_id,
        form.team_index.data,
        form.scorer_id.data,
        form.scorer_name.data or "",
        form.position.data,
        form.type.data,
    )
    return api_response(game, "Goal recorded.")


@bp.route("/<string:game_id>/goals/last", methods=["DELETE"])
@login_required
def undo_goal(game_id: str) -> Any:
    """Cancel the most recent goal."""
    _hosted_game(game_id)
    return api_response(GameService.remove_last_goal(game_id), "Goal cancelled.")


@bp.route("/<string:game_id>/end", methods=["POST"])
@login_required
def end_game(game_id: str) -> Any:
    """End the game on the current score."""
    _hosted_game(game_id)
    return api_response(GameService.end_game(game_id), "Game ended.")


@bp.route("/<string:game_id>/forfeit", methods=["POST"])
@login_required
def forfeit_game(game_id: str) -> Any:
    """Forfeit the game for one team."""
    _hosted_game(game_id)
    form = ForfeitForm()
    validate_form(form)
    return api_response(
        GameService.forfeit_game(game_id, form.team_index.data), "Game forfeited."
    )


@bp.route("/<string:game_id>/abandon", methods=["POST"])
@login_required
def abandon_game(game_id: str) -> Any:
    """Abandon the game without recording any statistics."""
    _hosted_game(game_id)
    current_app.logger.info(f"Game {game_id} abandoned by {current_user_id()}.")
    return api_response(GameService.abandon_game(game_id), "Game abandoned.")
