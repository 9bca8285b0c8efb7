"""Routes for the tournament blueprint."""

from __future__ import annotations

import random
from typing import Any

from flask import current_app, request, session

from kicktrack.auth.decorators import current_user_id, login_required
from kicktrack.core.responses import api_response, validate_form
from kicktrack.errors import PermissionDeniedError

from . import bp
from .forms import GuestForm, TeamForm, TournamentForm
from .services import TournamentService


def _rng() -> random.Random | None:
    """Seeded random source when the app pins one, for reproducible draws."""
    seed = current_app.config.get("GAME_RANDOM_SEED")
    return random.Random(seed) if seed is not None else None


def _check_host(tournament_id: str) -> None:
    tournament = TournamentService.get_tournament(tournament_id)
    if tournament.get("hostId") != current_user_id():
        raise PermissionDeniedError("Only the host can manage this tournament.")


@bp.route("", methods=["POST"])
@login_required
def create_tournament() -> Any:
    """Open a new tournament lobby."""
    form = TournamentForm()
    validate_form(form)
    user_id = current_user_id()
    tournament = TournamentService.create_tournament(
        host_id=user_id,
        host_name=form.host_name.data or session.get("username") or user_id,
        venue_id=form.venue_id.data or None,
        venue_name=form.venue_name.data or None,
        tournament_format=form.format.data,
        mode=form.mode.data,
        target_score=form.target_score.data,
        ttl_minutes=current_app.config["TOURNAMENT_TTL_MINUTES"],
    )
    return api_response(tournament, "Tournament created.", 201)


@bp.route("/<string:tournament_id>", methods=["GET"])
@login_required
def view_tournament(tournament_id: str) -> Any:
    """Return a tournament with its fixtures and standings."""
    return api_response(TournamentService.get_tournament(tournament_id))


@bp.route("/<string:tournament_id>", methods=["DELETE"])
@login_required
def delete_tournament(tournament_id: str) -> Any:
    """Delete a tournament."""
    _check_host(tournament_id)
    TournamentService.delete_tournament(tournament_id)
    return api_response(None, "Tournament deleted.")


@bp.route("/<string:tournament_id>/next-match", methods=["GET"])
@login_required
def next_match(tournament_id: str) -> Any:
    """Return the next match the host can start."""
    tournament = TournamentService.get_tournament(tournament_id)
    return api_response(TournamentService.get_next_pending_match(tournament))


@bp.route("/<string:tournament_id>/join", methods=["POST"])
@login_required
def join_tournament(tournament_id: str) -> Any:
    """Join the lobby as the current user."""
    data = request.get_json(silent=True) or {}
    user_id = current_user_id()
    player = {
        "userId": user_id,
        "username": data.get("username") or session.get("username") or user_id,
        "avatarUrl": data.get("avatarUrl"),
    }
    tournament = TournamentService.join_tournament(tournament_id, player)
    return api_response(tournament, "Joined tournament.")


@bp.route("/<string:tournament_id>/guests", methods=["POST"])
@login_required
def add_guest(tournament_id: str) -> Any:
    """Add a guest player."""
    _check_host(tournament_id)
    form = GuestForm()
    validate_form(form)
    tournament = TournamentService.add_guest(tournament_id, form.name.data, rng=_rng())
    return api_response(tournament, "Guest added.", 201)


@bp.route("/<string:tournament_id>/players/<string:player_id>", methods=["DELETE"])
@login_required
def remove_player(tournament_id: str, player_id: str) -> Any:
    """Remove a player. Players may also remove themselves."""
    if player_id != current_user_id():
        _check_host(tournament_id)
    tournament = TournamentService.remove_player(tournament_id, player_id)
    return api_response(tournament, "Player removed.")


@bp.route("/<string:tournament_id>/team-setup", methods=["POST"])
@login_required
def start_team_setup(tournament_id: str) -> Any:
    """Close the lobby and move to team setup."""
    _check_host(tournament_id)
    tournament = TournamentService.start_team_setup(tournament_id, rng=_rng())
    return api_response(tournament, "Team setup started.")


@bp.route("/<string:tournament_id>/teams", methods=["POST"])
@login_required
def create_team(tournament_id: str) -> Any:
    """Create a team from unassigned players."""
    _check_host(tournament_id)
    form = TeamForm()
    validate_form(form)
    team = TournamentService.create_team(
        tournament_id, form.name.data, form.player_ids.data, rng=_rng()
    )
    return api_response(team, "Team created.", 201)


@bp.route("/<string:tournament_id>/teams/auto", methods=["POST"])
@login_required
def auto_assign_teams(tournament_id: str) -> Any:
    """Rebuild one-player teams for a 1v1 tournament."""
    _check_host(tournament_id)
    tournament = TournamentService.auto_assign_teams(tournament_id, rng=_rng())
    return api_response(tournament, "Teams assigned.")


@bp.route("/<string:tournament_id>/teams/<string:team_id>", methods=["PUT"])
@login_required
def update_team(tournament_id: str, team_id: str) -> Any:
    """Rename a team or change its players."""
    _check_host(tournament_id)
    form = TeamForm()
    validate_form(form)
    tournament = TournamentService.update_team(
        tournament_id, team_id, form.name.data, form.player_ids.data
    )
    return api_response(tournament, "Team updated.")


@bp.route("/<string:tournament_id>/teams/<string:team_id>", methods=["DELETE"])
@login_required
def delete_team(tournament_id: str, team_id: str) -> Any:
    """Disband a team."""
    _check_host(tournament_id)
    tournament = TournamentService.delete_team(tournament_id, team_id)
    return api_response(tournament, "Team deleted.")


@bp.route("/<string:tournament_id>/start", methods=["POST"])
@login_required
def start_tournament(tournament_id: str) -> Any:
    """Generate the fixtures and start play."""
    _check_host(tournament_id)
    tournament = TournamentService.start_tournament(tournament_id, rng=_rng())
    current_app.logger.info(f"Tournament {tournament_id} started.")
    return api_response(tournament, "Tournament started.")


@bp.route(
    "/<string:tournament_id>/matches/<string:match_id>/start", methods=["POST"]
)
@login_required
def start_match(tournament_id: str, match_id: str) -> Any:
    """Start a match and create the game that plays it."""
    _check_host(tournament_id)
    tournament, game = TournamentService.start_tournament_match(tournament_id, match_id)
    return api_response({"tournament": tournament, "game": game}, "Match started.", 201)


@bp.route(
    "/<string:tournament_id>/matches/<string:match_id>/sync", methods=["POST"]
)
@login_required
def sync_match(tournament_id: str, match_id: str) -> Any:
    """Re-apply the result of a finished match's game."""
    _check_host(tournament_id)
    tournament = TournamentService.sync_match_result(tournament_id, match_id)
    return api_response(tournament, "Match result synced.")


@bp.route("/<string:tournament_id>/cancel", methods=["POST"])
@login_required
def cancel_tournament(tournament_id: str) -> Any:
    """Cancel the tournament."""
    _check_host(tournament_id)
    current_app.logger.info(f"Tournament {tournament_id} cancelled by host.")
    return api_response(
        TournamentService.cancel_tournament(tournament_id), "Tournament cancelled."
    )
