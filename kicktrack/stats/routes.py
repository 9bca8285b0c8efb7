from __future__ import annotations

from typing import Any

from flask import request

from kicktrack.auth.decorators import login_required
from kicktrack.core.responses import api_response

from . import bp
from .services import StatsService


@bp.route("/players/<string:user_id>", methods=["GET"])
@login_required
def player_stats(user_id: str) -> Any:
    """Endpoint to get a player's statistics, optionally filtered."""
    stats = StatsService.get_player_stats(
        user_id,
        venue_id=request.args.get("venue_id") or None,
        points=request.args.get("points") or None,
        mode=request.args.get("mode") or None,
    )
    return api_response(stats)
