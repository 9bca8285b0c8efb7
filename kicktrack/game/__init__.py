"""The game blueprint."""

from flask import Blueprint

bp = Blueprint("game", __name__, url_prefix="/games")

from . import routes  # noqa: E402, F401
