"""Session-based access control for the JSON blueprints."""

from .decorators import current_user_id, login_required

__all__ = ["current_user_id", "login_required"]
