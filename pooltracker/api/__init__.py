from flask import current_app, jsonify
from flask_login import current_user

from pooltracker.services import get_core
from pooltracker.services.errors import PoolTrackerError


def current_player_id():
    """Player id of the logged-in user, or None for anonymous callers."""
    if not current_user.is_authenticated:
        return None
    player = get_core().players.for_user(current_user.id)
    return player.id if player else None


def register_error_handlers(flask_app):
    @flask_app.errorhandler(PoolTrackerError)
    def handle_core_error(exc):
        current_app.logger.info(f"[rejected] code={exc.code} status={exc.status_code} message={exc.message}")
        return jsonify(exc.to_dict()), exc.status_code
