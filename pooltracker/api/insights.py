from flask import Blueprint, jsonify, request
from flask_login import login_required

from pooltracker.api import current_player_id
from pooltracker.services import get_core
from pooltracker.services.errors import require_actor

insights = Blueprint('insights', __name__)


@insights.route('/history', methods=['GET'])
@login_required
def match_history():
    player_id = require_actor(current_player_id())
    return jsonify(get_core().insights.match_history(player_id, request.args.get('limit', type=int)))


@insights.route('/summary', methods=['GET'])
@login_required
def summary():
    player_id = require_actor(current_player_id())
    return jsonify(get_core().insights.summary(player_id))


@insights.route('/activity', methods=['GET'])
@login_required
def activity():
    player_id = require_actor(current_player_id())
    return jsonify(get_core().insights.activity(player_id, request.args.get('days', 365, type=int)))


@insights.route('/friends', methods=['GET'])
@login_required
def friend_stats():
    """Accepted friends with their win/loss counters, for head-to-head views."""
    player_id = require_actor(current_player_id())
    return jsonify([p.to_dict() for p in get_core().friendships.friends_of(player_id)])
