from flask import Blueprint, jsonify, request
from flask_login import login_required

from pooltracker.api import current_player_id
from pooltracker.services import get_core

players = Blueprint('players', __name__)


@players.route('', methods=['GET'])
@login_required
def list_players():
    """All players, e.g. to pick opponents for a new match."""
    return jsonify([p.to_dict() for p in get_core().players.list_all()])


@players.route('/me', methods=['GET'])
@login_required
def get_me():
    return jsonify(get_core().players.get(current_player_id()).to_dict())


@players.route('/me', methods=['PATCH'])
@login_required
def update_me():
    data = request.get_json(silent=True) or {}
    player = get_core().players.update_profile(
        current_player_id(),
        display_name=data.get('display_name'),
        skill_level=data.get('skill_level'),
    )
    return jsonify(player.to_dict())


@players.route('/search', methods=['GET'])
@login_required
def search_players():
    """Players the caller could send a friend request to."""
    results = get_core().players.search(current_player_id(), request.args.get('q', ''))
    return jsonify([p.to_dict() for p in results])


@players.route('/<int:player_id>', methods=['GET'])
@login_required
def get_player(player_id):
    return jsonify(get_core().players.get(player_id).to_dict())
