from flask import Blueprint, jsonify, request
from flask_login import login_required

from pooltracker.api import current_player_id
from pooltracker.services import get_core
from pooltracker.services.errors import InvalidParticipant

friends = Blueprint('friends', __name__)


def _player_field(data, key):
    try:
        return int(data[key])
    except (KeyError, TypeError, ValueError):
        raise InvalidParticipant(f'{key} is required')


@friends.route('', methods=['GET'])
@login_required
def list_friends():
    return jsonify([p.to_dict() for p in get_core().friendships.friends_of(current_player_id())])


@friends.route('/requests/received', methods=['GET'])
@login_required
def received_requests():
    rows = get_core().friendships.pending_received(current_player_id())
    return jsonify([f.to_dict() for f in rows])


@friends.route('/requests/sent', methods=['GET'])
@login_required
def sent_requests():
    rows = get_core().friendships.pending_sent(current_player_id())
    return jsonify([f.to_dict() for f in rows])


@friends.route('/requests/declined', methods=['GET'])
@login_required
def declined_requests():
    rows = get_core().friendships.declined_involving(current_player_id())
    return jsonify([f.to_dict() for f in rows])


@friends.route('/requests', methods=['POST'])
@login_required
def create_request():
    data = request.get_json(silent=True) or {}
    friendship = get_core().friendships.request(current_player_id(), _player_field(data, 'addressee_id'))
    return jsonify(friendship.to_dict()), 201


@friends.route('/requests/<int:friendship_id>/respond', methods=['POST'])
@login_required
def respond_request(friendship_id):
    data = request.get_json(silent=True) or {}
    friendship = get_core().friendships.respond(current_player_id(), friendship_id, bool(data.get('accept')))
    return jsonify(friendship.to_dict())


@friends.route('/block', methods=['POST'])
@login_required
def block_player():
    data = request.get_json(silent=True) or {}
    friendship = get_core().friendships.block(current_player_id(), _player_field(data, 'player_id'))
    return jsonify(friendship.to_dict())
