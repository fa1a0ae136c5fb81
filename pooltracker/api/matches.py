from flask import Blueprint, jsonify, request
from flask_login import login_required

from pooltracker.api import current_player_id
from pooltracker.services import MatchOutcome, get_core
from pooltracker.services.errors import InvalidParticipant

matches = Blueprint('matches', __name__)
games = Blueprint('games', __name__)


def _int_field(data, key):
    try:
        return int(data[key])
    except (KeyError, TypeError, ValueError):
        raise InvalidParticipant(f'{key} is required')


@matches.route('', methods=['POST'])
@login_required
def create_match():
    """
    Creates a match for the given players. The caller must be one of them.
    """
    data = request.get_json(silent=True) or {}
    try:
        player_ids = [int(pid) for pid in data.get('player_ids') or []]
    except (TypeError, ValueError):
        raise InvalidParticipant('player_ids must be a list of player ids')
    match = get_core().matches.create(current_player_id(), player_ids)
    return jsonify(match.to_dict()), 201


@matches.route('/current', methods=['GET'])
@login_required
def get_current_match():
    """
    Returns the caller's active match, or null.
    """
    match = get_core().matches.current_for(current_player_id())
    return jsonify(match.to_dict() if match else None)


@matches.route('/previous', methods=['GET'])
@login_required
def get_previous_matches():
    ended = get_core().matches.previous_for(current_player_id(), request.args.get('limit', type=int))
    return jsonify([m.to_dict(include_games=False) for m in ended])


@matches.route('/<int:match_id>', methods=['GET'])
@login_required
def get_match(match_id):
    core = get_core()
    data = core.matches.get(match_id).to_dict()
    game = core.games.active_for(match_id)
    data['active_game'] = game.to_dict() if game else None
    return jsonify(data)


@matches.route('/<int:match_id>/end', methods=['POST'])
@login_required
def end_match(match_id):
    """
    Ends a match: {"status": "abandoned"} or {"status": "finished", "scores": {...}}.
    """
    outcome = MatchOutcome.from_dict(request.get_json(silent=True) or {})
    match = get_core().matches.end(current_player_id(), match_id, outcome)
    return jsonify(match.to_dict())


@matches.route('/<int:match_id>/games', methods=['POST'])
@login_required
def start_game(match_id):
    data = request.get_json(silent=True) or {}
    game = get_core().games.start(
        current_player_id(),
        match_id,
        _int_field(data, 'player_a_id'),
        _int_field(data, 'player_b_id'),
    )
    return jsonify(game.to_dict()), 201


@games.route('/<int:game_id>', methods=['GET'])
@login_required
def get_game(game_id):
    return jsonify(get_core().games.get(game_id).to_dict())


@games.route('/<int:game_id>/win', methods=['POST'])
@login_required
def record_game_win(game_id):
    data = request.get_json(silent=True) or {}
    game = get_core().games.record_win(current_player_id(), game_id, _int_field(data, 'winner_id'))
    return jsonify(game.to_dict())
