from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from pooltracker.models import User
from pooltracker.services import get_core

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the pool tracker!'})

@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    player = get_core().players.register(
        data.get('username'),
        data.get('password'),
        display_name=data.get('display_name'),
        skill_level=data.get('skill_level'),
    )
    login_user(player.user, remember=True)
    return jsonify({'success': True, 'user': player.user.to_dict(), 'player': player.to_dict()}), 201

@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(username=data.get('username')).first()
    if user and user.check_password(data.get('password') or ''):
        login_user(user, remember=True)
        return jsonify({'success': True, 'user': user.to_dict()})
    return jsonify({'success': False, 'error': 'Invalid username or password'}), 401

@main.route('/check_login', methods=['GET'])
@login_required
def check_login():
    return jsonify({'success': True, 'user': current_user.to_dict()})

@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
