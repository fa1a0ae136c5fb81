import os
import sys
import pytest
from flask import g

# Ensure the project root (containing the `pooltracker` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from pooltracker import create_app, db
from pooltracker.services import get_core


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    MIN_MATCH_PLAYERS = 2
    MAX_MATCH_PLAYERS = 8
    STORE_CONFLICT_RETRIES = 1
    PLAYER_SEARCH_LIMIT = 10
    MATCH_HISTORY_LIMIT = 50


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)

    @application.before_request
    def _reload_login_user():
        # Requests reuse the app context below, so g outlives each request
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import pooltracker.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def core(flask_app):
    return get_core()


@pytest.fixture()
def make_player(core):
    def _make(name, skill_level=None):
        return core.players.register(name.lower(), 'password', display_name=name, skill_level=skill_level)
    return _make


@pytest.fixture()
def p1(make_player):
    return make_player('Alice')


@pytest.fixture()
def p2(make_player):
    return make_player('Bob')


@pytest.fixture()
def p3(make_player):
    return make_player('Cara')


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def login(flask_app):
    """Return a fresh test client logged in as the given username."""
    def _login(username, password='password'):
        test_client = flask_app.test_client()
        res = test_client.post('/login', json={'username': username, 'password': password})
        assert res.status_code == 200
        return test_client
    return _login
