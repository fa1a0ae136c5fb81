from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=flask_app.config.get('CORS_ORIGINS', []))

    # Core engine: one instance per app, bound to this app's db handle
    from pooltracker.services import build_core
    from pooltracker.services.store import Store
    store = Store(db, conflict_retries=int(flask_app.config.get('STORE_CONFLICT_RETRIES', 1)))
    flask_app.extensions['pooltracker'] = build_core(store, flask_app.config)

    # Import and register blueprints here
    from pooltracker.routes import main
    flask_app.register_blueprint(main)

    from pooltracker.api.players import players
    flask_app.register_blueprint(players, url_prefix='/api/players')

    from pooltracker.api.matches import matches, games
    flask_app.register_blueprint(matches, url_prefix='/api/matches')
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from pooltracker.api.friends import friends
    flask_app.register_blueprint(friends, url_prefix='/api/friends')

    from pooltracker.api.insights import insights
    flask_app.register_blueprint(insights, url_prefix='/api/insights')

    from pooltracker.api import register_error_handlers
    register_error_handlers(flask_app)

    # Flask-Login user loader
    from pooltracker.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Not authenticated', 'code': 'NotAuthenticated'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database schema."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
