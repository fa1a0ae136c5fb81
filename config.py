import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///pooltracker.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Frontend origins allowed to call the API with credentials
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
        ).split(',') if o.strip()
    ]
    # Match size bounds
    MIN_MATCH_PLAYERS = int(os.environ.get('MIN_MATCH_PLAYERS', '2'))
    MAX_MATCH_PLAYERS = int(os.environ.get('MAX_MATCH_PLAYERS', '8'))
    # How many times a transaction that lost a write race is replayed
    STORE_CONFLICT_RETRIES = int(os.environ.get('STORE_CONFLICT_RETRIES', '1'))
    # Read-side limits
    PLAYER_SEARCH_LIMIT = int(os.environ.get('PLAYER_SEARCH_LIMIT', '10'))
    MATCH_HISTORY_LIMIT = int(os.environ.get('MATCH_HISTORY_LIMIT', '50'))
