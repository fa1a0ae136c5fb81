from typing import Optional

from flask import current_app
from sqlalchemy import func

from pooltracker.models import Player, User, utcnow
from .errors import InvalidProfile, PlayerNotFound, UsernameTaken, require_actor

MIN_SKILL_LEVEL = 1
MAX_SKILL_LEVEL = 10
MIN_SEARCH_LENGTH = 2


def _check_skill_level(skill_level):
    if skill_level is None:
        return None
    try:
        level = int(skill_level)
    except (TypeError, ValueError):
        raise InvalidProfile('Skill level must be a whole number')
    if not MIN_SKILL_LEVEL <= level <= MAX_SKILL_LEVEL:
        raise InvalidProfile(f'Skill level must be between {MIN_SKILL_LEVEL} and {MAX_SKILL_LEVEL}')
    return level


def _check_display_name(display_name):
    name = (display_name or '').strip()
    if not name:
        raise InvalidProfile('Display name is required')
    if len(name) > 64:
        raise InvalidProfile('Display name is too long')
    return name


class PlayerDirectory:
    """Player accounts and profiles, plus the lookups the UI needs."""

    def __init__(self, store, friendships, search_limit: int = 10):
        self.store = store
        self.friendships = friendships
        self.search_limit = search_limit

    def register(self, username, password, display_name=None, skill_level=None) -> Player:
        if not username or not password:
            raise InvalidProfile('Missing username or password')
        name = _check_display_name(display_name or username)
        level = _check_skill_level(skill_level)

        def _register(session):
            if session.query(User).filter_by(username=username).first():
                raise UsernameTaken()
            user = User(username=username)
            user.set_password(password)
            user.player = Player(display_name=name, skill_level=level)
            session.add(user)
            session.flush()
            return user.player

        player = self.store.transaction(_register, label='player-register')
        current_app.logger.info(f"[player-register] player={player.id} user={player.user_id}")
        return player

    def get(self, player_id) -> Player:
        player = self.store.get_player(player_id)
        if player is None:
            raise PlayerNotFound(f'Player {player_id} not found')
        return player

    def for_user(self, user_id) -> Optional[Player]:
        if user_id is None:
            return None
        return self.store.session.query(Player).filter_by(user_id=user_id).first()

    def list_all(self):
        return self.store.session.query(Player).order_by(Player.display_name, Player.id).all()

    def update_profile(self, actor_id, display_name=None, skill_level=None) -> Player:
        require_actor(actor_id)
        name = _check_display_name(display_name) if display_name is not None else None
        level = _check_skill_level(skill_level)

        def _update(session):
            player = self.store.get_player(actor_id)
            if player is None:
                raise PlayerNotFound()
            if name is not None:
                player.display_name = name
            if level is not None:
                player.skill_level = level
            player.updated_at = utcnow()
            return player

        return self.store.transaction(_update, label='player-update')

    def search(self, actor_id, query):
        """Find players to befriend by display name.

        Skips the caller and anyone already sharing a friendship row with
        them, whatever its status.
        """
        require_actor(actor_id)
        term = (query or '').strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return []
        excluded = self.friendships.related_player_ids(actor_id) | {actor_id}
        pattern = f'%{term.lower()}%'
        return (
            self.store.session.query(Player)
            .filter(func.lower(Player.display_name).like(pattern), Player.id.notin_(excluded))
            .order_by(Player.display_name, Player.id)
            .limit(self.search_limit)
            .all()
        )
