import enum
from datetime import datetime, timezone

from flask_login import UserMixin

from pooltracker import db, bcrypt


def utcnow():
    """Naive UTC timestamp; SQLite drops tzinfo so we never store it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MatchStatus(enum.Enum):
    ACTIVE = 'active'
    FINISHED = 'finished'
    ABANDONED = 'abandoned'

    def can_become(self, target: 'MatchStatus') -> bool:
        return target in _MATCH_TRANSITIONS[self]


class GameStatus(enum.Enum):
    ACTIVE = 'active'
    FINISHED = 'finished'

    def can_become(self, target: 'GameStatus') -> bool:
        return target in _GAME_TRANSITIONS[self]


class FriendshipStatus(enum.Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    DECLINED = 'declined'
    BLOCKED = 'blocked'

    def can_become(self, target: 'FriendshipStatus') -> bool:
        return target in _FRIENDSHIP_TRANSITIONS[self]


# Every member must appear as a key; a missing one raises KeyError instead of
# silently allowing or denying a transition.
_MATCH_TRANSITIONS = {
    MatchStatus.ACTIVE: {MatchStatus.FINISHED, MatchStatus.ABANDONED},
    MatchStatus.FINISHED: set(),
    MatchStatus.ABANDONED: set(),
}

_GAME_TRANSITIONS = {
    GameStatus.ACTIVE: {GameStatus.FINISHED},
    GameStatus.FINISHED: set(),
}

_FRIENDSHIP_TRANSITIONS = {
    FriendshipStatus.PENDING: {
        FriendshipStatus.ACCEPTED,
        FriendshipStatus.DECLINED,
        FriendshipStatus.BLOCKED,
    },
    FriendshipStatus.ACCEPTED: {FriendshipStatus.BLOCKED},
    FriendshipStatus.DECLINED: {FriendshipStatus.BLOCKED},
    FriendshipStatus.BLOCKED: set(),
}


def _status_column(enum_cls, default):
    return db.Column(
        db.Enum(
            enum_cls,
            native_enum=False,
            length=16,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        nullable=False,
        default=default,
        index=True,
    )


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    player = db.relationship('Player', back_populates='user', uselist=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'player_id': self.player.id if self.player else None,
        }


class Player(db.Model):
    __tablename__ = 'players'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    display_name = db.Column(db.String(64), nullable=False, index=True)
    skill_level = db.Column(db.Integer, nullable=True)
    # Written only by StatsUpdater
    games_played = db.Column(db.Integer, nullable=False, default=0)
    games_won = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    user = db.relationship('User', back_populates='player')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'display_name': self.display_name,
            'skill_level': self.skill_level,
            'games_played': self.games_played,
            'games_won': self.games_won,
        }


class Match(db.Model):
    __tablename__ = 'matches'
    __table_args__ = (
        db.CheckConstraint("(status = 'finished') = (winner_id IS NOT NULL)", name='ck_matches_winner_iff_finished'),
        db.CheckConstraint("(status = 'active') = (finished_at IS NULL)", name='ck_matches_finished_at_iff_ended'),
    )
    id = db.Column(db.Integer, primary_key=True)
    status = _status_column(MatchStatus, MatchStatus.ACTIVE)
    winner_id = db.Column(db.Integer, db.ForeignKey('players.id'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    finished_at = db.Column(db.DateTime, nullable=True)
    winner = db.relationship('Player', foreign_keys=[winner_id])
    participants = db.relationship(
        'MatchParticipant', back_populates='match',
        order_by='MatchParticipant.id', cascade='all, delete-orphan',
    )
    games = db.relationship(
        'Game', back_populates='match',
        order_by='Game.game_number', cascade='all, delete-orphan',
    )

    @property
    def is_active(self):
        return self.status is MatchStatus.ACTIVE

    @property
    def player_ids(self):
        return [p.player_id for p in self.participants]

    def participant_for(self, player_id):
        for p in self.participants:
            if p.player_id == player_id:
                return p
        return None

    def to_dict(self, include_games=True):
        data = {
            'id': self.id,
            'status': self.status.value,
            'winner_id': self.winner_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'players': [p.to_dict() for p in self.participants],
        }
        if include_games:
            data['games'] = [g.to_dict() for g in self.games]
        return data


class MatchParticipant(db.Model):
    __tablename__ = 'match_participants'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'player_id', name='uq_match_participants_player'),
        # Backstop for "one active match per player": racing creates that both
        # pass the existence check collide here instead of committing.
        db.Index(
            'uq_match_participants_active_player', 'player_id', unique=True,
            sqlite_where=db.text('active'), postgresql_where=db.text('active'),
        ),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('players.id', ondelete='CASCADE'), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    # Mirrors match.status == active; cleared when the match ends
    active = db.Column(db.Boolean, nullable=False, default=True)
    match = db.relationship('Match', back_populates='participants')
    player = db.relationship('Player')

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'display_name': self.player.display_name if self.player else None,
            'score': self.score,
        }


class Game(db.Model):
    __tablename__ = 'games'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'game_number', name='uq_games_number'),
        db.Index(
            'uq_games_active_per_match', 'match_id', unique=True,
            sqlite_where=db.text("status = 'active'"), postgresql_where=db.text("status = 'active'"),
        ),
        db.CheckConstraint("(status = 'finished') = (winner_id IS NOT NULL)", name='ck_games_winner_iff_finished'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False, index=True)
    game_number = db.Column(db.Integer, nullable=False)
    status = _status_column(GameStatus, GameStatus.ACTIVE)
    winner_id = db.Column(db.Integer, db.ForeignKey('players.id'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    finished_at = db.Column(db.DateTime, nullable=True)
    match = db.relationship('Match', back_populates='games')
    winner = db.relationship('Player', foreign_keys=[winner_id])
    participants = db.relationship(
        'GameParticipant', back_populates='game',
        order_by='GameParticipant.id', cascade='all, delete-orphan',
    )

    @property
    def player_ids(self):
        return [p.player_id for p in self.participants]

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'game_number': self.game_number,
            'status': self.status.value,
            'winner_id': self.winner_id,
            'players': [{'player_id': p.player_id, 'score': p.score} for p in self.participants],
        }


class GameParticipant(db.Model):
    __tablename__ = 'game_participants'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'player_id', name='uq_game_participants_player'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('games.id', ondelete='CASCADE'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('players.id', ondelete='CASCADE'), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    game = db.relationship('Game', back_populates='participants')
    player = db.relationship('Player')


def pair_key(a, b):
    """Normalized key for an unordered pair of player ids."""
    return (a, b) if a <= b else (b, a)


class Friendship(db.Model):
    __tablename__ = 'friendships'
    __table_args__ = (
        db.UniqueConstraint('pair_low', 'pair_high', name='uq_friendships_pair'),
        db.CheckConstraint('requester_id <> addressee_id', name='ck_friendships_not_self'),
    )
    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('players.id', ondelete='CASCADE'), nullable=False, index=True)
    addressee_id = db.Column(db.Integer, db.ForeignKey('players.id', ondelete='CASCADE'), nullable=False, index=True)
    pair_low = db.Column(db.Integer, nullable=False)
    pair_high = db.Column(db.Integer, nullable=False)
    status = _status_column(FriendshipStatus, FriendshipStatus.PENDING)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    requester = db.relationship('Player', foreign_keys=[requester_id])
    addressee = db.relationship('Player', foreign_keys=[addressee_id])

    def __init__(self, **kwargs):
        super(Friendship, self).__init__(**kwargs)
        self.set_parties(self.requester_id, self.addressee_id)

    def set_parties(self, requester_id, addressee_id):
        self.requester_id = requester_id
        self.addressee_id = addressee_id
        self.pair_low, self.pair_high = pair_key(requester_id, addressee_id)

    def other_party(self, player_id):
        return self.addressee_id if self.requester_id == player_id else self.requester_id

    def to_dict(self):
        return {
            'id': self.id,
            'requester_id': self.requester_id,
            'addressee_id': self.addressee_id,
            'requester': self.requester.display_name if self.requester else None,
            'addressee': self.addressee.display_name if self.addressee else None,
            'status': self.status.value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
