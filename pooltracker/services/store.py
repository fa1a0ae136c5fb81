"""Persistence collaborator for the core.

``Store`` wraps the Flask-SQLAlchemy handle. It owns the transaction boundary
(``transaction``) and the gating queries the lifecycle managers run inside it.
"""

from flask import current_app
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from pooltracker.models import (
    Friendship,
    Game,
    GameStatus,
    Match,
    MatchParticipant,
    MatchStatus,
    Player,
    pair_key,
)
from .errors import PoolTrackerError, StoreFailure

_CONFLICT_MARKERS = (
    'database is locked',
    'database table is locked',
    'deadlock',
    'could not serialize',
    'lock timeout',
)


def is_write_conflict(exc: DBAPIError) -> bool:
    """True when the error means another writer won a race for the same rows."""
    if isinstance(exc, IntegrityError):
        return True
    if isinstance(exc, OperationalError):
        text = str(exc.orig).lower()
        return any(marker in text for marker in _CONFLICT_MARKERS)
    return False


class Store:
    def __init__(self, db, conflict_retries: int = 1):
        self._db = db
        self.conflict_retries = max(0, int(conflict_retries))

    @property
    def session(self):
        return self._db.session

    def transaction(self, fn, label: str = 'transaction'):
        """Run ``fn(session)`` and commit, all or nothing.

        Domain errors raised by ``fn`` roll back and propagate unchanged. A
        lost write race is replayed up to ``conflict_retries`` times; the
        replay re-runs the gating reads, so it usually ends in the proper
        domain error. Any other database error becomes ``StoreFailure``.
        """
        attempt = 0
        while True:
            session = self.session
            try:
                result = fn(session)
                session.commit()
                return result
            except PoolTrackerError:
                session.rollback()
                raise
            except DBAPIError as exc:
                session.rollback()
                conflict = is_write_conflict(exc)
                if conflict and attempt < self.conflict_retries:
                    attempt += 1
                    current_app.logger.info(
                        f"[store-retry] op={label} attempt={attempt} cause={type(exc).__name__}"
                    )
                    continue
                current_app.logger.warning(
                    f"[store-fail] op={label} attempts={attempt + 1} conflict={conflict} cause={exc.orig!r}"
                )
                raise StoreFailure(retryable=conflict) from exc
            except Exception:
                session.rollback()
                raise

    # ---- Players ----

    def get_player(self, player_id):
        if player_id is None:
            return None
        return self.session.get(Player, player_id)

    def lock_players(self, player_ids):
        """Load players FOR UPDATE in id order so overlapping creates queue up."""
        return (
            self.session.query(Player)
            .filter(Player.id.in_(list(player_ids)))
            .order_by(Player.id)
            .with_for_update()
            .all()
        )

    def players_in_active_matches(self, player_ids):
        """Ids among ``player_ids`` that already take part in an active match."""
        rows = (
            self.session.query(MatchParticipant.player_id)
            .join(Match, Match.id == MatchParticipant.match_id)
            .filter(
                MatchParticipant.player_id.in_(list(player_ids)),
                Match.status == MatchStatus.ACTIVE,
            )
            .all()
        )
        return sorted({r.player_id for r in rows})

    # ---- Matches and games ----

    def get_match(self, match_id, lock=False):
        query = self.session.query(Match).filter(Match.id == match_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_game(self, game_id, lock=False):
        query = self.session.query(Game).filter(Game.id == game_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def active_game(self, match_id):
        return (
            self.session.query(Game)
            .filter(Game.match_id == match_id, Game.status == GameStatus.ACTIVE)
            .first()
        )

    def count_games(self, match_id) -> int:
        return self.session.query(Game).filter(Game.match_id == match_id).count()

    # ---- Friendships ----

    def friendship_between(self, a, b):
        low, high = pair_key(a, b)
        return (
            self.session.query(Friendship)
            .filter(Friendship.pair_low == low, Friendship.pair_high == high)
            .first()
        )
