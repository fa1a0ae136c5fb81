from flask import current_app
from sqlalchemy import or_

from pooltracker.models import Friendship, FriendshipStatus, Player, utcnow
from .errors import (
    FriendshipAlreadyExists,
    InvalidParticipant,
    PlayerNotFound,
    RequestNotFound,
    SelfFriendRequest,
    require_actor,
)


class FriendshipEngine:
    """Friend-request state machine, one row per unordered pair of players.

    absent -> pending -> accepted | declined, and any existing state -> blocked.
    A row in any state blocks a new request for the same pair, whichever
    side sends it.
    """

    def __init__(self, store):
        self.store = store

    def request(self, requester_id, addressee_id) -> Friendship:
        require_actor(requester_id)
        if requester_id == addressee_id:
            raise SelfFriendRequest()

        def _request(session):
            if self.store.get_player(addressee_id) is None:
                raise PlayerNotFound(f'Player {addressee_id} not found')
            if self.store.friendship_between(requester_id, addressee_id) is not None:
                raise FriendshipAlreadyExists()
            friendship = Friendship(
                requester_id=requester_id,
                addressee_id=addressee_id,
                status=FriendshipStatus.PENDING,
            )
            session.add(friendship)
            session.flush()
            return friendship

        friendship = self.store.transaction(_request, label='friend-request')
        current_app.logger.info(
            f"[friend-request] id={friendship.id} from={requester_id} to={addressee_id}"
        )
        return friendship

    def respond(self, responder_id, friendship_id, accept: bool) -> Friendship:
        require_actor(responder_id)
        target = FriendshipStatus.ACCEPTED if accept else FriendshipStatus.DECLINED

        def _respond(session):
            friendship = (
                session.query(Friendship)
                .filter(
                    Friendship.id == friendship_id,
                    Friendship.addressee_id == responder_id,
                    Friendship.status == FriendshipStatus.PENDING,
                )
                .with_for_update()
                .first()
            )
            if friendship is None or not friendship.status.can_become(target):
                raise RequestNotFound()
            friendship.status = target
            friendship.updated_at = utcnow()
            return friendship

        friendship = self.store.transaction(_respond, label='friend-respond')
        current_app.logger.info(
            f"[friend-respond] id={friendship.id} by={responder_id} status={friendship.status.value}"
        )
        return friendship

    def block(self, blocker_id, other_id) -> Friendship:
        """Block another player, whatever the pair's current state.

        The blocker becomes the requester of the pair's single row. Blocking
        is terminal: blocked pairs cannot exchange requests afterwards.
        """
        require_actor(blocker_id)
        if blocker_id == other_id:
            raise InvalidParticipant('You cannot block yourself')

        def _block(session):
            if self.store.get_player(other_id) is None:
                raise PlayerNotFound(f'Player {other_id} not found')
            friendship = self.store.friendship_between(blocker_id, other_id)
            if friendship is None:
                friendship = Friendship(
                    requester_id=blocker_id,
                    addressee_id=other_id,
                    status=FriendshipStatus.BLOCKED,
                )
                session.add(friendship)
            elif friendship.status is FriendshipStatus.BLOCKED:
                return friendship
            elif friendship.status.can_become(FriendshipStatus.BLOCKED):
                friendship.set_parties(blocker_id, other_id)
                friendship.status = FriendshipStatus.BLOCKED
                friendship.updated_at = utcnow()
            else:
                raise AssertionError(f'unhandled friendship status {friendship.status!r}')
            session.flush()
            return friendship

        friendship = self.store.transaction(_block, label='friend-block')
        current_app.logger.info(f"[friend-block] id={friendship.id} by={blocker_id} other={other_id}")
        return friendship

    # ---- Read side ----

    def _involving(self, player_id, status):
        return (
            self.store.session.query(Friendship)
            .filter(
                or_(Friendship.requester_id == player_id, Friendship.addressee_id == player_id),
                Friendship.status == status,
            )
            .order_by(Friendship.updated_at.desc(), Friendship.id.desc())
            .all()
        )

    def friends_of(self, player_id):
        """Players on the other side of every accepted friendship."""
        rows = self._involving(player_id, FriendshipStatus.ACCEPTED)
        other_ids = [f.other_party(player_id) for f in rows]
        if not other_ids:
            return []
        players = {
            p.id: p for p in self.store.session.query(Player).filter(Player.id.in_(other_ids))
        }
        return [players[pid] for pid in other_ids if pid in players]

    def pending_received(self, player_id):
        return (
            self.store.session.query(Friendship)
            .filter(
                Friendship.addressee_id == player_id,
                Friendship.status == FriendshipStatus.PENDING,
            )
            .order_by(Friendship.created_at.desc(), Friendship.id.desc())
            .all()
        )

    def pending_sent(self, player_id):
        return (
            self.store.session.query(Friendship)
            .filter(
                Friendship.requester_id == player_id,
                Friendship.status == FriendshipStatus.PENDING,
            )
            .order_by(Friendship.created_at.desc(), Friendship.id.desc())
            .all()
        )

    def declined_involving(self, player_id):
        return self._involving(player_id, FriendshipStatus.DECLINED)

    def related_player_ids(self, player_id):
        """Ids of everyone sharing a friendship row (any status) with the player."""
        rows = (
            self.store.session.query(Friendship.requester_id, Friendship.addressee_id)
            .filter(or_(Friendship.requester_id == player_id, Friendship.addressee_id == player_id))
            .all()
        )
        return {r.addressee_id if r.requester_id == player_id else r.requester_id for r in rows}
