"""Typed errors raised by the pool tracker core.

Every failure of a core operation is one of these. The API layer turns them
into JSON responses using ``status_code``; nothing is committed when one is
raised.
"""


class PoolTrackerError(Exception):
    status_code = 400

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        if status_code is not None:
            self.status_code = status_code

    @property
    def code(self):
        return self.__class__.__name__

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class NotAuthenticated(PoolTrackerError):
    """Not authenticated"""
    status_code = 401


# ---- Resource no longer exists ----

class NotFoundError(PoolTrackerError):
    """Not found"""
    status_code = 404


class PlayerNotFound(NotFoundError):
    """Player profile not found"""


class MatchNotFound(NotFoundError):
    """Match not found"""


class GameNotFound(NotFoundError):
    """Game not found"""


class RequestNotFound(NotFoundError):
    """Friend request not found or already processed"""


# ---- User-actionable rejections ----

class InvariantViolation(PoolTrackerError):
    """Request rejected"""
    status_code = 409


class ActiveMatchExists(InvariantViolation):
    """There is already an active match"""


class GameInProgress(InvariantViolation):
    """A game is already in progress"""


class FriendshipAlreadyExists(InvariantViolation):
    """Friendship request already exists"""


class InvalidMatchState(InvariantViolation):
    """Match is not active"""


class InvalidGameState(InvariantViolation):
    """Game is already finished"""


class InvalidParticipant(InvariantViolation):
    """Player is not a participant"""
    status_code = 400


class SelfFriendRequest(InvariantViolation):
    """You cannot send a friend request to yourself"""
    status_code = 400


class UsernameTaken(InvariantViolation):
    """Username already exists"""


class InvalidProfile(InvariantViolation):
    """Invalid profile data"""
    status_code = 400


class StoreFailure(PoolTrackerError):
    """The change could not be saved, please try again"""
    status_code = 503

    def __init__(self, message=None, retryable=True):
        super().__init__(message)
        self.retryable = retryable

    def to_dict(self):
        data = super().to_dict()
        data['retryable'] = self.retryable
        return data


def require_actor(actor_id):
    """Reject calls that arrive without a resolved player identity."""
    if actor_id is None:
        raise NotAuthenticated()
    return actor_id
