from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from pooltracker.models import Match, MatchParticipant, MatchStatus, utcnow
from .errors import (
    ActiveMatchExists,
    GameInProgress,
    InvalidMatchState,
    InvalidParticipant,
    MatchNotFound,
    PlayerNotFound,
    require_actor,
)
from .scoring import pick_winner


@dataclass(frozen=True)
class MatchOutcome:
    """How a match ends: abandoned, or finished with final per-player scores."""

    status: MatchStatus
    scores: dict = field(default_factory=dict)

    @classmethod
    def abandoned(cls) -> 'MatchOutcome':
        return cls(MatchStatus.ABANDONED)

    @classmethod
    def finished(cls, scores: Optional[Mapping] = None) -> 'MatchOutcome':
        return cls(MatchStatus.FINISHED, dict(scores or {}))

    @classmethod
    def from_dict(cls, data: Mapping) -> 'MatchOutcome':
        """Parse an API payload.

        ``scores`` may be a ``{player_id: score}`` object or a list of
        ``{"player_id": ..., "score": ...}`` entries; order is kept either way.
        """
        raw_status = (data or {}).get('status') or MatchStatus.FINISHED.value
        try:
            status = MatchStatus(raw_status)
        except ValueError:
            raise InvalidMatchState(f"Unknown match outcome '{raw_status}'")
        if status is MatchStatus.ABANDONED:
            return cls.abandoned()
        if status is not MatchStatus.FINISHED:
            raise InvalidMatchState(f"A match cannot end as '{status.value}'")

        raw_scores = data.get('scores') or data.get('player_scores') or {}
        if isinstance(raw_scores, Mapping):
            pairs = raw_scores.items()
        else:
            pairs = [(entry.get('player_id'), entry.get('score')) for entry in raw_scores]
        scores = {}
        try:
            for player_id, score in pairs:
                scores[int(player_id)] = int(score)
        except (TypeError, ValueError):
            raise InvalidParticipant('Scores must map player ids to whole numbers')
        return cls.finished(scores)


class MatchLifecycleManager:
    """Creates matches and ends them (finish or abandon).

    Match scores written here are a summary for spectators only: no player
    counters change when a match ends. Counters move with game wins.
    """

    def __init__(self, store, min_players: int = 2, max_players: int = 8, history_limit: int = 50):
        self.store = store
        self.min_players = min_players
        self.max_players = max_players
        self.history_limit = history_limit

    def create(self, actor_id, participant_ids) -> Match:
        require_actor(actor_id)
        ids = list(participant_ids or [])
        if len(set(ids)) != len(ids):
            raise InvalidParticipant('A player cannot join the same match twice')
        if not self.min_players <= len(ids) <= self.max_players:
            raise InvalidParticipant(
                f'A match needs between {self.min_players} and {self.max_players} players'
            )
        if actor_id not in ids:
            raise InvalidParticipant('You must be one of the match players')

        def _create(session):
            found = {p.id for p in self.store.lock_players(ids)}
            missing = [pid for pid in ids if pid not in found]
            if missing:
                raise PlayerNotFound(f'Player {missing[0]} not found')
            busy = self.store.players_in_active_matches(ids)
            if actor_id in busy:
                raise ActiveMatchExists()
            if busy:
                raise ActiveMatchExists(f'Players {busy} are already in an active match')
            match = Match(status=MatchStatus.ACTIVE)
            match.participants = [
                MatchParticipant(player_id=pid, score=0, active=True) for pid in ids
            ]
            session.add(match)
            session.flush()
            return match

        match = self.store.transaction(_create, label='match-create')
        current_app.logger.info(f"[match-create] match={match.id} by={actor_id} players={ids}")
        return match

    def end(self, actor_id, match_id, outcome: MatchOutcome) -> Match:
        require_actor(actor_id)

        def _end(session):
            match = self.store.get_match(match_id, lock=True)
            if match is None:
                raise MatchNotFound(f'Match {match_id} not found')
            if match.participant_for(actor_id) is None:
                raise InvalidParticipant('Only match players can end a match')
            if not match.status.can_become(outcome.status):
                raise InvalidMatchState(
                    f'Match {match.id} is {match.status.value} and cannot become {outcome.status.value}'
                )

            if outcome.status is MatchStatus.ABANDONED:
                pass
            elif outcome.status is MatchStatus.FINISHED:
                self._apply_final_scores(match, outcome.scores)
            else:
                raise AssertionError(f'unhandled outcome {outcome.status!r}')

            match.status = outcome.status
            match.finished_at = utcnow()
            for participant in match.participants:
                participant.active = False
            return match

        match = self.store.transaction(_end, label='match-end')
        current_app.logger.info(
            f"[match-end] match={match.id} status={match.status.value} winner={match.winner_id}"
        )
        return match

    def _apply_final_scores(self, match: Match, scores: Mapping) -> None:
        if self.store.active_game(match.id) is not None:
            raise GameInProgress('Record the current game before finishing the match')
        unknown = [pid for pid in scores if match.participant_for(pid) is None]
        if unknown:
            raise InvalidParticipant(f'Player {unknown[0]} is not in match {match.id}')
        for player_id, score in scores.items():
            match.participant_for(player_id).score = score
        # Sheet order first, then anyone left off it keeps their running tally
        order = list(scores) + [p.player_id for p in match.participants if p.player_id not in scores]
        match.winner_id = pick_winner([(pid, match.participant_for(pid).score) for pid in order])

    # ---- Read side ----

    def get(self, match_id) -> Match:
        match = self.store.get_match(match_id)
        if match is None:
            raise MatchNotFound(f'Match {match_id} not found')
        return match

    def current_for(self, player_id) -> Optional[Match]:
        return (
            self.store.session.query(Match)
            .join(MatchParticipant, MatchParticipant.match_id == Match.id)
            .filter(MatchParticipant.player_id == player_id, Match.status == MatchStatus.ACTIVE)
            .first()
        )

    def previous_for(self, player_id, limit: Optional[int] = None):
        return (
            self.store.session.query(Match)
            .join(MatchParticipant, MatchParticipant.match_id == Match.id)
            .filter(MatchParticipant.player_id == player_id, Match.status != MatchStatus.ACTIVE)
            .order_by(Match.created_at.desc(), Match.id.desc())
            .limit(limit or self.history_limit)
            .all()
        )
