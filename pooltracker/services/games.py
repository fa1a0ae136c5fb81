from flask import current_app

from pooltracker.models import Game, GameParticipant, GameStatus, MatchParticipant, utcnow
from .errors import (
    GameInProgress,
    GameNotFound,
    InvalidGameState,
    InvalidMatchState,
    InvalidParticipant,
    MatchNotFound,
    require_actor,
)


class GameLifecycleManager:
    """Games (rounds) inside a match: start one, then record its winner.

    Recording a win is the only path that moves player counters, and it does
    so in the same transaction that closes the game.
    """

    def __init__(self, store, stats):
        self.store = store
        self.stats = stats

    def start(self, actor_id, match_id, player_a_id, player_b_id) -> Game:
        require_actor(actor_id)
        if player_a_id == player_b_id:
            raise InvalidParticipant('A game needs two different players')

        def _start(session):
            # The match row lock serialises concurrent starts for one match
            match = self.store.get_match(match_id, lock=True)
            if match is None:
                raise MatchNotFound(f'Match {match_id} not found')
            if match.participant_for(actor_id) is None:
                raise InvalidParticipant('Only match players can start a game')
            if not match.is_active:
                raise InvalidMatchState(f'Match {match.id} is {match.status.value}')
            for pid in (player_a_id, player_b_id):
                if match.participant_for(pid) is None:
                    raise InvalidParticipant(f'Player {pid} is not in match {match.id}')
            if self.store.active_game(match.id) is not None:
                raise GameInProgress()

            game = Game(
                match_id=match.id,
                game_number=self.store.count_games(match.id) + 1,
                status=GameStatus.ACTIVE,
            )
            game.participants = [
                GameParticipant(player_id=player_a_id, score=0),
                GameParticipant(player_id=player_b_id, score=0),
            ]
            session.add(game)
            session.flush()
            return game

        game = self.store.transaction(_start, label='game-start')
        current_app.logger.info(
            f"[game-start] match={game.match_id} game={game.id} number={game.game_number} "
            f"players={[player_a_id, player_b_id]}"
        )
        return game

    def record_win(self, actor_id, game_id, winner_id) -> Game:
        require_actor(actor_id)

        def _record(session):
            game = self.store.get_game(game_id)
            if game is None:
                raise GameNotFound(f'Game {game_id} not found')
            match = self.store.get_match(game.match_id, lock=True)
            # Re-read under the match lock; another request may have closed it
            session.refresh(game)
            if match.participant_for(actor_id) is None:
                raise InvalidParticipant('Only match players can record a game')
            if winner_id not in game.player_ids:
                raise InvalidParticipant(f'Player {winner_id} did not play game {game.id}')
            if not game.status.can_become(GameStatus.FINISHED):
                raise InvalidGameState(f'Game {game.id} is already {game.status.value}')
            if not match.is_active:
                raise InvalidMatchState(f'Match {match.id} is {match.status.value}')

            game.status = GameStatus.FINISHED
            game.winner_id = winner_id
            game.finished_at = utcnow()
            for participant in game.participants:
                if participant.player_id == winner_id:
                    participant.score += 1

            session.query(MatchParticipant).filter(
                MatchParticipant.match_id == match.id,
                MatchParticipant.player_id == winner_id,
            ).update({MatchParticipant.score: MatchParticipant.score + 1})

            losers = [pid for pid in game.player_ids if pid != winner_id]
            self.stats.apply_game_outcome(session, winner_id, losers)
            return game

        game = self.store.transaction(_record, label='game-win')
        current_app.logger.info(f"[game-win] match={game.match_id} game={game.id} winner={winner_id}")
        return game

    # ---- Read side ----

    def get(self, game_id) -> Game:
        game = self.store.get_game(game_id)
        if game is None:
            raise GameNotFound(f'Game {game_id} not found')
        return game

    def active_for(self, match_id):
        return self.store.active_game(match_id)
