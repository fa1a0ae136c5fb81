from flask import current_app

from pooltracker.models import Player, utcnow


class StatsUpdater:
    """Sole writer of ``Player.games_played`` / ``Player.games_won``.

    Increments are issued as SQL expressions so concurrent outcomes for the
    same player add up instead of overwriting each other. Callers pass the
    session of their open transaction.
    """

    def apply_game_outcome(self, session, winner_id, loser_ids) -> None:
        session.query(Player).filter(Player.id == winner_id).update(
            {
                Player.games_won: Player.games_won + 1,
                Player.games_played: Player.games_played + 1,
                Player.updated_at: utcnow(),
            },
        )
        losers = [pid for pid in loser_ids if pid != winner_id]
        if losers:
            session.query(Player).filter(Player.id.in_(losers)).update(
                {
                    Player.games_played: Player.games_played + 1,
                    Player.updated_at: utcnow(),
                },
            )
        current_app.logger.info(f"[stats] winner={winner_id} losers={losers}")
