from datetime import timedelta

from pooltracker.models import Match, MatchParticipant, MatchStatus, utcnow

RECENT_FORM_SIZE = 10


class InsightsReporter:
    """Read-only statistics over a player's ended matches."""

    def __init__(self, matches):
        self.matches = matches

    def match_history(self, player_id, limit=None):
        history = []
        for match in self.matches.previous_for(player_id, limit):
            opponents = [
                p.player.display_name for p in match.participants if p.player_id != player_id
            ]
            history.append({
                'id': match.id,
                'date': match.created_at.isoformat(),
                'status': match.status.value,
                'won': match.winner_id == player_id,
                'games_count': len(match.games),
                'opponents': ', '.join(opponents),
            })
        return history

    def summary(self, player_id):
        history = self.match_history(player_id)
        total = len(history)
        wins = sum(1 for m in history if m['won'])
        # history is newest first; form reads oldest to newest
        recent_form = ['won' if m['won'] else 'lost' for m in reversed(history[:RECENT_FORM_SIZE])]
        return {
            'total_matches': total,
            'wins': wins,
            'losses': total - wins,
            'win_rate': round(wins / total * 100) if total else 0,
            'recent_form': recent_form,
        }

    def activity(self, player_id, days=365):
        """Games played per calendar day (YYYY-MM-DD) over the last ``days`` days."""
        since = utcnow() - timedelta(days=days)
        ended = (
            self.matches.store.session.query(Match)
            .join(MatchParticipant, MatchParticipant.match_id == Match.id)
            .filter(
                MatchParticipant.player_id == player_id,
                Match.status != MatchStatus.ACTIVE,
                Match.created_at >= since,
            )
            .all()
        )
        activity = {}
        for match in ended:
            day = match.created_at.strftime('%Y-%m-%d')
            activity[day] = activity.get(day, 0) + len(match.games)
        return activity
