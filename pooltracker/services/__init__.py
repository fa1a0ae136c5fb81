"""Pool tracker core: match/game lifecycle, friendships and stats.

Transport-free domain services. HTTP routes resolve the caller and hand the
player id to these; every component gets the store it works against at
construction.
"""

from dataclasses import dataclass

from flask import current_app

from .friendships import FriendshipEngine
from .games import GameLifecycleManager
from .insights import InsightsReporter
from .matches import MatchLifecycleManager, MatchOutcome
from .players import PlayerDirectory
from .stats import StatsUpdater


@dataclass
class Core:
    store: object
    stats: StatsUpdater
    matches: MatchLifecycleManager
    games: GameLifecycleManager
    friendships: FriendshipEngine
    players: PlayerDirectory
    insights: InsightsReporter


def build_core(store, config=None) -> Core:
    config = config or {}
    stats = StatsUpdater()
    matches = MatchLifecycleManager(
        store,
        min_players=int(config.get('MIN_MATCH_PLAYERS', 2)),
        max_players=int(config.get('MAX_MATCH_PLAYERS', 8)),
        history_limit=int(config.get('MATCH_HISTORY_LIMIT', 50)),
    )
    friendships = FriendshipEngine(store)
    return Core(
        store=store,
        stats=stats,
        matches=matches,
        games=GameLifecycleManager(store, stats),
        friendships=friendships,
        players=PlayerDirectory(store, friendships, search_limit=int(config.get('PLAYER_SEARCH_LIMIT', 10))),
        insights=InsightsReporter(matches),
    )


def get_core() -> Core:
    """The core bound to the current Flask app."""
    return current_app.extensions['pooltracker']


__all__ = ['Core', 'MatchOutcome', 'build_core', 'get_core']
