from collections.abc import Mapping
from typing import Any, Iterable, Optional, Tuple, Union

Scores = Union[Mapping, Iterable[Tuple[Any, int]]]


def pick_winner(scores: Scores) -> Optional[Any]:
    """Return the player id holding the highest score.

    Entries are scanned in the order given. Only a strictly greater score
    takes the lead, so on a tie the first player to reach the maximum wins.
    Returns None for empty input.
    """
    pairs = scores.items() if isinstance(scores, Mapping) else scores
    leader = None
    best = None
    for player_id, score in pairs:
        if best is None or score > best:
            leader, best = player_id, score
    return leader
