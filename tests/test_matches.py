import pytest

from pooltracker import db
from pooltracker.models import Match, MatchParticipant, MatchStatus, Player
from pooltracker.services import MatchOutcome
from pooltracker.services.errors import (
    ActiveMatchExists,
    GameInProgress,
    InvalidMatchState,
    InvalidParticipant,
    MatchNotFound,
    NotAuthenticated,
    PlayerNotFound,
)


def active_matches_for(player_id):
    return (
        Match.query.join(MatchParticipant)
        .filter(MatchParticipant.player_id == player_id, Match.status == MatchStatus.ACTIVE)
        .count()
    )


def test_create_match_inserts_participants_with_zero_scores(core, p1, p2):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    assert match.status is MatchStatus.ACTIVE
    assert match.winner_id is None
    assert match.finished_at is None
    assert [(p.player_id, p.score) for p in match.participants] == [(p1.id, 0), (p2.id, 0)]


def test_second_match_for_busy_player_rejected(core, p1, p2, p3):
    core.matches.create(p1.id, [p1.id, p2.id])
    with pytest.raises(ActiveMatchExists):
        core.matches.create(p1.id, [p1.id, p3.id])
    assert active_matches_for(p1.id) == 1
    assert Match.query.count() == 1


def test_any_busy_participant_blocks_create(core, p1, p2, p3):
    core.matches.create(p1.id, [p1.id, p2.id])
    with pytest.raises(ActiveMatchExists):
        core.matches.create(p3.id, [p3.id, p2.id])
    assert active_matches_for(p3.id) == 0


def test_player_free_again_after_match_ends(core, p1, p2, p3):
    first = core.matches.create(p1.id, [p1.id, p2.id])
    core.matches.end(p1.id, first.id, MatchOutcome.abandoned())
    second = core.matches.create(p1.id, [p1.id, p3.id])
    assert second.id != first.id
    assert active_matches_for(p1.id) == 1


@pytest.mark.parametrize('ids_of', [
    lambda a, b, c: [a],
    lambda a, b, c: [a, a, b],
    lambda a, b, c: [b, c],
])
def test_create_rejects_bad_participant_sets(core, p1, p2, p3, ids_of):
    with pytest.raises(InvalidParticipant):
        core.matches.create(p1.id, ids_of(p1.id, p2.id, p3.id))
    assert Match.query.count() == 0


def test_create_rejects_more_than_eight_players(core, make_player):
    players = [make_player(f'Player{i}') for i in range(9)]
    with pytest.raises(InvalidParticipant):
        core.matches.create(players[0].id, [p.id for p in players])
    match = core.matches.create(players[0].id, [p.id for p in players[:8]])
    assert len(match.participants) == 8


def test_create_unknown_player(core, p1):
    with pytest.raises(PlayerNotFound):
        core.matches.create(p1.id, [p1.id, 9999])
    assert Match.query.count() == 0


def test_create_requires_actor(core, p1, p2):
    with pytest.raises(NotAuthenticated):
        core.matches.create(None, [p1.id, p2.id])


def test_finish_picks_highest_score_without_touching_stats(core, p1, p2):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    ended = core.matches.end(p1.id, match.id, MatchOutcome.finished({p1.id: 7, p2.id: 9}))
    assert ended.status is MatchStatus.FINISHED
    assert ended.winner_id == p2.id
    assert ended.finished_at is not None
    assert {p.player_id: p.score for p in ended.participants} == {p1.id: 7, p2.id: 9}
    for player in (db.session.get(Player, p1.id), db.session.get(Player, p2.id)):
        assert player.games_played == 0
        assert player.games_won == 0


def test_finish_tie_goes_to_first_listed(core, p1, p2):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    ended = core.matches.end(p1.id, match.id, MatchOutcome.finished({p2.id: 4, p1.id: 4}))
    assert ended.winner_id == p2.id


def test_finish_without_scores_uses_running_game_tally(core, p1, p2):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    game = core.games.start(p1.id, match.id, p1.id, p2.id)
    core.games.record_win(p1.id, game.id, p2.id)
    ended = core.matches.end(p1.id, match.id, MatchOutcome.finished())
    assert ended.winner_id == p2.id


def test_partial_sheet_still_ranks_every_player(core, p1, p2, p3):
    match = core.matches.create(p1.id, [p1.id, p2.id, p3.id])
    for _ in range(3):
        game = core.games.start(p1.id, match.id, p1.id, p2.id)
        core.games.record_win(p1.id, game.id, p1.id)
    ended = core.matches.end(p1.id, match.id, MatchOutcome.finished({p2.id: 1}))
    scores = {p.player_id: p.score for p in ended.participants}
    assert scores == {p1.id: 3, p2.id: 1, p3.id: 0}
    assert ended.winner_id == p1.id


def test_partial_sheet_tie_prefers_listed_player(core, p1, p2):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    game = core.games.start(p1.id, match.id, p1.id, p2.id)
    core.games.record_win(p1.id, game.id, p1.id)
    ended = core.matches.end(p1.id, match.id, MatchOutcome.finished({p2.id: 1}))
    assert ended.winner_id == p2.id


def test_abandon_leaves_scores_and_winner_empty(core, p1, p2):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    game = core.games.start(p1.id, match.id, p1.id, p2.id)
    core.games.record_win(p1.id, game.id, p1.id)
    ended = core.matches.end(p2.id, match.id, MatchOutcome.abandoned())
    assert ended.status is MatchStatus.ABANDONED
    assert ended.winner_id is None
    assert ended.finished_at is not None
    assert {p.player_id: p.score for p in ended.participants} == {p1.id: 1, p2.id: 0}


@pytest.mark.parametrize('first', [MatchOutcome.abandoned(), MatchOutcome.finished()])
def test_ending_twice_is_rejected_and_changes_nothing(core, p1, p2, first):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    ended = core.matches.end(p1.id, match.id, first)
    snapshot = (ended.status, ended.winner_id, ended.finished_at)
    with pytest.raises(InvalidMatchState):
        core.matches.end(p1.id, match.id, MatchOutcome.finished({p1.id: 3, p2.id: 1}))
    again = core.matches.get(match.id)
    assert (again.status, again.winner_id, again.finished_at) == snapshot
    assert db.session.get(Player, p1.id).games_played == 0


def test_end_unknown_match(core, p1):
    with pytest.raises(MatchNotFound):
        core.matches.end(p1.id, 12345, MatchOutcome.abandoned())


def test_end_by_outsider_rejected(core, p1, p2, p3):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    with pytest.raises(InvalidParticipant):
        core.matches.end(p3.id, match.id, MatchOutcome.abandoned())
    assert core.matches.get(match.id).is_active


def test_finish_with_unknown_score_key_rejected(core, p1, p2, p3):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    with pytest.raises(InvalidParticipant):
        core.matches.end(p1.id, match.id, MatchOutcome.finished({p1.id: 1, p3.id: 5}))
    match = core.matches.get(match.id)
    assert match.is_active
    assert [p.score for p in match.participants] == [0, 0]


def test_finish_blocked_while_game_in_progress(core, p1, p2):
    match = core.matches.create(p1.id, [p1.id, p2.id])
    core.games.start(p1.id, match.id, p1.id, p2.id)
    with pytest.raises(GameInProgress):
        core.matches.end(p1.id, match.id, MatchOutcome.finished({p1.id: 1, p2.id: 0}))
    assert core.matches.get(match.id).is_active


def test_outcome_from_payload():
    outcome = MatchOutcome.from_dict({'status': 'finished', 'scores': [
        {'player_id': '2', 'score': 3}, {'player_id': 1, 'score': '5'},
    ]})
    assert outcome.status is MatchStatus.FINISHED
    assert list(outcome.scores.items()) == [(2, 3), (1, 5)]
    assert MatchOutcome.from_dict({'status': 'abandoned'}).status is MatchStatus.ABANDONED
    with pytest.raises(InvalidMatchState):
        MatchOutcome.from_dict({'status': 'active'})
    with pytest.raises(InvalidMatchState):
        MatchOutcome.from_dict({'status': 'paused'})


def test_current_and_previous(core, p1, p2):
    assert core.matches.current_for(p1.id) is None
    first = core.matches.create(p1.id, [p1.id, p2.id])
    assert core.matches.current_for(p2.id).id == first.id
    core.matches.end(p1.id, first.id, MatchOutcome.finished({p1.id: 2, p2.id: 1}))
    second = core.matches.create(p1.id, [p1.id, p2.id])
    core.matches.end(p1.id, second.id, MatchOutcome.abandoned())
    assert [m.id for m in core.matches.previous_for(p1.id)] == [second.id, first.id]
    assert [m.id for m in core.matches.previous_for(p1.id, limit=1)] == [second.id]
