"""Unit tests for bonusmalus/game/lifecycle.py"""

import random

import pytest

from bonusmalus.core.exceptions import (
    GameAlreadyEndedError,
    GameNotStartedError,
    InvalidStateTransitionError,
    NoPlayersError,
)
from bonusmalus.core.models import GameModel, PlayerModel
from bonusmalus.core.shared_types import GameStatus
from bonusmalus.game.lifecycle import (
    AutoEndPolicy,
    GameCounts,
    can_transition,
    ensure_accepts_assignments,
    ensure_transition,
    rank_players,
    select_winner,
)


def player(player_id: int, score: int) -> PlayerModel:
    return PlayerModel(
        id=player_id,
        game_id=1,
        username=f"player-{player_id}",
        access_code="CODE",
        is_creator=player_id == 1,
        current_score=score,
    )


def game(status: GameStatus) -> GameModel:
    return GameModel(id=1, name="Cup", initial_score=100, status=status)


# -- State machine --
@pytest.mark.parametrize(
    "current, target",
    [
        (GameStatus.DRAFT, GameStatus.STARTED),
        (GameStatus.STARTED, GameStatus.ENDED),
    ],
)
def test_forward_transitions_are_allowed(current: GameStatus, target: GameStatus) -> None:
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (GameStatus.STARTED, GameStatus.DRAFT),  # no regression
        (GameStatus.ENDED, GameStatus.STARTED),  # Ended is terminal
        (GameStatus.ENDED, GameStatus.DRAFT),
        (GameStatus.ENDED, GameStatus.ENDED),
        (GameStatus.DRAFT, GameStatus.ENDED),  # cannot skip Started
    ],
)
def test_invalid_transitions(current: GameStatus, target: GameStatus) -> None:
    assert not can_transition(current, target)
    with pytest.raises(InvalidStateTransitionError):
        ensure_transition(current, target)


def test_only_started_games_accept_assignments() -> None:
    ensure_accepts_assignments(game(GameStatus.STARTED))

    with pytest.raises(GameNotStartedError):
        ensure_accepts_assignments(game(GameStatus.DRAFT))

    with pytest.raises(GameAlreadyEndedError):
        ensure_accepts_assignments(game(GameStatus.ENDED))


# -- Standing / winner --
def test_highest_score_wins() -> None:
    players = [player(1, 5), player(2, -1), player(3, -2), player(4, -3)]
    assert select_winner(players).id == 1


def test_ties_are_broken_by_lowest_id() -> None:
    """Two players tied at 100 with ids 7 and 3: player 3 wins."""
    assert select_winner([player(7, 100), player(3, 100)]).id == 3


def test_ranking_orders_by_score_then_id() -> None:
    players = [player(4, 10), player(2, 50), player(9, 10), player(1, -5), player(3, 50)]
    assert [p.id for p in rank_players(players)] == [2, 3, 4, 9, 1]


def test_winner_is_independent_of_input_order() -> None:
    """The winner is a pure function of (scores, ids): shuffling the input never changes it."""
    players = [player(i, score) for i, score in enumerate([3, 8, 8, -2, 8, 0], start=1)]
    rng = random.Random(1234)
    for _ in range(20):
        shuffled = players[:]
        rng.shuffle(shuffled)
        assert select_winner(shuffled).id == 2
        assert rank_players(shuffled)[0] == select_winner(shuffled)


def test_no_winner_without_players() -> None:
    with pytest.raises(NoPlayersError):
        select_winner([])


# -- Auto-end policy --
def test_ends_when_every_rule_is_claimed() -> None:
    policy = AutoEndPolicy()
    assert policy.should_end(GameCounts(rules=4, assignments=4, low_score_players=0))
    assert not policy.should_end(GameCounts(rules=4, assignments=3, low_score_players=0))


def test_game_without_rules_does_not_end_on_claims() -> None:
    policy = AutoEndPolicy()
    assert not policy.should_end(GameCounts(rules=0, assignments=0, low_score_players=0))


def test_ends_when_three_players_are_at_or_below_zero() -> None:
    policy = AutoEndPolicy()
    assert policy.should_end(GameCounts(rules=5, assignments=3, low_score_players=3))
    assert not policy.should_end(GameCounts(rules=5, assignments=3, low_score_players=2))


def test_low_score_threshold_is_configurable() -> None:
    policy = AutoEndPolicy(low_score_threshold=5)
    counts = GameCounts(rules=5, assignments=1, low_score_players=4)
    assert not policy.should_end(counts)
    assert AutoEndPolicy(low_score_threshold=4).should_end(counts)
