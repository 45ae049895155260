"""
Game lifecycle rules: the Draft -> Started -> Ended state machine, the standing of players and the auto-end policy.

Everything here is pure. The service layer reads fresh state from the repository and asks these functions for a decision.
"""

from dataclasses import dataclass
from typing import Iterable

from bonusmalus.core.exceptions import (
    GameAlreadyEndedError,
    GameNotStartedError,
    InvalidStateTransitionError,
    NoPlayersError,
)
from bonusmalus.core.models import GameModel, PlayerModel
from bonusmalus.core.shared_types import GameStatus

ALLOWED_TRANSITIONS: dict[GameStatus, frozenset[GameStatus]] = {
    GameStatus.DRAFT: frozenset({GameStatus.STARTED}),
    GameStatus.STARTED: frozenset({GameStatus.ENDED}),
    GameStatus.ENDED: frozenset(),
}

DEFAULT_LOW_SCORE_THRESHOLD = 3


def can_transition(current: GameStatus, target: GameStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: GameStatus, target: GameStatus) -> None:
    """Raise if the status may not move from `current` to `target`. Status only ever moves forward."""
    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            f"Cannot move a game from {current.value!r} to {target.value!r}."
        )


def ensure_accepts_assignments(game: GameModel) -> None:
    """Rules can only be claimed while the game is running."""
    if game.status == GameStatus.DRAFT:
        raise GameNotStartedError(
            f"Game {game.id} has not started yet. Rules cannot be assigned in a draft game."
        )
    if game.status == GameStatus.ENDED:
        raise GameAlreadyEndedError(f"Game {game.id} has already ended.")


def ensure_not_ended(game: GameModel) -> None:
    if game.status == GameStatus.ENDED:
        raise GameAlreadyEndedError(f"Game {game.id} has already ended.")


# --- Standing ---
def standing_key(player: PlayerModel) -> tuple[int, int]:
    """Highest score first, lowest id first on ties."""
    return (-player.current_score, player.id)


def rank_players(players: Iterable[PlayerModel]) -> list[PlayerModel]:
    """Current standing of a game. Both the leaderboard and the winner are read from this ordering."""
    return sorted(players, key=standing_key)


def select_winner(players: Iterable[PlayerModel]) -> PlayerModel:
    ranked = rank_players(players)
    if not ranked:
        raise NoPlayersError("Cannot determine a winner for a game without players.")
    return ranked[0]


# --- Auto-end ---
@dataclass(frozen=True)
class GameCounts:
    """Snapshot of the numbers the auto-end policy looks at."""

    rules: int
    assignments: int
    low_score_players: int


@dataclass(frozen=True)
class AutoEndPolicy:
    low_score_threshold: int = DEFAULT_LOW_SCORE_THRESHOLD

    def all_rules_claimed(self, counts: GameCounts) -> bool:
        return counts.rules > 0 and counts.rules == counts.assignments

    def too_many_low_scores(self, counts: GameCounts) -> bool:
        return counts.low_score_players >= self.low_score_threshold

    def should_end(self, counts: GameCounts) -> bool:
        return self.all_rules_claimed(counts) or self.too_many_low_scores(counts)
