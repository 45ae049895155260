"""Protocol repository: the Entity Store as seen by the services."""

from contextlib import AbstractContextManager
from typing import Optional, Protocol

from bonusmalus.core.models import (
    ConditionalInsert,
    GameModel,
    PlayerModel,
    RuleAssignmentModel,
    RuleModel,
)
from bonusmalus.core.shared_types import GameStatus, RuleType


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    def atomic(self) -> AbstractContextManager[None]:
        """Transaction boundary: commit when the block finishes, roll back and re-raise when it fails."""
        ...

    # -- games --
    def get_game(self, game_id: int, lock: bool = False) -> GameModel | None:
        """Get game by ID, if record exists. `lock` holds the game row until the end of the transaction."""
        ...

    def add_game(self, name: str, initial_score: int) -> GameModel:
        """Store a new game in Draft status."""
        ...

    def set_game_creator(self, game_id: int, player_id: int) -> GameModel:
        ...

    def transition_game(
        self,
        game_id: int,
        current: GameStatus,
        target: GameStatus,
        winner_player_id: Optional[int] = None,
    ) -> GameModel | None:
        """Move the game from `current` to `target` in one conditional update.

        Returns None when the stored status is no longer `current` (someone else moved it first).
        """
        ...

    # -- players --
    def get_player(self, player_id: int) -> PlayerModel | None:
        ...

    def add_player(
        self,
        game_id: int,
        username: str,
        access_code: str,
        is_creator: bool,
        score: int,
    ) -> PlayerModel:
        """Raises DuplicatePlayerCredentialsError if username or access code is taken within the game."""
        ...

    def list_players(self, game_id: int) -> list[PlayerModel]:
        """All players of a game, in id order."""
        ...

    def count_players_at_or_below(self, game_id: int, score: int) -> int:
        ...

    def apply_score_delta(self, player_id: int, delta: int) -> PlayerModel:
        """Atomically add `delta` to the player's current score."""
        ...

    # -- rules --
    def get_rule(self, rule_id: int, lock: bool = False) -> RuleModel | None:
        """`lock` holds the rule row until the end of the transaction (SELECT ... FOR UPDATE)."""
        ...

    def add_rule(
        self, game_id: int, name: str, rule_type: RuleType, score_delta: int
    ) -> RuleModel:
        """Raises DuplicateRuleNameError if the name is taken within the game."""
        ...

    def update_rule(
        self, rule_id: int, name: str, rule_type: RuleType, score_delta: int
    ) -> RuleModel:
        """Raises RuleAlreadyAssignedError, checked in the same statement as the write, if the rule has an assignment."""
        ...

    def delete_rule(self, rule_id: int) -> RuleModel | None:
        """None if the rule does not exist. Same assignment guard as update_rule."""
        ...

    def list_rules(self, game_id: int) -> list[RuleModel]:
        ...

    def count_rules(self, game_id: int) -> int:
        ...

    # -- assignments --
    def get_assignment_for_rule(self, rule_id: int) -> RuleAssignmentModel | None:
        ...

    def insert_assignment_if_absent(
        self, rule_id: int, game_id: int, player_id: int, score_delta: int
    ) -> ConditionalInsert:
        """Insert the assignment in one statement unless the rule already has one."""
        ...

    def list_assignments(self, game_id: int) -> list[RuleAssignmentModel]:
        """Assignment history of a game, newest first."""
        ...

    def count_assignments(self, game_id: int) -> int:
        ...
