"""Rule assignment ("first claim wins") and creator-side rule management."""

import logging

from bonusmalus.core.exceptions import (
    GameNotStartedError,
    NotGameCreatorError,
    PlayerNotFoundError,
    RuleAlreadyAssignedError,
    RuleNotFoundError,
)
from bonusmalus.core.models import (
    AssignmentOutcome,
    GameModel,
    RuleAssignmentModel,
    RuleModel,
    RuleWithAssignment,
)
from bonusmalus.core.shared_types import GameStatus, ResultStatus, RuleType
from bonusmalus.db.repository import GameRepository
from bonusmalus.game.lifecycle import ensure_accepts_assignments, ensure_not_ended
from bonusmalus.game.rules import validate_rule
from bonusmalus.services.operations import fetch_game, service_operation

logger = logging.getLogger(__name__)


class RuleService:
    """Rule Assignment Engine, plus the rule edits a creator may make while rules are unassigned."""

    def __init__(self, repository: GameRepository) -> None:
        self.repo = repository

    # -- Assignment --
    @service_operation(success=ResultStatus.CREATED)
    def assign_rule(self, game_id: int, rule_id: int, player_id: int) -> AssignmentOutcome:
        """
        Credit `player_id` with the rule's current score delta.

        At most one assignment per rule ever exists. The early check gives the common case a clean answer,
        the conditional insert settles real races. Either way the loser gets RULE_ALREADY_ASSIGNED
        and the transaction is rolled back, so no score changes.

        The game row stays locked until commit, so an end request can neither slip in between the status
        check and the write nor compute its winner without this claim.

        Callers should run the auto-end check (GameService.try_auto_end_game) once this returns successfully.
        """
        game = fetch_game(self.repo, game_id, lock=True)
        rule = self._fetch_rule_in_game(rule_id, game_id, lock=True)

        player = self.repo.get_player(player_id)
        if player is None:
            raise PlayerNotFoundError(f"Player with {player_id=} not found.")
        if player.game_id != game_id:
            logger.warning(f"Player {player_id} does not belong to game {game_id}")
            raise PlayerNotFoundError(
                f"Player {player_id} does not belong to game {game_id}.", "PLAYER_NOT_IN_GAME"
            )

        ensure_accepts_assignments(game)

        if self.repo.get_assignment_for_rule(rule_id) is not None:
            logger.warning(f"Rule {rule_id} already assigned (early check)")
            raise RuleAlreadyAssignedError(f"Rule {rule.name!r} has already been assigned.")

        outcome = self.repo.insert_assignment_if_absent(
            rule_id=rule.id,
            game_id=game_id,
            player_id=player.id,
            score_delta=rule.score_delta,
        )
        if not outcome.inserted or outcome.assignment is None:
            logger.warning(f"Race lost: rule {rule_id} was assigned by a concurrent request")
            raise RuleAlreadyAssignedError(f"Rule {rule.name!r} has already been assigned.")

        updated_player = self.repo.apply_score_delta(player.id, outcome.assignment.score_delta_applied)
        logger.info(
            f"Rule {rule_id} ({rule.name!r}) assigned to player {player_id} in game {game_id}. "
            f"Score delta: {rule.score_delta}, new score: {updated_player.current_score}"
        )
        return AssignmentOutcome(assignment=outcome.assignment, player=updated_player)

    @service_operation()
    def assignment_history(self, game_id: int) -> list[RuleAssignmentModel]:
        """Every assignment of the game, newest first."""
        fetch_game(self.repo, game_id)
        return self.repo.list_assignments(game_id)

    @service_operation()
    def list_rules(self, game_id: int) -> list[RuleWithAssignment]:
        fetch_game(self.repo, game_id)
        assignments = {a.rule_id: a for a in self.repo.list_assignments(game_id)}
        return [
            RuleWithAssignment(rule=rule, assignment=assignments.get(rule.id))
            for rule in self.repo.list_rules(game_id)
        ]

    # -- Creator-side rule management --
    @service_operation(success=ResultStatus.CREATED)
    def create_rule(
        self,
        game_id: int,
        requester_id: int,
        name: str,
        rule_type: RuleType,
        score_delta: int,
    ) -> RuleModel:
        """Add a rule to a running game. New rules start unassigned."""
        game = fetch_game(self.repo, game_id, lock=True)
        self._ensure_creator(game, requester_id, "add rules")
        if game.status == GameStatus.DRAFT:
            raise GameNotStartedError(f"Game {game_id} has not started yet.")
        ensure_not_ended(game)

        cleaned = validate_rule(name, rule_type, score_delta)
        rule = self.repo.add_rule(game_id, cleaned, rule_type, score_delta)
        logger.info(f"Rule {rule.id} ({cleaned!r}) added to game {game_id}")
        return rule

    @service_operation()
    def update_rule(
        self,
        rule_id: int,
        game_id: int,
        requester_id: int,
        name: str,
        rule_type: RuleType,
        score_delta: int,
    ) -> RuleModel:
        """
        Change name, type and delta of an unassigned rule.

        An assigned rule is a historical fact: it is rejected with RULE_ALREADY_ASSIGNED whoever asks.
        Already applied deltas are never touched.
        """
        game = fetch_game(self.repo, game_id, lock=True)
        rule = self._fetch_rule_in_game(rule_id, game_id, lock=True)
        self._ensure_unassigned(rule, "modified")
        self._ensure_creator(game, requester_id, "modify rules")
        ensure_not_ended(game)

        cleaned = validate_rule(name, rule_type, score_delta)
        updated = self.repo.update_rule(rule.id, cleaned, rule_type, score_delta)
        logger.info(f"Rule {rule_id} of game {game_id} updated by player {requester_id}")
        return updated

    @service_operation()
    def delete_rule(self, rule_id: int, game_id: int, requester_id: int) -> RuleModel:
        """Remove an unassigned rule. Same guards as update_rule."""
        game = fetch_game(self.repo, game_id, lock=True)
        rule = self._fetch_rule_in_game(rule_id, game_id, lock=True)
        self._ensure_unassigned(rule, "deleted")
        self._ensure_creator(game, requester_id, "delete rules")
        ensure_not_ended(game)

        deleted = self.repo.delete_rule(rule.id)
        if deleted is None:
            raise RuleNotFoundError(f"Rule with {rule_id=} not found.")
        logger.info(f"Rule {rule_id} deleted from game {game_id} by player {requester_id}")
        return deleted

    # -- Internal helpers --
    def _fetch_rule_in_game(self, rule_id: int, game_id: int, lock: bool = False) -> RuleModel:
        rule = self.repo.get_rule(rule_id, lock=lock)
        if rule is None:
            raise RuleNotFoundError(f"Rule with {rule_id=} not found.")
        if rule.game_id != game_id:
            logger.warning(f"Rule {rule_id} does not belong to game {game_id}")
            raise RuleNotFoundError(
                f"Rule {rule_id} does not belong to game {game_id}.", "RULE_NOT_IN_GAME"
            )
        return rule

    def _ensure_unassigned(self, rule: RuleModel, action: str) -> None:
        if self.repo.get_assignment_for_rule(rule.id) is not None:
            raise RuleAlreadyAssignedError(
                f"Rule {rule.name!r} has already been assigned and cannot be {action}."
            )

    def _ensure_creator(self, game: GameModel, requester_id: int, action: str) -> None:
        if game.creator_player_id != requester_id:
            logger.warning(f"Player {requester_id} attempted to {action} in game {game.id} but is not its creator")
            raise NotGameCreatorError(f"Only the game creator can {action}.")
