"""
Game creation and game lifecycle.

Orchestration between the API layer, the lifecycle rules in bonusmalus.game and the repository.
Every public operation returns a Result; every decision is taken on state read fresh from the repository.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from bonusmalus.api.models import CreateGameRequest
from bonusmalus.core.exceptions import (
    EndConditionsNotMetError,
    GameAlreadyEndedError,
    NotGameCreatorError,
    RepositoryError,
    ValidationFailedError,
)
from bonusmalus.core.models import (
    CreatedGame,
    GameEnding,
    GameModel,
    GameStatusView,
    PlayerCredentials,
    PlayerModel,
)
from bonusmalus.core.shared_types import GameStatus, ResultStatus
from bonusmalus.db.repository import GameRepository
from bonusmalus.game.credentials import generate_access_code
from bonusmalus.game.lifecycle import (
    AutoEndPolicy,
    GameCounts,
    ensure_transition,
    rank_players,
    select_winner,
)
from bonusmalus.game.rules import (
    clean_name,
    validate_creator_count,
    validate_initial_score,
    validate_rule,
)
from bonusmalus.services.operations import fetch_game, service_operation

logger = logging.getLogger(__name__)


class GameService:
    """Game Creation Orchestrator + Game Lifecycle Engine."""

    def __init__(
        self,
        repository: GameRepository,
        policy: Optional[AutoEndPolicy] = None,
        access_code_length: int = 8,
    ) -> None:
        self.repo = repository
        self.policy = policy or AutoEndPolicy()
        self.access_code_length = access_code_length

    # -- Creation --
    @service_operation(success=ResultStatus.CREATED)
    def create_game(self, request: CreateGameRequest) -> CreatedGame:
        """
        Create a game with its full roster and rule set, then start it.

        Validation happens before the first write. After that, game, players and rules are written in one
        transaction: a duplicate username/access code or rule name rolls back everything written so far.
        """
        name = clean_name(request.name, what="Game name", missing_code="GAME_NAME_REQUIRED")
        validate_initial_score(request.initial_score)
        if not request.players:
            raise ValidationFailedError("A game needs at least one player.", "PLAYERS_REQUIRED")
        if not request.rules:
            raise ValidationFailedError("A game needs at least one rule.", "RULES_REQUIRED")
        validate_creator_count([entry.is_creator for entry in request.players])

        usernames = [
            clean_name(entry.username, what="Username", missing_code="USERNAME_REQUIRED")
            for entry in request.players
        ]
        rule_names = [
            validate_rule(entry.name, entry.rule_type, entry.score_delta)
            for entry in request.rules
        ]

        # 1. the game, still in Draft
        game = self.repo.add_game(name, request.initial_score)

        # 2. the players, all starting at the initial score
        credentials: list[PlayerCredentials] = []
        used_codes = {entry.access_code for entry in request.players if entry.access_code}
        creator_id: Optional[int] = None
        for entry, username in zip(request.players, usernames):
            access_code = entry.access_code or self._new_access_code(used_codes)
            player = self.repo.add_player(
                game_id=game.id,
                username=username,
                access_code=access_code,
                is_creator=entry.is_creator,
                score=request.initial_score,
            )
            if player.is_creator:
                creator_id = player.id
            credentials.append(
                PlayerCredentials(
                    player_id=player.id,
                    username=player.username,
                    access_code=player.access_code,
                    is_creator=player.is_creator,
                )
            )

        # 3. creator known -> the game can start
        if creator_id is None:
            raise RepositoryError(f"Creator of game {game.id} was not stored.")
        self.repo.set_game_creator(game.id, creator_id)
        ensure_transition(game.status, GameStatus.STARTED)
        started = self.repo.transition_game(game.id, game.status, GameStatus.STARTED)
        if started is None:
            raise RepositoryError(f"Game {game.id} changed status while being created.")

        # 4. the rules
        for entry, rule_name in zip(request.rules, rule_names):
            self.repo.add_rule(game.id, rule_name, entry.rule_type, entry.score_delta)

        logger.info(
            f"Created game {game.id} ({name!r}) with {len(credentials)} players and {len(rule_names)} rules"
        )
        return CreatedGame(game_id=game.id, credentials=credentials)

    # -- Reads --
    @service_operation()
    def get_game(self, game_id: int) -> GameModel:
        return fetch_game(self.repo, game_id)

    @service_operation()
    def get_game_status(self, game_id: int) -> GameStatusView:
        game = fetch_game(self.repo, game_id)
        return GameStatusView(
            game_id=game.id, status=game.status, winner_player_id=game.winner_player_id
        )

    @service_operation()
    def get_leaderboard(self, game_id: int) -> list[PlayerModel]:
        """All players of the game by current standing (score desc, id asc)."""
        fetch_game(self.repo, game_id)
        return rank_players(self.repo.list_players(game_id))

    # -- Ending --
    def should_end_game(self, game_id: int) -> bool:
        """Auto-end policy on fresh counts. A failure to read them counts as 'do not end'."""
        try:
            with self.repo.atomic():
                return self._end_conditions_met(game_id)
        except (SQLAlchemyError, RepositoryError):
            # commit or rollback of the read-only transaction failed
            logger.error(f"Could not evaluate end conditions of game {game_id}", exc_info=True)
            return False

    @service_operation()
    def try_auto_end_game(self, game_id: int) -> GameModel:
        """
        End the game if the auto-end policy says so.

        Idempotent: once the game is Ended, further calls return it unchanged, with the winner chosen the first time.
        """
        game = fetch_game(self.repo, game_id, lock=True)

        if not self._end_conditions_met(game_id):
            raise EndConditionsNotMetError(f"Game {game_id} does not meet the end conditions yet.")

        if game.status == GameStatus.ENDED:
            return game

        ending = self._finish(game)
        if ending is None:
            # lost the race against another end request: report what it stored
            return fetch_game(self.repo, game_id)
        logger.info(f"Game {game_id} ended automatically, winner is player {ending.winner.id}")
        return ending.game

    @service_operation()
    def end_game(self, game_id: int, requester_id: int) -> GameEnding:
        """Manual end, reserved to the creator of the game."""
        game = fetch_game(self.repo, game_id, lock=True)

        if game.status == GameStatus.ENDED:
            logger.warning(f"Attempt to end already ended game {game_id}")
            raise GameAlreadyEndedError(f"Game {game_id} has already ended.")

        if game.creator_player_id != requester_id:
            logger.warning(f"Player {requester_id} attempted to end game {game_id} but is not its creator")
            raise NotGameCreatorError("Only the game creator can end the game.")

        ending = self._finish(game)
        if ending is None:
            raise GameAlreadyEndedError(f"Game {game_id} has already ended.")
        logger.info(f"Game {game_id} ended by player {requester_id}, winner is player {ending.winner.id}")
        return ending

    # -- Internal helpers --
    def _end_conditions_met(self, game_id: int) -> bool:
        """Fail-closed wrapper around _evaluate_end."""
        try:
            return self._evaluate_end(game_id)
        except (SQLAlchemyError, RepositoryError):
            logger.error(f"Could not evaluate end conditions of game {game_id}", exc_info=True)
            return False

    def _evaluate_end(self, game_id: int) -> bool:
        counts = GameCounts(
            rules=self.repo.count_rules(game_id),
            assignments=self.repo.count_assignments(game_id),
            low_score_players=self.repo.count_players_at_or_below(game_id, 0),
        )
        if self.policy.all_rules_claimed(counts):
            logger.info(f"Game {game_id} should end: all {counts.rules} rules assigned")
            return True
        if self.policy.too_many_low_scores(counts):
            logger.info(
                f"Game {game_id} should end: {counts.low_score_players} players at or below zero"
            )
            return True
        return False

    def _finish(self, game: GameModel) -> Optional[GameEnding]:
        """
        Pick the winner from the current standing and move the game to Ended.

        Returns None if another request ended the game in the meantime.
        """
        ensure_transition(game.status, GameStatus.ENDED)
        leaderboard = rank_players(self.repo.list_players(game.id))
        winner = select_winner(leaderboard)
        ended = self.repo.transition_game(
            game.id, game.status, GameStatus.ENDED, winner_player_id=winner.id
        )
        if ended is None:
            return None
        return GameEnding(game=ended, winner=winner, leaderboard=leaderboard)

    def _new_access_code(self, used_codes: set[str]) -> str:
        code = generate_access_code(self.access_code_length)
        while code in used_codes:
            code = generate_access_code(self.access_code_length)
        used_codes.add(code)
        return code
