"""Implementation of (Game)Repository using SQLAlchemy"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import Exists, Insert, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bonusmalus.core.exceptions import (
    DuplicatePlayerCredentialsError,
    DuplicateRuleNameError,
    GameNotFoundError,
    PlayerNotFoundError,
    RepositoryError,
    RuleAlreadyAssignedError,
    RuleNotFoundError,
)
from bonusmalus.core.models import (
    ConditionalInsert,
    GameModel,
    PlayerModel,
    RuleAssignmentModel,
    RuleModel,
)
from bonusmalus.core.shared_types import GameStatus, RuleType
from bonusmalus.db.schema import DBGame, DBPlayer, DBRule, DBRuleAssignment, utc_now

logger = logging.getLogger(__name__)

# Dialects that can express "insert unless it conflicts" as a single statement.
CONFLICT_FREE_INSERTS: dict[str, Callable[..., Insert]] = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


class SQLGameRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Commit everything done inside the block, or nothing of it."""
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # -- games --
    def get_game(self, game_id: int, lock: bool = False) -> GameModel | None:
        """Get game by ID, if record exists. `lock` holds the game row until the end of the transaction."""
        game_db = self._fetch_game(game_id, lock=lock)
        if game_db:
            return self._to_game_model(game_db)
        return None

    def add_game(self, name: str, initial_score: int) -> GameModel:
        """Store a new game in Draft status."""
        game_db = DBGame(
            name=name, initial_score=initial_score, status=GameStatus.DRAFT.value
        )
        self.db.add(game_db)
        self.db.flush()
        return self._to_game_model(game_db)

    def set_game_creator(self, game_id: int, player_id: int) -> GameModel:
        game_db = self._require_game(game_id)
        game_db.creator_player_id = player_id
        self.db.flush()
        return self._to_game_model(game_db)

    def transition_game(
        self,
        game_id: int,
        current: GameStatus,
        target: GameStatus,
        winner_player_id: Optional[int] = None,
    ) -> GameModel | None:
        """Compare-and-set on the status column. None means the game was not in `current` anymore."""
        statement = (
            update(DBGame)
            .where(DBGame.id == game_id, DBGame.status == current.value)
            .values(
                status=target.value,
                winner_player_id=winner_player_id,
                updated_at=utc_now(),
            )
        )
        result = self.db.execute(
            statement, execution_options={"synchronize_session": False}
        )
        if result.rowcount == 0:
            return None
        game_db = self.db.get(DBGame, game_id, populate_existing=True)
        if game_db is None:
            return None
        return self._to_game_model(game_db)

    # -- players --
    def get_player(self, player_id: int) -> PlayerModel | None:
        player_db = self.db.get(DBPlayer, player_id)
        if player_db:
            return self._to_player_model(player_db)
        return None

    def add_player(
        self,
        game_id: int,
        username: str,
        access_code: str,
        is_creator: bool,
        score: int,
    ) -> PlayerModel:
        """Store a new player. The (game, username) and (game, access code) pairs are unique."""
        player_db = DBPlayer(
            game_id=game_id,
            username=username,
            access_code=access_code,
            is_creator=is_creator,
            current_score=score,
        )
        self.db.add(player_db)
        try:
            self.db.flush()
        except IntegrityError as exc:
            logger.warning(f"Duplicate credentials for {username!r} in game {game_id}")
            raise DuplicatePlayerCredentialsError(
                f"Username {username!r} or its access code is already used in this game."
            ) from exc
        return self._to_player_model(player_db)

    def list_players(self, game_id: int) -> list[PlayerModel]:
        query = select(DBPlayer).where(DBPlayer.game_id == game_id).order_by(DBPlayer.id)
        return [self._to_player_model(p) for p in self.db.scalars(query)]

    def count_players_at_or_below(self, game_id: int, score: int) -> int:
        query = (
            select(func.count())
            .select_from(DBPlayer)
            .where(DBPlayer.game_id == game_id, DBPlayer.current_score <= score)
        )
        return self.db.scalar(query) or 0

    def apply_score_delta(self, player_id: int, delta: int) -> PlayerModel:
        """Increment in SQL so the new score never depends on a value read earlier."""
        statement = (
            update(DBPlayer)
            .where(DBPlayer.id == player_id)
            .values(current_score=DBPlayer.current_score + delta, updated_at=utc_now())
        )
        result = self.db.execute(
            statement, execution_options={"synchronize_session": False}
        )
        if result.rowcount == 0:
            raise PlayerNotFoundError(f"Player with {player_id=} not found.")
        player_db = self.db.get(DBPlayer, player_id, populate_existing=True)
        if player_db is None:
            raise PlayerNotFoundError(f"Player with {player_id=} not found.")
        return self._to_player_model(player_db)

    # -- rules --
    def get_rule(self, rule_id: int, lock: bool = False) -> RuleModel | None:
        if lock:
            query = select(DBRule).where(DBRule.id == rule_id).with_for_update()
            rule_db = self.db.scalar(query)
        else:
            rule_db = self.db.get(DBRule, rule_id)
        if rule_db:
            return self._to_rule_model(rule_db)
        return None

    def add_rule(
        self, game_id: int, name: str, rule_type: RuleType, score_delta: int
    ) -> RuleModel:
        rule_db = DBRule(
            game_id=game_id,
            name=name,
            rule_type=rule_type.value,
            score_delta=score_delta,
        )
        self.db.add(rule_db)
        self._flush_rule(rule_db)
        return self._to_rule_model(rule_db)

    def update_rule(
        self, rule_id: int, name: str, rule_type: RuleType, score_delta: int
    ) -> RuleModel:
        """Conditional update: an assigned rule is left untouched and RuleAlreadyAssignedError is raised."""
        statement = (
            update(DBRule)
            .where(DBRule.id == rule_id, ~self._assignment_exists(rule_id))
            .values(
                name=name,
                rule_type=rule_type.value,
                score_delta=score_delta,
                updated_at=utc_now(),
            )
        )
        try:
            result = self.db.execute(
                statement, execution_options={"synchronize_session": False}
            )
        except IntegrityError as exc:
            logger.warning(f"Duplicate rule name {name!r} for rule {rule_id}")
            raise DuplicateRuleNameError(
                f"A rule named {name!r} already exists in this game."
            ) from exc
        if result.rowcount == 0:
            self._raise_missing_or_assigned(rule_id)

        rule_db = self.db.get(DBRule, rule_id, populate_existing=True)
        if rule_db is None:
            raise RuleNotFoundError(f"Rule with {rule_id=} not found.")
        return self._to_rule_model(rule_db)

    def delete_rule(self, rule_id: int) -> RuleModel | None:
        """Conditional delete, same guard as update_rule. None if the rule does not exist."""
        rule_db = self.db.get(DBRule, rule_id)
        if not rule_db:
            return None
        rule_model = self._to_rule_model(rule_db)

        statement = delete(DBRule).where(
            DBRule.id == rule_id, ~self._assignment_exists(rule_id)
        )
        result = self.db.execute(
            statement, execution_options={"synchronize_session": False}
        )
        if result.rowcount == 0:
            self._raise_missing_or_assigned(rule_id)
        self.db.expunge(rule_db)
        return rule_model

    def list_rules(self, game_id: int) -> list[RuleModel]:
        query = select(DBRule).where(DBRule.game_id == game_id).order_by(DBRule.id)
        return [self._to_rule_model(r) for r in self.db.scalars(query)]

    def count_rules(self, game_id: int) -> int:
        query = select(func.count()).select_from(DBRule).where(DBRule.game_id == game_id)
        return self.db.scalar(query) or 0

    # -- assignments --
    def get_assignment_for_rule(self, rule_id: int) -> RuleAssignmentModel | None:
        query = select(DBRuleAssignment).where(DBRuleAssignment.rule_id == rule_id)
        assignment_db = self.db.scalar(query)
        if assignment_db:
            return self._to_assignment_model(assignment_db)
        return None

    def insert_assignment_if_absent(
        self, rule_id: int, game_id: int, player_id: int, score_delta: int
    ) -> ConditionalInsert:
        """
        Single statement `INSERT ... ON CONFLICT (rule_id) DO NOTHING RETURNING id`.

        Of any number of concurrent callers for the same rule exactly one gets `inserted=True`.
        The others get `inserted=False` and no error, so nothing has to be caught to detect the race.
        """
        dialect = self.db.get_bind().dialect.name
        make_insert = CONFLICT_FREE_INSERTS.get(dialect)
        if make_insert is None:
            raise RepositoryError(
                f"Conditional assignment insert is not supported for the {dialect!r} dialect."
            )

        statement = (
            make_insert(DBRuleAssignment)
            .values(
                rule_id=rule_id,
                game_id=game_id,
                assigned_to_player_id=player_id,
                score_delta_applied=score_delta,
                assigned_at=utc_now(),
            )
            .on_conflict_do_nothing(index_elements=[DBRuleAssignment.rule_id])
            .returning(DBRuleAssignment.id)
        )
        new_id = self.db.execute(statement).scalar_one_or_none()
        if new_id is None:
            return ConditionalInsert(inserted=False)

        assignment_db = self.db.get(DBRuleAssignment, new_id)
        if assignment_db is None:
            raise RepositoryError(f"Assignment {new_id} vanished right after insert.")
        return ConditionalInsert(
            inserted=True, assignment=self._to_assignment_model(assignment_db)
        )

    def list_assignments(self, game_id: int) -> list[RuleAssignmentModel]:
        query = (
            select(DBRuleAssignment)
            .where(DBRuleAssignment.game_id == game_id)
            .order_by(DBRuleAssignment.assigned_at.desc(), DBRuleAssignment.id.desc())
        )
        return [self._to_assignment_model(a) for a in self.db.scalars(query)]

    def count_assignments(self, game_id: int) -> int:
        query = (
            select(func.count())
            .select_from(DBRuleAssignment)
            .where(DBRuleAssignment.game_id == game_id)
        )
        return self.db.scalar(query) or 0

    # -- internal helpers --
    def _fetch_game(self, game_id: int, lock: bool = False) -> DBGame | None:
        query = select(DBGame).where(DBGame.id == game_id)
        if lock:
            query = query.with_for_update()
        return self.db.scalar(query)

    def _require_game(self, game_id: int) -> DBGame:
        game_db = self._fetch_game(game_id)
        if game_db is None:
            raise GameNotFoundError(f"Game with {game_id=} not found.")
        return game_db

    def _assignment_exists(self, rule_id: int) -> Exists:
        return select(DBRuleAssignment.id).where(DBRuleAssignment.rule_id == rule_id).exists()

    def _raise_missing_or_assigned(self, rule_id: int) -> None:
        """A conditional rule write matched no row: find out which guard stopped it."""
        if self.get_assignment_for_rule(rule_id) is not None:
            logger.warning(f"Rule {rule_id} was assigned before it could be changed")
            raise RuleAlreadyAssignedError(
                f"Rule {rule_id} has already been assigned and cannot be changed."
            )
        raise RuleNotFoundError(f"Rule with {rule_id=} not found.")

    def _flush_rule(self, rule_db: DBRule) -> None:
        try:
            self.db.flush()
        except IntegrityError as exc:
            logger.warning(
                f"Duplicate rule name {rule_db.name!r} in game {rule_db.game_id}"
            )
            raise DuplicateRuleNameError(
                f"A rule named {rule_db.name!r} already exists in this game."
            ) from exc

    def _to_game_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy model to data transfer model."""
        return GameModel(
            id=game_db.id,
            name=game_db.name,
            initial_score=game_db.initial_score,
            status=GameStatus(game_db.status),
            creator_player_id=game_db.creator_player_id,
            winner_player_id=game_db.winner_player_id,
            created_at=game_db.created_at,
            updated_at=game_db.updated_at,
        )

    def _to_player_model(self, player_db: DBPlayer) -> PlayerModel:
        return PlayerModel(
            id=player_db.id,
            game_id=player_db.game_id,
            username=player_db.username,
            access_code=player_db.access_code,
            is_creator=player_db.is_creator,
            current_score=player_db.current_score,
            created_at=player_db.created_at,
            updated_at=player_db.updated_at,
        )

    def _to_rule_model(self, rule_db: DBRule) -> RuleModel:
        return RuleModel(
            id=rule_db.id,
            game_id=rule_db.game_id,
            name=rule_db.name,
            rule_type=RuleType(rule_db.rule_type),
            score_delta=rule_db.score_delta,
            created_at=rule_db.created_at,
            updated_at=rule_db.updated_at,
        )

    def _to_assignment_model(self, assignment_db: DBRuleAssignment) -> RuleAssignmentModel:
        return RuleAssignmentModel(
            id=assignment_db.id,
            rule_id=assignment_db.rule_id,
            game_id=assignment_db.game_id,
            assigned_to_player_id=assignment_db.assigned_to_player_id,
            score_delta_applied=assignment_db.score_delta_applied,
            assigned_at=assignment_db.assigned_at,
        )
