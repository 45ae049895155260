"""Transaction boundary shared by the service operations."""

import logging
from functools import wraps
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from bonusmalus.core.exceptions import GameError, GameNotFoundError
from bonusmalus.core.models import GameModel
from bonusmalus.core.results import Result
from bonusmalus.core.shared_types import ResultStatus
from bonusmalus.db.repository import GameRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


def service_operation(
    success: ResultStatus = ResultStatus.OK,
) -> Callable[[Callable[..., T]], Callable[..., Result[T]]]:
    """
    Run a service method inside one repository transaction and turn its outcome into a Result.

    Usage:
        @service_operation(success=ResultStatus.CREATED)
        def create_something(self, ...):
            # raise a GameError subclass to fail, return the value to succeed
            ...

    - the decorated method must live on an object with a `repo: GameRepository` attribute
    - a GameError rolls the transaction back and becomes a failure Result with the error's status and code
    - any SQLAlchemyError rolls back and becomes an internal_error Result. It is never retried here.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., Result[T]]:
        @wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Result[T]:
            try:
                with self.repo.atomic():
                    value = func(self, *args, **kwargs)
            except GameError as exc:
                if exc.status == ResultStatus.INTERNAL_ERROR:
                    logger.error(f"{func.__name__} failed: {exc.message}", exc_info=True)
                return Result.from_error(exc)
            except SQLAlchemyError as exc:
                logger.error(f"Transaction failed in {func.__name__}: {exc}", exc_info=True)
                return Result.failure(
                    ResultStatus.INTERNAL_ERROR,
                    "Unexpected storage failure, nothing was changed.",
                    "STORE_ERROR",
                )
            return Result(status=success, value=value)

        return wrapper

    return decorator


def fetch_game(repo: GameRepository, game_id: int, lock: bool = False) -> GameModel:
    """Attempt to find the game in the repository and raise error if it fails."""
    game = repo.get_game(game_id, lock=lock)
    if game is None:
        raise GameNotFoundError(f"Game with {game_id=} not found.")
    return game
