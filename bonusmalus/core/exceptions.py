"""
Domain exceptions.

Every exception carries the ResultStatus it maps to and a stable machine code, so the service layer
can translate it into a Result without knowing the concrete class.
"""

from typing import ClassVar

from bonusmalus.core.shared_types import ResultStatus


class GameError(Exception):
    """Top-level exception of the package."""

    status: ClassVar[ResultStatus] = ResultStatus.BAD_REQUEST
    default_code: ClassVar[str] = "GAME_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


# --- Validation (BadRequest) ---
class ValidationFailedError(GameError):
    default_code = "VALIDATION_FAILED"


class InvalidRequestError(ValidationFailedError, ValueError):
    """Raised by request model validators. Subclasses ValueError so pydantic reports it as a ValidationError."""


class InvalidStateTransitionError(GameError):
    default_code = "INVALID_STATE_TRANSITION"


class GameNotStartedError(GameError):
    default_code = "GAME_NOT_STARTED"


class GameAlreadyEndedError(GameError):
    default_code = "GAME_ALREADY_ENDED"


class EndConditionsNotMetError(GameError):
    default_code = "END_CONDITIONS_NOT_MET"


class NoPlayersError(GameError):
    default_code = "NO_PLAYERS"


# --- NotFound ---
class NotFoundError(GameError):
    status = ResultStatus.NOT_FOUND
    default_code = "NOT_FOUND"


class GameNotFoundError(NotFoundError):
    default_code = "GAME_NOT_FOUND"


class RuleNotFoundError(NotFoundError):
    default_code = "RULE_NOT_FOUND"


class PlayerNotFoundError(NotFoundError):
    default_code = "PLAYER_NOT_FOUND"


# --- Forbidden ---
class NotGameCreatorError(GameError):
    status = ResultStatus.FORBIDDEN
    default_code = "NOT_GAME_CREATOR"


# --- Conflict ---
class ConflictError(GameError):
    status = ResultStatus.CONFLICT
    default_code = "CONFLICT"


class RuleAlreadyAssignedError(ConflictError):
    default_code = "RULE_ALREADY_ASSIGNED"


class DuplicateRuleNameError(ConflictError):
    default_code = "DUPLICATE_RULE_NAME"


class DuplicatePlayerCredentialsError(ConflictError):
    default_code = "DUPLICATE_PLAYER_CREDENTIALS"


# --- Internal ---
class RepositoryError(GameError):
    """The store could not do what was asked (as opposed to the request being wrong)."""

    status = ResultStatus.INTERNAL_ERROR
    default_code = "STORE_ERROR"
