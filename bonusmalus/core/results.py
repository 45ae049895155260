"""Result envelope returned by every service operation."""

from dataclasses import dataclass, field
from typing import Generic, Optional, Self, TypeVar

from bonusmalus.core.exceptions import GameError
from bonusmalus.core.shared_types import ResultStatus

T = TypeVar("T")

SUCCESS_STATUSES = frozenset({ResultStatus.OK, ResultStatus.CREATED})


@dataclass(frozen=True)
class ErrorEntry:
    message: str
    code: str


@dataclass
class Result(Generic[T]):
    status: ResultStatus
    value: Optional[T] = None
    errors: list[ErrorEntry] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @property
    def error_codes(self) -> list[str]:
        return [error.code for error in self.errors]

    @classmethod
    def ok(cls, value: Optional[T] = None) -> Self:
        return cls(status=ResultStatus.OK, value=value)

    @classmethod
    def created(cls, value: T) -> Self:
        return cls(status=ResultStatus.CREATED, value=value)

    @classmethod
    def failure(cls, status: ResultStatus, message: str, code: str) -> Self:
        if status in SUCCESS_STATUSES:
            raise ValueError(f"{status!r} is not a failure status.")
        return cls(status=status, errors=[ErrorEntry(message=message, code=code)])

    @classmethod
    def from_error(cls, error: GameError) -> Self:
        """Translate a domain exception into a failed Result."""
        return cls.failure(error.status, error.message, error.code)
