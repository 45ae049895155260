"""
Type definitions used across layers
"""

from enum import StrEnum


class GameStatus(StrEnum):
    DRAFT = "draft"
    STARTED = "started"
    ENDED = "ended"


class RuleType(StrEnum):
    BONUS = "bonus"
    MALUS = "malus"


class ResultStatus(StrEnum):
    """Outcome classification of a service operation. The API layer maps these to HTTP status codes."""

    OK = "ok"
    CREATED = "created"
    BAD_REQUEST = "bad_request"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL_ERROR = "internal_error"
