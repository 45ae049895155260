"""Validation of the user supplied parts of a game: its name, its players and its bonus/malus rules."""

from bonusmalus.core.exceptions import ValidationFailedError
from bonusmalus.core.shared_types import RuleType

MAX_NAME_LENGTH = 100


def clean_name(value: str, *, what: str, missing_code: str) -> str:
    """Strip surrounding whitespace and enforce 1..MAX_NAME_LENGTH characters."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailedError(f"{what} must not be empty.", missing_code)
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationFailedError(
            f"{what} must be at most {MAX_NAME_LENGTH} characters long.",
            "NAME_TOO_LONG",
        )
    return cleaned


def validate_rule(name: str, rule_type: RuleType, score_delta: int) -> str:
    """
    Check a rule definition and return its cleaned name.

    A bonus must add points and a malus must remove points, so a delta of 0 is never valid.
    """
    cleaned = clean_name(name, what="Rule name", missing_code="RULE_NAME_REQUIRED")

    if rule_type == RuleType.BONUS and score_delta <= 0:
        raise ValidationFailedError(
            f"Bonus rule {cleaned!r} must have a positive score delta, got {score_delta}.",
            "INVALID_RULE_DELTA",
        )
    if rule_type == RuleType.MALUS and score_delta >= 0:
        raise ValidationFailedError(
            f"Malus rule {cleaned!r} must have a negative score delta, got {score_delta}.",
            "INVALID_RULE_DELTA",
        )
    return cleaned


def validate_initial_score(initial_score: int) -> None:
    if initial_score < 0:
        raise ValidationFailedError(
            f"Initial score must be zero or more, got {initial_score}.",
            "INVALID_INITIAL_SCORE",
        )


def validate_creator_count(creator_flags: list[bool]) -> None:
    """Exactly one player of a game is its creator."""
    creators = sum(1 for flag in creator_flags if flag)
    if creators != 1:
        raise ValidationFailedError(
            f"Exactly one player must be flagged as creator, got {creators}.",
            "INVALID_CREATOR_COUNT",
        )
