"""Unit tests for bonusmalus/game/rules.py and bonusmalus/game/credentials.py"""

import pytest

from bonusmalus.core.exceptions import ValidationFailedError
from bonusmalus.core.shared_types import RuleType
from bonusmalus.game.credentials import ACCESS_CODE_ALPHABET, generate_access_code
from bonusmalus.game.rules import (
    MAX_NAME_LENGTH,
    clean_name,
    validate_creator_count,
    validate_initial_score,
    validate_rule,
)


def test_valid_rules() -> None:
    assert validate_rule("  Early bird ", RuleType.BONUS, 15) == "Early bird"
    assert validate_rule("Late", RuleType.MALUS, -10) == "Late"


@pytest.mark.parametrize(
    "rule_type, delta",
    [
        (RuleType.BONUS, 0),
        (RuleType.BONUS, -5),
        (RuleType.MALUS, 0),
        (RuleType.MALUS, 5),
    ],
)
def test_delta_sign_must_match_rule_type(rule_type: RuleType, delta: int) -> None:
    with pytest.raises(ValidationFailedError) as exc_info:
        validate_rule("Some rule", rule_type, delta)
    assert exc_info.value.code == "INVALID_RULE_DELTA"


def test_rule_name_is_required() -> None:
    with pytest.raises(ValidationFailedError) as exc_info:
        validate_rule("   ", RuleType.BONUS, 1)
    assert exc_info.value.code == "RULE_NAME_REQUIRED"


def test_names_have_a_maximum_length() -> None:
    assert clean_name("x" * MAX_NAME_LENGTH, what="Name", missing_code="X") == "x" * MAX_NAME_LENGTH
    with pytest.raises(ValidationFailedError) as exc_info:
        clean_name("x" * (MAX_NAME_LENGTH + 1), what="Name", missing_code="X")
    assert exc_info.value.code == "NAME_TOO_LONG"


def test_initial_score_cannot_be_negative() -> None:
    validate_initial_score(0)
    with pytest.raises(ValidationFailedError) as exc_info:
        validate_initial_score(-1)
    assert exc_info.value.code == "INVALID_INITIAL_SCORE"


@pytest.mark.parametrize("flags", [[False, False], [True, True], [True, False, True], []])
def test_exactly_one_creator(flags: list[bool]) -> None:
    with pytest.raises(ValidationFailedError) as exc_info:
        validate_creator_count(flags)
    assert exc_info.value.code == "INVALID_CREATOR_COUNT"


def test_single_creator_is_accepted() -> None:
    validate_creator_count([False, True, False])


def test_access_codes() -> None:
    code = generate_access_code(10)
    assert len(code) == 10
    assert all(c in ACCESS_CODE_ALPHABET for c in code)
    assert "0" not in ACCESS_CODE_ALPHABET and "O" not in ACCESS_CODE_ALPHABET

    with pytest.raises(ValueError):
        generate_access_code(3)
