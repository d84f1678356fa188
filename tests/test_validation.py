# tests/test_validation.py

from __future__ import annotations

import pytest

from aclio.errors import ValidationError
from aclio.validation import InputValidator, ValidationResult


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("", "Please enter a goal"),
        ("   ", "Please enter a goal"),
        ("run", "Goal must be at least 5 characters"),
        ("x" * 501, "Goal must be less than 500 characters"),
        ("I want to make a bomb", "Please enter a constructive goal"),
    ],
)
def test_invalid_goals(text: str, message: str) -> None:
    result = InputValidator.validate_goal(text)
    assert not result.is_valid
    assert result.error_message == message


def test_valid_goal_is_trimmed_before_checks() -> None:
    assert InputValidator.validate_goal("   Run a 5k   ").is_valid
    assert InputValidator.validate_goal("  abcde ").is_valid


def test_chat_message() -> None:
    assert InputValidator.validate_chat_message("hi").is_valid
    assert not InputValidator.validate_chat_message("  ").is_valid
    assert not InputValidator.validate_chat_message("x" * 2001).is_valid


@pytest.mark.parametrize("name", ["Jo", "Mary-Jane", "O'Brien", "Ann Lee"])
def test_valid_names(name: str) -> None:
    assert InputValidator.validate_name(name).is_valid


@pytest.mark.parametrize("name", ["", "J", "R2D2", "x" * 51])
def test_invalid_names(name: str) -> None:
    assert not InputValidator.validate_name(name).is_valid


def test_age_is_optional_but_bounded() -> None:
    assert InputValidator.validate_age("").is_valid
    assert InputValidator.validate_age("13").is_valid
    assert InputValidator.validate_age("120").is_valid
    assert InputValidator.validate_age("12").error_message == "You must be at least 13 years old"
    assert InputValidator.validate_age("121").error_message == "Please enter a valid age"
    assert InputValidator.validate_age("abc").error_message == "Please enter a valid age"


def test_question_answer() -> None:
    assert InputValidator.validate_question_answer("").is_valid
    assert not InputValidator.validate_question_answer("x" * 1001).is_valid


def test_raise_if_invalid() -> None:
    ValidationResult.valid().raise_if_invalid()
    with pytest.raises(ValidationError, match="Please enter a goal"):
        InputValidator.validate_goal("").raise_if_invalid()
