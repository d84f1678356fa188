# src/aclio/validation.py

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import ValidationError

GOAL_MIN_LENGTH = 5
GOAL_MAX_LENGTH = 500
CHAT_MAX_LENGTH = 2000
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
AGE_MIN = 13
AGE_MAX = 120
ANSWER_MAX_LENGTH = 1000

# Only clearly harmful patterns are blocked client-side.
HARMFUL_PATTERNS: tuple[str, ...] = (
    "kill myself",
    "kill someone",
    "hurt myself",
    "suicide",
    "self harm",
    "make a bomb",
    "build a weapon",
)

_NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    is_valid: bool
    error_message: str | None = None

    @classmethod
    def valid(cls) -> ValidationResult:
        return cls(True, None)

    @classmethod
    def invalid(cls, message: str) -> ValidationResult:
        return cls(False, message)

    def raise_if_invalid(self) -> None:
        if not self.is_valid:
            raise ValidationError(self.error_message or "Invalid input")


def _contains_harmful_content(text: str) -> bool:
    low = text.lower()
    return any(p in low for p in HARMFUL_PATTERNS)


class InputValidator:
    @staticmethod
    def validate_goal(text: str) -> ValidationResult:
        trimmed = text.strip()
        if not trimmed:
            return ValidationResult.invalid("Please enter a goal")
        if len(trimmed) < GOAL_MIN_LENGTH:
            return ValidationResult.invalid(f"Goal must be at least {GOAL_MIN_LENGTH} characters")
        if len(trimmed) > GOAL_MAX_LENGTH:
            return ValidationResult.invalid(f"Goal must be less than {GOAL_MAX_LENGTH} characters")
        if _contains_harmful_content(trimmed):
            return ValidationResult.invalid("Please enter a constructive goal")
        return ValidationResult.valid()

    @staticmethod
    def validate_chat_message(text: str) -> ValidationResult:
        trimmed = text.strip()
        if not trimmed:
            return ValidationResult.invalid("Please enter a message")
        if len(trimmed) > CHAT_MAX_LENGTH:
            return ValidationResult.invalid(f"Message must be less than {CHAT_MAX_LENGTH} characters")
        return ValidationResult.valid()

    @staticmethod
    def validate_name(text: str) -> ValidationResult:
        trimmed = text.strip()
        if not trimmed:
            return ValidationResult.invalid("Please enter your name")
        if len(trimmed) < NAME_MIN_LENGTH:
            return ValidationResult.invalid(f"Name must be at least {NAME_MIN_LENGTH} characters")
        if len(trimmed) > NAME_MAX_LENGTH:
            return ValidationResult.invalid(f"Name must be less than {NAME_MAX_LENGTH} characters")
        if not _NAME_RE.match(trimmed):
            return ValidationResult.invalid("Name can only contain letters, spaces, hyphens, and apostrophes")
        return ValidationResult.valid()

    @staticmethod
    def validate_age(text: str) -> ValidationResult:
        trimmed = text.strip()
        if not trimmed:
            return ValidationResult.valid()  # optional
        try:
            age = int(trimmed)
        except ValueError:
            return ValidationResult.invalid("Please enter a valid age")
        if age < AGE_MIN:
            return ValidationResult.invalid(f"You must be at least {AGE_MIN} years old")
        if age > AGE_MAX:
            return ValidationResult.invalid("Please enter a valid age")
        return ValidationResult.valid()

    @staticmethod
    def validate_question_answer(text: str) -> ValidationResult:
        trimmed = text.strip()
        if not trimmed:
            return ValidationResult.valid()
        if len(trimmed) > ANSWER_MAX_LENGTH:
            return ValidationResult.invalid(f"Answer must be less than {ANSWER_MAX_LENGTH} characters")
        return ValidationResult.valid()
