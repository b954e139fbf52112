"""Validation utilities."""
from examprep.config import (
    DEFAULT_LOCALE,
    RANDOM_QUIZ_MAX_QUESTIONS,
    RANDOM_QUIZ_MIN_QUESTIONS,
    UI_LANGUAGE_TO_LOCALE,
)
from examprep.errors import InvalidQuestionCountError


def validate_question_count(value: object) -> int:
    """Validate random quiz question count."""
    if isinstance(value, bool):
        raise InvalidQuestionCountError(f"Invalid question count: {value!r}")
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise InvalidQuestionCountError(f"Invalid question count: {value!r}") from None
    if not RANDOM_QUIZ_MIN_QUESTIONS <= count <= RANDOM_QUIZ_MAX_QUESTIONS:
        raise InvalidQuestionCountError(
            f"Question count must be between {RANDOM_QUIZ_MIN_QUESTIONS} "
            f"and {RANDOM_QUIZ_MAX_QUESTIONS}"
        )
    return count


def locale_for_language(language: str | None) -> str:
    """Map UI language code to the locale used by question data."""
    if not language:
        return DEFAULT_LOCALE
    return UI_LANGUAGE_TO_LOCALE.get(language.strip().lower(), DEFAULT_LOCALE)
