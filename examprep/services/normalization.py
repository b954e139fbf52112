"""Normalize both lesson payload shapes into ``LessonQuestionSet``."""
from typing import Any

from pydantic import ValidationError

from examprep.config import SUPPORTED_LOCALES
from examprep.errors import MalformedPayloadError
from examprep.models.lessons import (
    LegacyQuestion,
    LegacyQuestionSet,
    LocalizedQuestion,
    LocalizedQuestionSet,
)
from examprep.models.quiz import LessonQuestionSet, Question

QuestionSetPayload = LegacyQuestionSet | LocalizedQuestionSet


def is_localized_shape(raw: dict[str, Any]) -> bool:
    """The current shape carries ``variants`` on its questions."""
    questions = raw.get("questions")
    if not isinstance(questions, list) or not questions:
        return False
    first = questions[0]
    return isinstance(first, dict) and "variants" in first


def parse_question_set(raw: object) -> QuestionSetPayload:
    """Validate raw JSON into one of the two payload shapes."""
    if not isinstance(raw, dict):
        raise MalformedPayloadError("Lesson payload must be an object")
    model = LocalizedQuestionSet if is_localized_shape(raw) else LegacyQuestionSet
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid lesson payload: {e.error_count()} errors") from e


def _legacy_question(item: LegacyQuestion) -> Question:
    return Question(
        question_id=item.questionId,
        photo=item.photo or None,
        text=dict(item.questionText),
        options={locale: list(options) for locale, options in item.answers.answerText.items()},
        correct_flags=list(item.answers.isCorrect) if item.answers.isCorrect is not None else None,
        correct_index=item.answers.status,
    )


def _localized_question(item: LocalizedQuestion) -> Question:
    texts = [variant.text for variant in item.variants]
    flags = [variant.isCorrect for variant in item.variants]
    correct_index = flags.index(True) + 1 if True in flags else None
    return Question(
        question_id=item.questionId,
        photo=item.photo or None,
        # Server already localized the text; expose it under every locale
        text={locale: item.questionText for locale in SUPPORTED_LOCALES},
        options={locale: list(texts) for locale in SUPPORTED_LOCALES},
        correct_flags=flags,
        correct_index=correct_index,
    )


def _legacy_field(payload: LegacyQuestionSet, prefix: str, locale: str) -> str | None:
    return getattr(payload, f"{prefix}{locale.capitalize()}", None)


def normalize_question_set(
    payload: QuestionSetPayload,
    locale: str,
    *,
    lesson_id: int | None = None,
    fallback_title: str = "",
    fallback_description: str = "",
    fallback_icon: str = "",
) -> LessonQuestionSet:
    """
    Map a parsed payload onto the internal model.

    Args:
        payload: Parsed legacy or localized payload
        locale: Locale the payload was requested for
        lesson_id: Lesson id to use when the payload carries none
        fallback_title: Title used when the payload has no name
        fallback_description: Description used when the payload has none
        fallback_icon: Icon used when the payload has none

    Raises:
        MalformedPayloadError: If option lists or correctness flags do not line up
    """
    if isinstance(payload, LocalizedQuestionSet):
        questions = tuple(_localized_question(item) for item in payload.questions)
        resolved_id = payload.lessonId or payload.id or lesson_id
        title = payload.lessonName or payload.name or fallback_title
        description = payload.lessonDescription or payload.description or fallback_description
        icon = payload.lessonIcon or payload.icon or fallback_icon
        test_result_id = payload.testResultId
    else:
        questions = tuple(_legacy_question(item) for item in payload.questions)
        resolved_id = payload.lessonId or lesson_id
        title = (
            _legacy_field(payload, "name", locale) or payload.lessonName or fallback_title
        )
        description = (
            _legacy_field(payload, "description", locale)
            or payload.lessonDescription
            or fallback_description
        )
        icon = payload.lessonIcon or fallback_icon
        test_result_id = None

    for question in questions:
        question.validate()

    return LessonQuestionSet(
        lesson_id=int(resolved_id or 0),
        title=title,
        description=description,
        icon=icon,
        locale=locale,
        questions=questions,
        test_result_id=test_result_id,
    )


def normalize_raw(raw: object, locale: str, **kwargs: Any) -> LessonQuestionSet:
    """Parse and normalize in one step."""
    return normalize_question_set(parse_question_set(raw), locale, **kwargs)
