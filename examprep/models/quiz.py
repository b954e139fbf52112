"""Internal quiz data model shared by the cache and the session engine."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from examprep.config import DEFAULT_LOCALE, PASS_THRESHOLD_PERCENT
from examprep.errors import MalformedPayloadError


@dataclass(frozen=True)
class Question:
    question_id: int
    text: dict[str, str]
    options: dict[str, list[str]]
    photo: str | None = None
    # Either a flag per option or the legacy 1-based index of the correct option
    correct_flags: list[bool] | None = None
    correct_index: int | None = None

    def _pick_locale(self, mapping: dict[str, Any], locale: str) -> str | None:
        if locale in mapping:
            return locale
        if DEFAULT_LOCALE in mapping:
            return DEFAULT_LOCALE
        return next(iter(mapping), None)

    def text_for(self, locale: str) -> str:
        key = self._pick_locale(self.text, locale)
        return self.text[key] if key is not None else ""

    def options_for(self, locale: str) -> list[str]:
        key = self._pick_locale(self.options, locale)
        return list(self.options[key]) if key is not None else []

    @property
    def option_count(self) -> int:
        for options in self.options.values():
            return len(options)
        return 0

    def is_correct(self, option_index: int) -> bool:
        """Resolve correctness of the option at a 0-based position."""
        if self.correct_flags is not None:
            if 0 <= option_index < len(self.correct_flags):
                return bool(self.correct_flags[option_index])
            return False
        if self.correct_index is not None:
            return option_index == self.correct_index - 1
        return False

    def correct_option(self) -> int | None:
        """Position of the correct option, if one is marked."""
        if self.correct_flags is not None:
            for index, flag in enumerate(self.correct_flags):
                if flag:
                    return index
            return None
        if self.correct_index is not None and self.correct_index > 0:
            return self.correct_index - 1
        return None

    def validate(self) -> None:
        """Check that option lists line up and exactly one option is correct."""
        lengths = {len(options) for options in self.options.values()}
        if len(lengths) > 1:
            raise MalformedPayloadError(
                f"Question {self.question_id}: option lists differ in length across locales"
            )
        if self.correct_flags is not None and lengths and len(self.correct_flags) not in lengths:
            raise MalformedPayloadError(
                f"Question {self.question_id}: correctness flags do not match option count"
            )
        if self.correct_flags is not None:
            if sum(1 for flag in self.correct_flags if flag) != 1:
                raise MalformedPayloadError(
                    f"Question {self.question_id}: exactly one option must be correct"
                )
        elif self.correct_index is None:
            raise MalformedPayloadError(
                f"Question {self.question_id}: no correct answer specified"
            )
        elif not 1 <= self.correct_index <= self.option_count:
            raise MalformedPayloadError(
                f"Question {self.question_id}: correct option {self.correct_index} out of range"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Question:
        return cls(
            question_id=int(data["question_id"]),
            text=dict(data["text"]),
            options={locale: list(items) for locale, items in data["options"].items()},
            photo=data.get("photo"),
            correct_flags=list(data["correct_flags"]) if data.get("correct_flags") is not None else None,
            correct_index=data.get("correct_index"),
        )


@dataclass(frozen=True)
class LessonQuestionSet:
    lesson_id: int
    title: str
    locale: str
    questions: tuple[Question, ...] = ()
    description: str = ""
    icon: str = ""
    test_result_id: int | None = None

    def __len__(self) -> int:
        return len(self.questions)

    @property
    def question_ids(self) -> list[int]:
        return [question.question_id for question in self.questions]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LessonQuestionSet:
        return cls(
            lesson_id=int(data["lesson_id"]),
            title=data.get("title") or "",
            locale=data.get("locale") or DEFAULT_LOCALE,
            questions=tuple(Question.from_dict(item) for item in data.get("questions", [])),
            description=data.get("description") or "",
            icon=data.get("icon") or "",
            test_result_id=data.get("test_result_id"),
        )


@dataclass(frozen=True)
class UserAnswer:
    selected_option: int
    is_correct: bool


@dataclass(frozen=True)
class QuizResults:
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    percentage: int
    passed: bool

    @property
    def score(self) -> int:
        return self.correct_answers


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_results(score: int, total_questions: int) -> QuizResults:
    """Percentage of correct answers, rounded half up, and the pass verdict."""
    if total_questions > 0:
        percentage = round_half_up(Decimal(100 * score) / Decimal(total_questions))
    else:
        percentage = 0
    return QuizResults(
        total_questions=total_questions,
        correct_answers=score,
        incorrect_answers=total_questions - score,
        percentage=percentage,
        passed=percentage >= PASS_THRESHOLD_PERCENT,
    )


@dataclass
class QuizProgress:
    total_questions: int
    answered_questions: int
    unanswered_questions: int
    marked_questions: int
    progress_percentage: float
    completion_status: str = "not-started"


@dataclass
class SessionSnapshot:
    """Progress captured before the question set is replaced."""

    answers: dict[int, UserAnswer] = field(default_factory=dict)
    answered: dict[int, bool] = field(default_factory=dict)
    current_index: int = 0
    score: int = 0
    marked: frozenset[int] = frozenset()
    question_ids: list[int] = field(default_factory=list)
    was_advancing: bool = False
