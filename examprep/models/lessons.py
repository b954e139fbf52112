"""Wire models for the remote lesson service."""
from pydantic import BaseModel, Field


class LessonSummary(BaseModel):
    """Item of the lesson list."""

    lessonId: int
    lessonName: str
    lessonDescription: str | None = None
    lessonIcon: str | None = None
    lessonQuestionCount: int | None = None


class LegacyAnswers(BaseModel):
    """Answer block of the legacy question shape."""

    answerId: int | None = None
    questionId: int | None = None
    # 1-based index of the correct option
    status: int | None = None
    isCorrect: list[bool] | None = None
    answerText: dict[str, list[str]] = Field(..., min_length=1)


class LegacyQuestion(BaseModel):
    """Question with per-locale text and answer arrays."""

    questionId: int
    photo: str | None = None
    questionText: dict[str, str] = Field(..., min_length=1)
    answers: LegacyAnswers


class LegacyQuestionSet(BaseModel):
    """Lesson payload with per-field localized strings."""

    lessonId: int
    lessonName: str | None = None
    lessonDescription: str | None = None
    lessonIcon: str | None = None
    lessonQuestionCount: int | None = None
    nameUz: str | None = None
    nameOz: str | None = None
    nameRu: str | None = None
    descriptionUz: str | None = None
    descriptionOz: str | None = None
    descriptionRu: str | None = None
    questions: list[LegacyQuestion] = Field(default_factory=list)


class Variant(BaseModel):
    """One selectable option of a pre-localized question."""

    variantId: int
    isCorrect: bool = False
    text: str


class LocalizedQuestion(BaseModel):
    """Question already localized by the server."""

    questionId: int
    photo: str | None = None
    questionText: str
    variants: list[Variant]


class LocalizedQuestionSet(BaseModel):
    """Lesson, random quiz or template payload in the current shape."""

    lessonId: int | None = None
    id: int | None = None
    lessonName: str | None = None
    name: str | None = None
    lessonDescription: str | None = None
    description: str | None = None
    lessonIcon: str | None = None
    icon: str | None = None
    testResultId: int | None = None
    questions: list[LocalizedQuestion] = Field(default_factory=list)


class LessonHistoryPayload(BaseModel):
    """Result submitted after a lesson quiz is finished."""

    lessonId: int
    percentage: int
    allQuestionsCount: int
    correctAnswersCount: int
    notCorrectAnswersCount: int


class LessonHistoryItem(BaseModel):
    """Entry of the user's quiz history."""

    lessonHistoryId: int
    lessonName: str
    percentage: float
    correctAnswersCount: int
    notCorrectAnswersCount: int
    allQuestionCount: int | None = None
    createdDate: str


class TemplateStartRequest(BaseModel):
    """Start a template test."""

    testTemplateId: int


class TemplateFinishPayload(BaseModel):
    """Result submitted after a template test is finished."""

    testResultId: int
    score: int
    correctCount: int
    wrongCount: int
    percentage: int
