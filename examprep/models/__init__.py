"""Data models."""
from examprep.models.lessons import (
    LessonHistoryItem,
    LessonHistoryPayload,
    LessonSummary,
    TemplateFinishPayload,
    TemplateStartRequest,
)
from examprep.models.quiz import (
    LessonQuestionSet,
    Question,
    QuizProgress,
    QuizResults,
    SessionSnapshot,
    UserAnswer,
)
from examprep.models.sessions import (
    AnswerRequest,
    LocaleRequest,
    QuestionIndexRequest,
    SessionCreate,
    StartRequest,
)

__all__ = [
    "AnswerRequest",
    "LessonHistoryItem",
    "LessonHistoryPayload",
    "LessonQuestionSet",
    "LessonSummary",
    "LocaleRequest",
    "Question",
    "QuestionIndexRequest",
    "QuizProgress",
    "QuizResults",
    "SessionCreate",
    "SessionSnapshot",
    "StartRequest",
    "TemplateFinishPayload",
    "TemplateStartRequest",
    "UserAnswer",
]
