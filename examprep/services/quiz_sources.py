"""Where a quiz session gets its questions and sends its result."""
import logging

from examprep.config import RANDOM_QUIZ_LESSON_ID
from examprep.models.lessons import LessonHistoryPayload, TemplateFinishPayload
from examprep.models.quiz import LessonQuestionSet, QuizResults
from examprep.services.lesson_service import LessonService
from examprep.utils import validate_question_count

logger = logging.getLogger(__name__)


class QuizSource:
    """Base class for question sources."""

    kind = "lesson"
    randomized = False
    # Whether the countdown stops while the current question is answered
    pause_when_answered = True

    def __init__(self, service: LessonService):
        self.service = service

    @property
    def lesson_id(self) -> int:
        raise NotImplementedError

    @property
    def ready(self) -> bool:
        """Whether ``fetch`` can be called without further input."""
        return True

    async def fetch(self, locale: str, *, force_refresh: bool = False) -> LessonQuestionSet:
        raise NotImplementedError

    def invalidate(self) -> None:
        """Drop cached data for this source. Default: nothing cached."""

    async def submit(self, question_set: LessonQuestionSet, results: QuizResults) -> bool:
        raise NotImplementedError

    async def _submit_history(self, lesson_id: int, results: QuizResults) -> bool:
        if lesson_id <= 0:
            logger.info(f"Skipping result submission for lesson id {lesson_id}")
            return False
        payload = LessonHistoryPayload(
            lessonId=lesson_id,
            percentage=results.percentage,
            allQuestionsCount=results.total_questions,
            correctAnswersCount=results.correct_answers,
            notCorrectAnswersCount=results.incorrect_answers,
        )
        return await self.service.submit_lesson_history(payload)


class LessonQuizSource(QuizSource):
    """Questions of one lesson, read through the TTL cache."""

    def __init__(self, service: LessonService, lesson_id: int, *, use_cache: bool = True):
        super().__init__(service)
        self._lesson_id = lesson_id
        self.use_cache = use_cache

    @property
    def lesson_id(self) -> int:
        return self._lesson_id

    async def fetch(self, locale: str, *, force_refresh: bool = False) -> LessonQuestionSet:
        return await self.service.get_lesson(
            self._lesson_id,
            locale,
            use_cache=self.use_cache,
            force_refresh=force_refresh,
        )

    def invalidate(self) -> None:
        self.service.invalidate_lesson(self._lesson_id)

    async def submit(self, question_set: LessonQuestionSet, results: QuizResults) -> bool:
        return await self._submit_history(self._lesson_id, results)


class RandomQuizSource(QuizSource):
    """
    Randomly drawn questions. The question count is chosen by the user
    before the first fetch and cleared again on retry.
    """

    kind = "random"
    randomized = True

    def __init__(self, service: LessonService, question_count: int | None = None):
        super().__init__(service)
        self.question_count: int | None = None
        self._last_lesson_id: int | None = None
        if question_count is not None:
            self.configure(question_count)

    @property
    def lesson_id(self) -> int:
        if self._last_lesson_id is not None:
            return self._last_lesson_id
        return RANDOM_QUIZ_LESSON_ID

    @property
    def ready(self) -> bool:
        return self.question_count is not None

    def configure(self, question_count: object) -> int:
        self.question_count = validate_question_count(question_count)
        return self.question_count

    def clear(self) -> None:
        self.question_count = None

    async def fetch(self, locale: str, *, force_refresh: bool = False) -> LessonQuestionSet:
        if self.question_count is None:
            raise ValueError("Question count has not been chosen")
        question_set = await self.service.get_random_quiz(self.question_count, locale)
        self._last_lesson_id = question_set.lesson_id
        return question_set

    async def submit(self, question_set: LessonQuestionSet, results: QuizResults) -> bool:
        return await self._submit_history(question_set.lesson_id, results)


class TemplateQuizSource(QuizSource):
    """Test started from a server-side template; finished by result id."""

    kind = "template"
    pause_when_answered = False

    def __init__(self, service: LessonService, template_id: int):
        super().__init__(service)
        self.template_id = template_id

    @property
    def lesson_id(self) -> int:
        return self.template_id

    async def fetch(self, locale: str, *, force_refresh: bool = False) -> LessonQuestionSet:
        return await self.service.start_template_test(self.template_id, locale)

    async def submit(self, question_set: LessonQuestionSet, results: QuizResults) -> bool:
        if question_set.test_result_id is None:
            logger.warning(f"Template test {self.template_id} has no result id, not submitting")
            return False
        payload = TemplateFinishPayload(
            testResultId=question_set.test_result_id,
            score=results.score,
            correctCount=results.correct_answers,
            wrongCount=results.incorrect_answers,
            percentage=results.percentage,
        )
        return await self.service.finish_template_test(payload)
