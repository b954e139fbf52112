"""Service layer for lesson, quiz and history data."""
import logging

from pydantic import ValidationError

from examprep.config import RANDOM_QUIZ_LESSON_ID
from examprep.errors import MalformedPayloadError
from examprep.models.lessons import (
    LessonHistoryItem,
    LessonHistoryPayload,
    LessonSummary,
    TemplateFinishPayload,
    TemplateStartRequest,
)
from examprep.models.quiz import LessonQuestionSet
from examprep.services.api_client import ApiClient
from examprep.services.entity_cache import LessonCache
from examprep.services.normalization import (
    normalize_question_set,
    normalize_raw,
    parse_question_set,
)
from examprep.services.request_coalescer import RequestCoalescer

logger = logging.getLogger(__name__)

RANDOM_QUIZ_TITLES = {
    "uz": "Tasodify test",
    "oz": "Таъсифий тест",
    "ru": "Случайный тест",
}
RANDOM_QUIZ_DESCRIPTIONS = {
    "uz": "Har hil mavzulardan tayyorlangan tasodify savollar",
    "oz": "Ҳар хил мавзулардан тайёрланган таъсифий саволлар",
    "ru": "Случайные вопросы из разных тем",
}
RANDOM_QUIZ_ICON = "🎲"


class LessonService:
    """
    Fetches lesson data through the request coalescer and the TTL cache.

    One instance is shared by every session in the process.
    """

    def __init__(self, client: ApiClient, cache: LessonCache, coalescer: RequestCoalescer):
        self.client = client
        self.cache = cache
        self.coalescer = coalescer

    async def list_lessons(self) -> list[LessonSummary]:
        """Get all lessons."""

        async def produce() -> list[LessonSummary]:
            raw = await self.client.get_json("/api/v1/lesson")
            if not isinstance(raw, list):
                raise MalformedPayloadError("Lesson list must be an array")
            try:
                return [LessonSummary.model_validate(item) for item in raw]
            except ValidationError as e:
                raise MalformedPayloadError("Invalid lesson list") from e

        return await self.coalescer.fetch("lessons", produce)

    async def get_lesson(
        self,
        lesson_id: int,
        locale: str,
        *,
        use_cache: bool = True,
        force_refresh: bool = False,
    ) -> LessonQuestionSet:
        """
        Get the question set of a lesson.

        Args:
            lesson_id: Lesson identifier
            locale: Locale to request
            use_cache: Consult and fill the TTL cache
            force_refresh: Skip the cache lookup but still store the result

        Raises:
            TransientNetworkError: If the request fails
            MalformedPayloadError: If the payload cannot be normalized
        """
        if use_cache and not force_refresh:
            cached = self.cache.get(lesson_id)
            if cached is not None and cached.locale == locale:
                logger.debug(f"Lesson {lesson_id} served from cache")
                return cached

        async def produce() -> LessonQuestionSet:
            raw = await self.client.get_json(f"/api/v1/lesson/{lesson_id}", locale=locale)
            question_set = normalize_raw(raw, locale, lesson_id=lesson_id)
            if use_cache:
                self.cache.put(lesson_id, question_set)
            return question_set

        return await self.coalescer.fetch(f"lesson-{lesson_id}:{locale}", produce)

    def invalidate_lesson(self, lesson_id: int) -> None:
        self.cache.invalidate(lesson_id)

    async def get_random_quiz(self, question_count: int, locale: str) -> LessonQuestionSet:
        """Get a random question set, wrapped as a synthetic lesson."""

        async def produce() -> LessonQuestionSet:
            raw = await self.client.get_json(
                "/api/v1/random-quiz",
                locale=locale,
                params={"interval": question_count},
            )
            payload = parse_question_set(raw)
            if not payload.questions:
                raise MalformedPayloadError("Random quiz returned no questions")
            return normalize_question_set(
                payload,
                locale,
                lesson_id=RANDOM_QUIZ_LESSON_ID,
                fallback_title=RANDOM_QUIZ_TITLES.get(locale, RANDOM_QUIZ_TITLES["uz"]),
                fallback_description=RANDOM_QUIZ_DESCRIPTIONS.get(locale, RANDOM_QUIZ_DESCRIPTIONS["uz"]),
                fallback_icon=RANDOM_QUIZ_ICON,
            )

        return await self.coalescer.fetch(f"random-quiz-{question_count}:{locale}", produce)

    async def start_template_test(self, template_id: int, locale: str) -> LessonQuestionSet:
        """Start a template test; the result id is needed to finish it."""

        async def produce() -> LessonQuestionSet:
            raw = await self.client.post_json(
                "/api/v1/templates/start-test",
                TemplateStartRequest(testTemplateId=template_id).model_dump(),
                locale=locale,
            )
            question_set = normalize_raw(raw, locale, lesson_id=template_id)
            if question_set.test_result_id is None:
                raise MalformedPayloadError("Template test has no testResultId")
            return question_set

        return await self.coalescer.fetch(f"template-{template_id}:{locale}", produce)

    async def submit_lesson_history(self, payload: LessonHistoryPayload) -> bool:
        """
        Record a finished lesson quiz.

        Failures are logged and swallowed; returns whether the call succeeded.
        """
        try:
            await self.client.post_json("/api/v1/lesson-history/add", payload.model_dump())
        except Exception as e:
            logger.error(f"Failed to submit lesson history for lesson {payload.lessonId}: {e}")
            return False
        logger.info(f"Submitted lesson history for lesson {payload.lessonId}")
        return True

    async def finish_template_test(self, payload: TemplateFinishPayload) -> bool:
        """Record a finished template test. Failures are logged and swallowed."""
        try:
            await self.client.post_json("/api/v1/templates/finish-test", payload.model_dump())
        except Exception as e:
            logger.error(f"Failed to finish template test {payload.testResultId}: {e}")
            return False
        return True

    async def get_lesson_history(self) -> list[LessonHistoryItem]:
        """Get the user's quiz history."""

        async def produce() -> list[LessonHistoryItem]:
            raw = await self.client.get_json("/api/v1/lesson-history")
            if not isinstance(raw, list):
                raise MalformedPayloadError("Lesson history must be an array")
            try:
                return [LessonHistoryItem.model_validate(item) for item in raw]
            except ValidationError as e:
                raise MalformedPayloadError("Invalid lesson history") from e

        return await self.coalescer.fetch("lesson-history", produce)
