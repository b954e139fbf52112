"""Registry of open quiz sessions."""
import asyncio
import logging
from dataclasses import dataclass

from examprep.config import AUTO_ADVANCE_DELAY_MS, DEFAULT_LOCALE, FINISHED_SESSION_TTL_SECONDS
from examprep.services.image_cache import ImageCache
from examprep.services.lesson_service import LessonService
from examprep.services.locale_refetch import LocaleRefetchCoordinator
from examprep.services.quiz_session import QuizSession, SessionPhase
from examprep.services.quiz_sources import (
    LessonQuizSource,
    QuizSource,
    RandomQuizSource,
    TemplateQuizSource,
)
from examprep.services.scheduler import CancelHandle, Scheduler

logger = logging.getLogger(__name__)


@dataclass
class ManagedSession:
    session: QuizSession
    coordinator: LocaleRefetchCoordinator

    @property
    def session_id(self) -> str:
        return self.session.session_id


class SessionRegistry:
    """
    Creates sessions on the shared services and tracks them by id.

    A session that reaches FINISHED is closed and dropped after
    ``finished_ttl_ms`` unless it was retried in the meantime.
    """

    def __init__(
        self,
        lesson_service: LessonService,
        image_cache: ImageCache,
        scheduler: Scheduler,
        auto_advance_ms: int = AUTO_ADVANCE_DELAY_MS,
        finished_ttl_ms: int = FINISHED_SESSION_TTL_SECONDS * 1000,
    ):
        self.lesson_service = lesson_service
        self.image_cache = image_cache
        self.scheduler = scheduler
        self.auto_advance_ms = auto_advance_ms
        self.finished_ttl_ms = finished_ttl_ms
        self._sessions: dict[str, ManagedSession] = {}
        self._evictions: dict[str, CancelHandle] = {}

    def build_source(
        self,
        kind: str,
        *,
        lesson_id: int | None = None,
        template_id: int | None = None,
        question_count: int | None = None,
        use_cache: bool = True,
    ) -> QuizSource:
        """
        Build the question source for a session.

        Raises:
            ValueError: If the identifiers needed for ``kind`` are missing
            InvalidQuestionCountError: If a random quiz count is out of range
        """
        if kind == "lesson":
            if lesson_id is None:
                raise ValueError("lessonId is required for lesson quizzes")
            return LessonQuizSource(self.lesson_service, lesson_id, use_cache=use_cache)
        if kind == "random":
            return RandomQuizSource(self.lesson_service, question_count)
        if kind == "template":
            if template_id is None:
                raise ValueError("templateId is required for template tests")
            return TemplateQuizSource(self.lesson_service, template_id)
        raise ValueError(f"Unknown quiz kind: {kind}")

    def create(self, source: QuizSource, locale: str = DEFAULT_LOCALE) -> ManagedSession:
        session = QuizSession(
            source,
            self.scheduler,
            self.image_cache,
            locale=locale,
            auto_advance_ms=self.auto_advance_ms,
            on_finish=self._schedule_eviction,
        )
        managed = ManagedSession(
            session=session,
            coordinator=LocaleRefetchCoordinator(session, observed_locale=locale),
        )
        sessions = dict(self._sessions)
        sessions[session.session_id] = managed
        self._sessions = sessions
        logger.info(f"Opened {source.kind} session {session.session_id}")
        return managed

    def get(self, session_id: str) -> ManagedSession | None:
        return self._sessions.get(session_id)

    def _schedule_eviction(self, session: QuizSession) -> None:
        previous = self._evictions.pop(session.session_id, None)
        if previous is not None:
            previous.cancel()
        self._evictions[session.session_id] = self.scheduler.schedule(
            self.finished_ttl_ms, lambda: self._evict(session.session_id)
        )

    def _evict(self, session_id: str) -> None:
        self._evictions.pop(session_id, None)
        managed = self._sessions.get(session_id)
        if managed is None or managed.session.phase is not SessionPhase.FINISHED:
            return
        managed = self._remove(session_id)
        logger.info(f"Evicting finished session {session_id}")
        asyncio.ensure_future(managed.session.close())

    def _remove(self, session_id: str) -> ManagedSession | None:
        managed = self._sessions.get(session_id)
        if managed is None:
            return None
        self._sessions = {key: value for key, value in self._sessions.items() if key != session_id}
        eviction = self._evictions.pop(session_id, None)
        if eviction is not None:
            eviction.cancel()
        return managed

    async def close(self, session_id: str) -> bool:
        managed = self._remove(session_id)
        if managed is None:
            return False
        await managed.session.close()
        logger.info(f"Closed session {session_id}")
        return True

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)

    def __len__(self) -> int:
        return len(self._sessions)
