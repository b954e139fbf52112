"""Refetch question data when the display locale changes mid-quiz."""
import logging

from examprep.errors import ExamPrepError, QuestionSetMismatchError
from examprep.models.quiz import SessionSnapshot
from examprep.services.quiz_session import QuizSession

logger = logging.getLogger(__name__)


class LocaleRefetchCoordinator:
    """
    Keeps a session's questions in the active locale without losing progress.

    The first observed locale is only recorded. After that, a change while
    the session is interactive snapshots progress, refetches bypassing the
    cache and replays the snapshot onto the new question set. A change that
    arrives while such a refetch is still in flight supersedes it and reuses
    the original snapshot. Outside the interactive phases the new locale is
    just recorded for the next load.

    Randomized quizzes are never refetched: a new request would draw other
    questions.
    """

    def __init__(self, session: QuizSession, observed_locale: str | None = None):
        self.session = session
        self.observed_locale = observed_locale
        self._in_flight: tuple[SessionSnapshot, int] | None = None

    @property
    def refetch_in_flight(self) -> bool:
        return self._in_flight is not None and self.session.is_current(self._in_flight[1])

    async def change_locale(self, locale: str) -> bool:
        """
        Apply a locale change.

        Returns:
            True if a refetch was attempted
        """
        previous = self.observed_locale
        self.observed_locale = locale
        self.session.locale = locale

        if previous is None or previous == locale:
            return False

        session = self.session
        if session.source.randomized:
            logger.debug(f"Locale changed to {locale} on a random quiz, keeping drawn questions")
            return False

        if self.refetch_in_flight:
            snapshot = self._in_flight[0]
            generation = session.supersede_refetch()
            logger.info(f"Superseding locale refetch for session {session.session_id} with {locale}")
        elif session.is_interactive:
            snapshot, generation = session.begin_refetch()
        else:
            logger.debug(f"Locale changed to {locale} outside an active quiz, recorded only")
            return False

        self._in_flight = (snapshot, generation)
        try:
            await self._refetch(locale, snapshot, generation)
        finally:
            if self._in_flight is not None and self._in_flight[1] == generation:
                self._in_flight = None
        return True

    async def _refetch(self, locale: str, snapshot: SessionSnapshot, generation: int) -> None:
        session = self.session
        session.source.invalidate()
        logger.info(f"Refetching session {session.session_id} questions for locale {locale}")

        try:
            question_set = await session.source.fetch(locale, force_refresh=True)
        except ExamPrepError as e:
            if not session.is_current(generation):
                return
            logger.warning(f"Locale refetch failed, resetting session {session.session_id}: {e}")
            session.reset_blank()
            return

        if not session.is_current(generation):
            logger.debug(f"Discarding stale locale refetch for session {session.session_id}")
            return

        try:
            session.replay(question_set, snapshot)
        except QuestionSetMismatchError as e:
            logger.error(f"Cannot restore progress for session {session.session_id}: {e}")
            session.reset_blank(question_set)
