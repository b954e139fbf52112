"""Quiz session state machine: answers, scoring, auto-advance and submission."""
import asyncio
import logging
import uuid
from enum import Enum
from typing import Callable

from examprep.config import AUTO_ADVANCE_DELAY_MS, DEFAULT_LOCALE
from examprep.errors import ExamPrepError, QuestionSetMismatchError
from examprep.models.quiz import (
    LessonQuestionSet,
    Question,
    QuizProgress,
    QuizResults,
    SessionSnapshot,
    UserAnswer,
    compute_results,
)
from examprep.services.countdown import Countdown, total_time_seconds
from examprep.services.image_cache import NO_IMAGE, ImageCache, ImageScope
from examprep.services.quiz_sources import QuizSource
from examprep.services.scheduler import CancelHandle, Scheduler

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    CHOOSING_COUNT = "choosing-count"
    READY = "ready"
    ANSWERING = "answering"
    ADVANCING = "advancing"
    FINISHED = "finished"


class SubmissionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


INTERACTIVE_PHASES = frozenset(
    {SessionPhase.READY, SessionPhase.ANSWERING, SessionPhase.ADVANCING}
)


class QuizSession:
    """
    One timed quiz, owned by a single screen.

    Interactive phases are derived: the stored status is ``READY`` for the
    whole interactive stretch, and ``phase`` reports ``ANSWERING`` once the
    current question has an answer and ``ADVANCING`` while an auto-advance
    timer is armed.

    Every load bumps ``generation``; async completions compare the
    generation they started with and drop their result if it moved on.
    """

    def __init__(
        self,
        source: QuizSource,
        scheduler: Scheduler,
        image_cache: ImageCache | None = None,
        *,
        locale: str = DEFAULT_LOCALE,
        auto_advance_ms: int = AUTO_ADVANCE_DELAY_MS,
        session_id: str | None = None,
        on_finish: Callable[["QuizSession"], None] | None = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.on_finish = on_finish
        self.source = source
        self.locale = locale
        self.auto_advance_ms = auto_advance_ms
        self._scheduler = scheduler
        self._image_scope: ImageScope | None = image_cache.scope() if image_cache else None

        self.question_set: LessonQuestionSet | None = None
        self.current_index = 0
        self.answers: dict[int, UserAnswer] = {}
        self.answered: dict[int, bool] = {}
        self.score = 0
        self.marked: frozenset[int] = frozenset()
        self.results: QuizResults | None = None
        self.error: str | None = None
        self.generation = 0

        self.submission_state = SubmissionState.IDLE
        self.submission_task: asyncio.Task[None] | None = None

        self._status = SessionPhase.CHOOSING_COUNT if source.randomized else SessionPhase.LOADING
        self._advance_handle: CancelHandle | None = None
        self.countdown = Countdown(scheduler, self.expire_timer)

    # ----- derived state -----

    @property
    def phase(self) -> SessionPhase:
        if self._status is not SessionPhase.READY:
            return self._status
        if self._advance_handle is not None:
            return SessionPhase.ADVANCING
        if self.is_answered:
            return SessionPhase.ANSWERING
        return SessionPhase.READY

    @property
    def is_interactive(self) -> bool:
        return self._status is SessionPhase.READY

    @property
    def is_answered(self) -> bool:
        return self.current_index in self.answers

    @property
    def show_results(self) -> bool:
        return self._status is SessionPhase.FINISHED

    @property
    def total_questions(self) -> int:
        return len(self.question_set) if self.question_set is not None else 0

    @property
    def current_question(self) -> Question | None:
        if self.question_set is None or not self.question_set.questions:
            return None
        return self.question_set.questions[self.current_index]

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    # ----- loading -----

    async def load(self) -> None:
        """Fetch the question set; failures leave the session in ERROR."""
        if not self.source.ready:
            self._status = SessionPhase.CHOOSING_COUNT
            return

        self.generation += 1
        generation = self.generation
        self._status = SessionPhase.LOADING
        self.error = None

        try:
            question_set = await self.source.fetch(self.locale)
        except ExamPrepError as e:
            if not self.is_current(generation):
                return
            logger.error(f"Failed to load quiz for lesson {self.source.lesson_id}: {e}")
            self._status = SessionPhase.ERROR
            self.error = str(e)
            return

        if not self.is_current(generation):
            logger.debug(f"Discarding stale quiz load for session {self.session_id}")
            return
        self._install(question_set)

    async def start(self, question_count: object) -> None:
        """Choose the question count of a randomized quiz and load it."""
        if not self.source.randomized:
            raise ValueError("Question count can only be chosen for random quizzes")
        self.source.configure(question_count)
        await self.load()

    def _install(self, question_set: LessonQuestionSet) -> None:
        self.question_set = question_set
        self._clear_progress()
        self._status = SessionPhase.READY
        self._restart_countdown()
        logger.info(
            f"Session {self.session_id} ready with {len(question_set)} questions "
            f"for lesson {question_set.lesson_id}"
        )

    def _clear_progress(self) -> None:
        self._cancel_advance()
        self.current_index = 0
        self.answers = {}
        self.answered = {}
        self.score = 0
        self.marked = frozenset()
        self.results = None

    def _restart_countdown(self) -> None:
        self.countdown.reset(total_time_seconds(self.total_questions))
        if self.total_questions:
            self.countdown.start()

    def _sync_countdown(self) -> None:
        """Pause the countdown while the current question is answered."""
        if not self.is_interactive:
            return
        if self.is_answered and self.source.pause_when_answered:
            self.countdown.pause()
        elif self.countdown.paused or not self.countdown.running:
            self.countdown.resume()

    # ----- answering and navigation -----

    def select_answer(self, option_index: int) -> bool:
        """
        Record an answer for the current question.

        Returns:
            True if the answer was recorded, False if ignored
        """
        question = self.current_question
        if not self.is_interactive or question is None or self.is_answered:
            return False
        if not 0 <= option_index < question.option_count:
            raise IndexError(f"Option index {option_index} out of range")

        index = self.current_index
        is_correct = question.is_correct(option_index)

        answers = dict(self.answers)
        answers[index] = UserAnswer(selected_option=option_index, is_correct=is_correct)
        answered = dict(self.answered)
        answered[index] = is_correct
        self.answers = answers
        self.answered = answered
        if is_correct:
            self.score += 1

        self._arm_advance()
        self._sync_countdown()
        return True

    def _arm_advance(self) -> None:
        self._cancel_advance()
        self._advance_handle = self._scheduler.schedule(self.auto_advance_ms, self._on_advance)

    def _cancel_advance(self) -> None:
        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None

    def _on_advance(self) -> None:
        self._advance_handle = None
        if not self.is_interactive:
            return
        if self.current_index < self.total_questions - 1:
            self.current_index += 1
            self._sync_countdown()
        else:
            self.finalize()

    def jump_to_question(self, index: int) -> None:
        """Move the pointer; cancels a pending auto-advance."""
        if not 0 <= index < self.total_questions:
            raise IndexError(f"Question index {index} out of range")
        if not self.is_interactive:
            return
        self._cancel_advance()
        self.current_index = index
        self._sync_countdown()

    def next_question(self) -> bool:
        if self.current_index >= self.total_questions - 1:
            return False
        self.jump_to_question(self.current_index + 1)
        return True

    def previous_question(self) -> bool:
        if self.current_index <= 0:
            return False
        self.jump_to_question(self.current_index - 1)
        return True

    def toggle_mark(self, index: int) -> bool:
        """Flag a question for review. Returns the new flag value."""
        if not 0 <= index < self.total_questions:
            raise IndexError(f"Question index {index} out of range")
        if index in self.marked:
            self.marked = self.marked - {index}
            return False
        self.marked = self.marked | {index}
        return True

    # ----- finishing -----

    def expire_timer(self) -> None:
        """Time is up: finish immediately."""
        if self.question_set is None or self._status is SessionPhase.FINISHED:
            return
        logger.info(f"Session {self.session_id} timed out")
        self.finalize()

    def finalize(self) -> QuizResults | None:
        """
        Compute results and fire the result submission.

        The submission latch is checked and moved off IDLE before the
        submission task is created, so it fires at most once per attempt.
        """
        if self.question_set is None:
            return None

        if self._status is not SessionPhase.FINISHED:
            self._cancel_advance()
            self.countdown.stop()
            # Drop any refetch still in flight
            self.generation += 1
            self.results = compute_results(self.score, self.total_questions)
            self._status = SessionPhase.FINISHED
            logger.info(
                f"Session {self.session_id} finished: {self.results.correct_answers}/"
                f"{self.results.total_questions} ({self.results.percentage}%)"
            )
            if self.on_finish is not None:
                self.on_finish(self)

        if self.submission_state is SubmissionState.IDLE:
            self.submission_state = SubmissionState.SUBMITTING
            self.submission_task = asyncio.ensure_future(
                self._submit(self.question_set, self.results, self.generation)
            )
        return self.results

    async def _submit(self, question_set: LessonQuestionSet, results: QuizResults, generation: int) -> None:
        try:
            await self.source.submit(question_set, results)
        except Exception as e:
            logger.error(f"Result submission failed for session {self.session_id}: {e}")
        finally:
            if self.is_current(generation):
                self.submission_state = SubmissionState.SUBMITTED

    def retry(self) -> None:
        """Start the same quiz over with a blank answer record."""
        self.generation += 1
        self._clear_progress()
        self.countdown.stop()
        self.submission_state = SubmissionState.IDLE
        self.submission_task = None
        self.error = None

        if self.source.randomized:
            self.source.clear()
            self.question_set = None
            self._status = SessionPhase.CHOOSING_COUNT
            self.countdown.reset(0)
            return

        if self.question_set is None:
            self._status = SessionPhase.LOADING
            return
        self._status = SessionPhase.READY
        self._restart_countdown()

    # ----- progress -----

    def progress(self) -> QuizProgress:
        total = self.total_questions
        answered_count = len(self.answers)
        percentage = round(answered_count / total * 100, 1) if total else 0.0
        if answered_count == 0:
            status = "not-started"
        elif answered_count >= total:
            status = "completed"
        else:
            status = "in-progress"
        return QuizProgress(
            total_questions=total,
            answered_questions=answered_count,
            unanswered_questions=total - answered_count,
            marked_questions=len(self.marked),
            progress_percentage=percentage,
            completion_status=status,
        )

    # ----- refetch support -----

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            answers=dict(self.answers),
            answered=dict(self.answered),
            current_index=self.current_index,
            score=self.score,
            marked=self.marked,
            question_ids=self.question_set.question_ids if self.question_set else [],
            was_advancing=self._advance_handle is not None,
        )

    def begin_refetch(self) -> tuple[SessionSnapshot, int]:
        """Capture progress, stop auto-advance and enter LOADING."""
        snapshot = self.snapshot()
        self._cancel_advance()
        self.generation += 1
        self._status = SessionPhase.LOADING
        return snapshot, self.generation

    def supersede_refetch(self) -> int:
        """Invalidate the refetch in flight; the caller keeps its snapshot."""
        self.generation += 1
        return self.generation

    def replay(self, question_set: LessonQuestionSet, snapshot: SessionSnapshot) -> None:
        """
        Install a refetched question set and restore progress onto it.

        Progress is replayed by position when the question ids line up; if
        the same questions come back in another order it is re-keyed by
        question id.

        Raises:
            QuestionSetMismatchError: If the refetched set holds other questions
        """
        index_map = _index_map(snapshot.question_ids, question_set.question_ids)

        self.question_set = question_set
        self.answers = {index_map[old]: answer for old, answer in snapshot.answers.items()}
        self.answered = {index_map[old]: outcome for old, outcome in snapshot.answered.items()}
        self.score = snapshot.score
        self.marked = frozenset(index_map[old] for old in snapshot.marked)
        self.current_index = index_map.get(snapshot.current_index, 0)
        self.results = None
        self._status = SessionPhase.READY

        if snapshot.was_advancing:
            self._arm_advance()
        self._sync_countdown()

    def reset_blank(self, question_set: LessonQuestionSet | None = None) -> None:
        """Back to READY with no answers, optionally on a new question set."""
        if question_set is not None:
            self.question_set = question_set
        if self.question_set is None:
            self._status = SessionPhase.ERROR
            self.error = "No questions available"
            return
        self._clear_progress()
        self._status = SessionPhase.READY
        self._restart_countdown()

    # ----- images and teardown -----

    async def load_image(self, index: int | None = None) -> str:
        """Local handle of a question's image, or empty when unavailable."""
        if self.question_set is None or self._image_scope is None:
            return NO_IMAGE
        position = self.current_index if index is None else index
        if not 0 <= position < self.total_questions:
            raise IndexError(f"Question index {position} out of range")
        photo = self.question_set.questions[position].photo
        if not photo:
            return NO_IMAGE
        return await self._image_scope.load(photo)

    async def close(self) -> None:
        """Cancel timers and release the images this session loaded."""
        self.generation += 1
        self._cancel_advance()
        self.countdown.stop()
        if self._image_scope is not None:
            await self._image_scope.release()


def _index_map(old_ids: list[int], new_ids: list[int]) -> dict[int, int]:
    if old_ids == new_ids:
        return {index: index for index in range(len(new_ids))}
    if len(old_ids) != len(new_ids) or sorted(old_ids) != sorted(new_ids):
        raise QuestionSetMismatchError(
            f"Refetched questions differ: {len(old_ids)} before, {len(new_ids)} after"
        )
    if len(set(new_ids)) != len(new_ids):
        raise QuestionSetMismatchError("Refetched questions contain duplicate ids")
    new_positions = {question_id: index for index, question_id in enumerate(new_ids)}
    return {index: new_positions[question_id] for index, question_id in enumerate(old_ids)}
