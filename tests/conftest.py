"""Shared fixtures: manual scheduler, clock, storage and question data."""
import asyncio
import io
from typing import Callable

import pytest
from PIL import Image

from examprep.database import create_session_factory, create_storage_engine, init_db
from examprep.errors import TransientNetworkError
from examprep.models.quiz import LessonQuestionSet, Question, QuizResults
from examprep.services.quiz_sources import QuizSource
from examprep.services.storage import KeyValueStorage
from examprep.utils import validate_question_count


class FakeHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Timers that only fire when the test advances time."""

    def __init__(self) -> None:
        self.now_ms = 0
        self._timers: list[tuple[int, int, Callable[[], None], FakeHandle]] = []
        self._seq = 0

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle()
        self._seq += 1
        self._timers.append((self.now_ms + delay_ms, self._seq, callback, handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, _, handle in self._timers if not handle.cancelled)

    def advance(self, ms: int) -> None:
        target = self.now_ms + ms
        while True:
            due = sorted(
                (timer for timer in self._timers if timer[0] <= target and not timer[3].cancelled),
                key=lambda timer: (timer[0], timer[1]),
            )
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            self.now_ms = timer[0]
            timer[2]()
        self.now_ms = target
        self._timers = [timer for timer in self._timers if not timer[3].cancelled]


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def build_question_set(
    lesson_id: int = 7,
    count: int = 3,
    locale: str = "uz",
    *,
    ids: list[int] | None = None,
    correct: int = 0,
    photo: str | None = None,
) -> LessonQuestionSet:
    question_ids = ids or [100 + index for index in range(count)]
    questions = tuple(
        Question(
            question_id=question_id,
            text={"uz": f"Savol {question_id}", "oz": f"Савол {question_id}", "ru": f"Вопрос {question_id}"},
            options={
                "uz": ["A", "B", "C"],
                "oz": ["А", "Б", "В"],
                "ru": ["А", "Б", "В"],
            },
            photo=photo,
            correct_flags=[index == correct for index in range(3)],
        )
        for question_id in question_ids
    )
    return LessonQuestionSet(lesson_id=lesson_id, title=f"Lesson {lesson_id}", locale=locale, questions=questions)


class StubSource(QuizSource):
    """Source serving prepared question sets and recording submissions."""

    def __init__(self, question_sets=None, *, lesson_id: int = 7, randomized: bool = False) -> None:
        super().__init__(service=None)
        self._lesson_id = lesson_id
        self.randomized = randomized
        self.question_count: int | None = None
        self.responses: list[object] = list(question_sets or [])
        self.fetches: list[tuple[str, bool]] = []
        self.submissions: list[QuizResults] = []
        self.invalidations = 0
        self.gate: asyncio.Event | None = None
        self.submit_error: Exception | None = None

    @property
    def lesson_id(self) -> int:
        return self._lesson_id

    @property
    def ready(self) -> bool:
        return not self.randomized or self.question_count is not None

    def configure(self, question_count: object) -> int:
        self.question_count = validate_question_count(question_count)
        return self.question_count

    def clear(self) -> None:
        self.question_count = None

    def invalidate(self) -> None:
        self.invalidations += 1

    async def fetch(self, locale: str, *, force_refresh: bool = False) -> LessonQuestionSet:
        self.fetches.append((locale, force_refresh))
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(locale)
        return response

    async def submit(self, question_set: LessonQuestionSet, results: QuizResults) -> bool:
        self.submissions.append(results)
        if self.submit_error is not None:
            raise self.submit_error
        return True


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> KeyValueStorage:
    engine = create_storage_engine("sqlite://")
    init_db(engine)
    yield KeyValueStorage(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def question_set_factory() -> Callable[..., LessonQuestionSet]:
    return build_question_set


@pytest.fixture
def stub_source_factory() -> Callable[..., StubSource]:
    return StubSource


@pytest.fixture
def network_error() -> TransientNetworkError:
    return TransientNetworkError("HTTP error! status: 503", status_code=503)
