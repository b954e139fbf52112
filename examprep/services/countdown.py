"""Quiz countdown timer."""
import logging
import math
from typing import Callable

from examprep.config import MINUTES_PER_QUESTION
from examprep.services.scheduler import CancelHandle, Scheduler

logger = logging.getLogger(__name__)

TICK_MS = 1000


def total_time_seconds(question_count: int) -> int:
    """Time budget for a quiz: 1.2 minutes per question, rounded up to a second."""
    if question_count <= 0:
        return 0
    return math.ceil(question_count * MINUTES_PER_QUESTION * 60)


def format_time(seconds: int) -> str:
    """Format seconds as MM:SS, or HH:MM:SS past an hour."""
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class Countdown:
    """
    One-second ticking countdown driven by a scheduler.

    ``on_expire`` is called once when the remaining time reaches zero.
    """

    def __init__(self, scheduler: Scheduler, on_expire: Callable[[], None]):
        self._scheduler = scheduler
        self._on_expire = on_expire
        self._handle: CancelHandle | None = None
        self.total_seconds = 0
        self.remaining_seconds = 0
        self.paused = False

    @property
    def running(self) -> bool:
        return self._handle is not None

    @property
    def expired(self) -> bool:
        return self.total_seconds > 0 and self.remaining_seconds <= 0

    def reset(self, total_seconds: int) -> None:
        self.stop()
        self.total_seconds = total_seconds
        self.remaining_seconds = total_seconds
        self.paused = False

    def start(self) -> None:
        if self._handle is not None or self.remaining_seconds <= 0:
            return
        self._handle = self._scheduler.schedule(TICK_MS, self._tick)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def pause(self) -> None:
        self.paused = True
        self.stop()

    def resume(self) -> None:
        self.paused = False
        self.start()

    def _tick(self) -> None:
        self._handle = None
        self.remaining_seconds -= 1
        if self.remaining_seconds <= 0:
            self.remaining_seconds = 0
            logger.info("Quiz time is up")
            self._on_expire()
            return
        self._handle = self._scheduler.schedule(TICK_MS, self._tick)

    def formatted(self) -> str:
        return format_time(self.remaining_seconds)
