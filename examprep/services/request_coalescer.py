"""Collapse concurrent identical fetches into one in-flight task."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestCoalescer:
    """
    Share one pending task per key.

    Every caller asking for a key that is already in flight waits on the
    same task; the producer runs once. Each caller gets a shielded view of
    the task, so cancelling one caller leaves the others waiting. The slot
    is cleared as part of the task settling, so failures are never cached
    and the next call after settlement starts a fresh attempt.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}

    def fetch(self, key: str, producer: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        task = self._pending.get(key)
        if task is not None:
            logger.debug(f"Joining in-flight request {key}")
        else:
            task = asyncio.ensure_future(self._run(key, producer))
            self._pending[key] = task
        return asyncio.shield(task)

    async def _run(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        try:
            return await producer()
        finally:
            self._pending.pop(key, None)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)
