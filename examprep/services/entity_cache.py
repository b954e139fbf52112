"""TTL cache of fetched lesson question sets."""
import logging
from typing import Callable

from examprep.config import CACHE_TTL_SECONDS, LESSON_CACHE_PREFIX
from examprep.errors import StorageQuotaExceededError
from examprep.models.quiz import LessonQuestionSet
from examprep.services.storage import KeyValueStorage
from examprep.utils import epoch_ms, json_dump, json_load

logger = logging.getLogger(__name__)


def cache_key(lesson_id: int | str) -> str:
    return f"{LESSON_CACHE_PREFIX}{lesson_id}"


class LessonCache:
    """
    Lesson question sets stored as ``{data, timestamp}`` under
    ``lesson_data_{lesson_id}``.

    Entries expire a fixed TTL after they were fetched. Expired entries are
    removed lazily when a ``get`` misses on them; there is no background sweep.
    Caching is an optimization only: write failures never propagate.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        clock: Callable[[], int] = epoch_ms,
    ):
        self._storage = storage
        self.ttl_ms = ttl_seconds * 1000
        self._clock = clock

    def _is_expired(self, timestamp: int, now: int) -> bool:
        return now - timestamp > self.ttl_ms

    def _read_entry(self, key: str) -> dict[str, object] | None:
        raw = self._storage.get_item(key)
        if raw is None:
            return None
        try:
            entry = json_load(raw)
        except ValueError:
            entry = None
        if not isinstance(entry, dict) or not isinstance(entry.get("timestamp"), int):
            logger.warning(f"Dropping unreadable cache entry {key}")
            self._storage.remove_item(key)
            return None
        return entry

    def get(self, lesson_id: int | str) -> LessonQuestionSet | None:
        key = cache_key(lesson_id)
        entry = self._read_entry(key)
        if entry is None:
            return None

        if self._is_expired(entry["timestamp"], self._clock()):
            logger.debug(f"Cache entry {key} expired")
            self._storage.remove_item(key)
            return None

        try:
            return LessonQuestionSet.from_dict(entry["data"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Dropping undecodable cache entry {key}")
            self._storage.remove_item(key)
            return None

    def put(self, lesson_id: int | str, data: LessonQuestionSet) -> None:
        key = cache_key(lesson_id)
        value = json_dump({"data": data.to_dict(), "timestamp": self._clock()})
        try:
            self._storage.set_item(key, value)
            return
        except StorageQuotaExceededError:
            removed = self.cleanup_expired()
            logger.info(f"Storage quota hit writing {key}, removed {removed} expired entries")

        try:
            self._storage.set_item(key, value)
        except StorageQuotaExceededError:
            logger.warning(f"Skipping cache write for {key}: storage quota exceeded")

    def invalidate(self, lesson_id: int | str) -> None:
        self._storage.remove_item(cache_key(lesson_id))

    def cleanup_expired(self) -> int:
        """Delete every expired lesson entry. Returns number removed."""
        now = self._clock()
        removed = 0
        for key in self._storage.keys(LESSON_CACHE_PREFIX):
            entry = self._read_entry(key)
            if entry is None:
                removed += 1
                continue
            if self._is_expired(entry["timestamp"], now):
                self._storage.remove_item(key)
                removed += 1
        return removed

    def clear(self) -> None:
        for key in self._storage.keys(LESSON_CACHE_PREFIX):
            self._storage.remove_item(key)
