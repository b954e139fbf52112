"""Tab-scoped key/value storage on top of SQLAlchemy."""
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from examprep.errors import StorageQuotaExceededError
from examprep.models.db.storage import StorageItem


class KeyValueStorage:
    """
    String key/value store with a total size quota.

    Mirrors the browser storage contract: ``set_item`` raises
    ``StorageQuotaExceededError`` when the write would push the total stored
    size over ``quota_bytes``.
    """

    def __init__(self, session_factory: sessionmaker, quota_bytes: int | None = None):
        self._session_factory = session_factory
        self.quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        with self._session_factory() as db:
            item = db.get(StorageItem, key)
            return item.value if item else None

    def set_item(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        with self._session_factory() as db:
            existing = db.get(StorageItem, key)
            if self.quota_bytes is not None:
                used = db.execute(select(func.coalesce(func.sum(StorageItem.size_bytes), 0))).scalar() or 0
                if existing:
                    used -= existing.size_bytes
                if used + size > self.quota_bytes:
                    raise StorageQuotaExceededError(
                        f"Writing {key} ({size} bytes) exceeds quota of {self.quota_bytes} bytes"
                    )

            if existing:
                existing.value = value
                existing.size_bytes = size
            else:
                db.add(StorageItem(key=key, value=value, size_bytes=size))
            db.commit()

    def remove_item(self, key: str) -> bool:
        with self._session_factory() as db:
            item = db.get(StorageItem, key)
            if not item:
                return False
            db.delete(item)
            db.commit()
            return True

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys, optionally filtered by prefix."""
        query = select(StorageItem.key).order_by(StorageItem.key)
        if prefix:
            query = query.where(StorageItem.key.startswith(prefix, autoescape=True))
        with self._session_factory() as db:
            return list(db.execute(query).scalars().all())

    def used_bytes(self) -> int:
        with self._session_factory() as db:
            return db.execute(select(func.coalesce(func.sum(StorageItem.size_bytes), 0))).scalar() or 0
