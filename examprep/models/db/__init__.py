"""Database models."""
from examprep.models.db.storage import StorageItem

__all__ = ["StorageItem"]
