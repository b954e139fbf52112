"""API route modules."""
from examprep.routes import lessons, sessions

__all__ = ["lessons", "sessions"]
