"""FastAPI dependencies."""
from examprep.dependencies.services import (
    ServiceContainer,
    build_services,
    get_managed_session,
    get_services,
)

__all__ = ["ServiceContainer", "build_services", "get_managed_session", "get_services"]
