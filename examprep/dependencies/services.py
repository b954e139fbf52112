"""Process-wide services and their FastAPI dependencies."""
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.engine import Engine

from examprep.config import (
    ACCESS_TOKEN,
    API_BASE_URL,
    AUTO_ADVANCE_DELAY_MS,
    CACHE_TTL_SECONDS,
    IMAGE_CACHE_DIR,
    IMAGE_PROBE_TIMEOUT_SECONDS,
    STORAGE_QUOTA_BYTES,
    STORAGE_URL,
)
from examprep.database import create_session_factory, create_storage_engine, init_db
from examprep.services.api_client import ApiClient, TokenProvider
from examprep.services.entity_cache import LessonCache
from examprep.services.image_cache import ImageCache
from examprep.services.lesson_service import LessonService
from examprep.services.request_coalescer import RequestCoalescer
from examprep.services.scheduler import AsyncioScheduler, Scheduler
from examprep.services.session_registry import ManagedSession, SessionRegistry
from examprep.services.storage import KeyValueStorage


@dataclass
class ServiceContainer:
    """Everything shared by the sessions of one process."""

    engine: Engine
    storage: KeyValueStorage
    lesson_cache: LessonCache
    coalescer: RequestCoalescer
    client: ApiClient
    lesson_service: LessonService
    image_cache: ImageCache
    sessions: SessionRegistry

    async def aclose(self) -> None:
        await self.sessions.close_all()
        self.image_cache.clear()
        await self.client.aclose()
        self.engine.dispose()


def build_services(
    *,
    base_url: str = API_BASE_URL,
    token_provider: TokenProvider | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    storage_url: str = STORAGE_URL,
    quota_bytes: int | None = STORAGE_QUOTA_BYTES,
    ttl_seconds: int = CACHE_TTL_SECONDS,
    image_dir: Path = IMAGE_CACHE_DIR,
    probe_timeout: float = IMAGE_PROBE_TIMEOUT_SECONDS,
    scheduler: Scheduler | None = None,
    auto_advance_ms: int = AUTO_ADVANCE_DELAY_MS,
) -> ServiceContainer:
    """Wire up storage, caches, the remote client and the session registry."""
    engine = create_storage_engine(storage_url)
    init_db(engine)
    storage = KeyValueStorage(create_session_factory(engine), quota_bytes=quota_bytes)
    lesson_cache = LessonCache(storage, ttl_seconds=ttl_seconds)
    coalescer = RequestCoalescer()
    client = ApiClient(
        base_url,
        token_provider=token_provider or (lambda: ACCESS_TOKEN),
        transport=transport,
    )
    lesson_service = LessonService(client, lesson_cache, coalescer)
    image_cache = ImageCache(client, coalescer, cache_dir=image_dir, probe_timeout=probe_timeout)
    sessions = SessionRegistry(
        lesson_service,
        image_cache,
        scheduler or AsyncioScheduler(),
        auto_advance_ms=auto_advance_ms,
    )
    return ServiceContainer(
        engine=engine,
        storage=storage,
        lesson_cache=lesson_cache,
        coalescer=coalescer,
        client=client,
        lesson_service=lesson_service,
        image_cache=image_cache,
        sessions=sessions,
    )


def get_services(request: Request) -> ServiceContainer:
    """Dependency to get the process services."""
    return request.app.state.services


def get_managed_session(
    session_id: str,
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> ManagedSession:
    """Get an open session.

    Raises:
        HTTPException: 404 if no session has that id.
    """
    managed = services.sessions.get(session_id)
    if managed is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return managed
