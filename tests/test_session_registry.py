import asyncio

import pytest

from examprep.services.quiz_session import SessionPhase
from examprep.services.session_registry import SessionRegistry


def make_registry(scheduler) -> SessionRegistry:
    return SessionRegistry(None, None, scheduler, auto_advance_ms=1500, finished_ttl_ms=60_000)


@pytest.mark.asyncio
async def test_finished_session_is_evicted_after_ttl(scheduler, stub_source_factory, question_set_factory) -> None:
    registry = make_registry(scheduler)
    managed = registry.create(stub_source_factory([question_set_factory(count=1)]))
    await managed.session.load()

    managed.session.expire_timer()
    await managed.session.submission_task
    scheduler.advance(59_000)
    assert registry.get(managed.session_id) is managed

    scheduler.advance(1_000)
    await asyncio.sleep(0)
    assert registry.get(managed.session_id) is None
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_retried_session_is_kept(scheduler, stub_source_factory, question_set_factory) -> None:
    registry = make_registry(scheduler)
    managed = registry.create(stub_source_factory([question_set_factory(count=2)]))
    await managed.session.load()

    managed.session.expire_timer()
    await managed.session.submission_task
    managed.session.retry()
    scheduler.advance(60_000)

    assert registry.get(managed.session_id) is managed
    assert managed.session.phase is SessionPhase.READY


@pytest.mark.asyncio
async def test_explicit_close_cancels_eviction(scheduler, stub_source_factory, question_set_factory) -> None:
    registry = make_registry(scheduler)
    managed = registry.create(stub_source_factory([question_set_factory(count=1)]))
    await managed.session.load()
    managed.session.expire_timer()
    await managed.session.submission_task

    assert await registry.close(managed.session_id) is True
    assert scheduler.pending == 0
    assert await registry.close(managed.session_id) is False
