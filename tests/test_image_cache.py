import asyncio
from pathlib import Path

import httpx
import pytest

from examprep.services.api_client import ApiClient
from examprep.services.image_cache import NO_IMAGE, ImageCache, handle_path, is_revocable
from examprep.services.request_coalescer import RequestCoalescer


def make_cache(tmp_path: Path, handler) -> ImageCache:
    client = ApiClient(
        "https://api.example.test",
        token_provider=lambda: "token",
        transport=httpx.MockTransport(handler),
    )
    return ImageCache(client, RequestCoalescer(), cache_dir=tmp_path / "images", probe_timeout=2.0)


@pytest.mark.asyncio
async def test_load_writes_local_file_and_reuses_it(tmp_path: Path, png_bytes: bytes) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=png_bytes)

    cache = make_cache(tmp_path, handler)
    handle = await cache.load("photos/1.png")

    assert is_revocable(handle)
    path = handle_path(handle)
    assert path is not None and path.read_bytes() == png_bytes
    assert requests[0].url.params["key"] == "photos/1.png"
    assert requests[0].headers["Authorization"] == "Bearer token"

    assert await cache.load("photos/1.png") == handle
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_broken_cached_file_is_refetched(tmp_path: Path, png_bytes: bytes) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, content=png_bytes)

    cache = make_cache(tmp_path, handler)
    first = await cache.load("photos/1.png")
    handle_path(first).write_bytes(b"garbage")

    second = await cache.load("photos/1.png")

    assert calls == 2
    assert second != first
    assert handle_path(second).read_bytes() == png_bytes


@pytest.mark.asyncio
async def test_deleted_cached_file_is_refetched(tmp_path: Path, png_bytes: bytes) -> None:
    cache = make_cache(tmp_path, lambda request: httpx.Response(200, content=png_bytes))
    first = await cache.load("photos/1.png")
    handle_path(first).unlink()

    second = await cache.load("photos/1.png")
    assert handle_path(second).exists()


@pytest.mark.asyncio
async def test_failures_return_empty_handle(tmp_path: Path) -> None:
    cache = make_cache(tmp_path, lambda request: httpx.Response(500, text="boom"))
    assert await cache.load("photos/1.png") == NO_IMAGE
    assert cache.cached_handle("photos/1.png") is None


@pytest.mark.asyncio
async def test_failed_image_does_not_block_later_loads(tmp_path: Path, png_bytes: bytes) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["key"] == "photos/broken.png":
            return httpx.Response(500, text="boom")
        return httpx.Response(200, content=png_bytes)

    cache = make_cache(tmp_path, handler)

    assert await cache.load("photos/broken.png") == NO_IMAGE
    first = await cache.load("photos/2.png")
    second = await cache.load("photos/3.png")

    assert is_revocable(first) and is_revocable(second)
    assert handle_path(first).read_bytes() == png_bytes
    assert handle_path(second).read_bytes() == png_bytes


@pytest.mark.asyncio
async def test_undecodable_body_returns_empty_handle(tmp_path: Path) -> None:
    cache = make_cache(tmp_path, lambda request: httpx.Response(200, content=b"not an image"))

    assert await cache.load("photos/1.png") == NO_IMAGE
    assert list((tmp_path / "images").iterdir()) == []


@pytest.mark.asyncio
async def test_empty_key_and_remote_urls_skip_the_network(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    cache = make_cache(tmp_path, handler)
    assert await cache.load("") == NO_IMAGE
    url = "https://cdn.example.test/sign.png"
    assert await cache.load(url) == url
    assert not is_revocable(url)


@pytest.mark.asyncio
async def test_not_modified_without_local_copy_triggers_plain_refetch(tmp_path: Path, png_bytes: bytes) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.headers.get("If-None-Match") == '"v1"':
            return httpx.Response(304)
        return httpx.Response(200, content=png_bytes, headers={"ETag": '"v1"'})

    cache = make_cache(tmp_path, handler)
    first = await cache.load("photos/1.png")
    handle_path(first).write_bytes(b"garbage")

    second = await cache.load("photos/1.png")

    assert len(requests) == 3
    assert requests[1].headers["If-None-Match"] == '"v1"'
    assert "If-None-Match" not in requests[2].headers
    assert handle_path(second).read_bytes() == png_bytes


@pytest.mark.asyncio
async def test_concurrent_loads_share_one_request(tmp_path: Path, png_bytes: bytes) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, content=png_bytes)

    cache = make_cache(tmp_path, handler)
    first, second = await asyncio.gather(cache.load("photos/1.png"), cache.load("photos/1.png"))

    assert first == second
    assert calls == 1


@pytest.mark.asyncio
async def test_scope_release_waits_for_pending_loads(tmp_path: Path, png_bytes: bytes) -> None:
    gate = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await gate.wait()
        return httpx.Response(200, content=png_bytes)

    cache = make_cache(tmp_path, handler)
    scope = cache.scope()

    load_task = asyncio.create_task(scope.load("photos/1.png"))
    await asyncio.sleep(0.01)
    release_task = asyncio.create_task(scope.release())
    await asyncio.sleep(0.01)
    assert not release_task.done()

    gate.set()
    await release_task
    handle = await load_task

    assert is_revocable(handle)
    assert not handle_path(handle).exists()
    assert cache.cached_handle("photos/1.png") is None
    assert await scope.load("photos/2.png") == NO_IMAGE


@pytest.mark.asyncio
async def test_clear_revokes_every_local_handle(tmp_path: Path, png_bytes: bytes) -> None:
    cache = make_cache(tmp_path, lambda request: httpx.Response(200, content=png_bytes))
    handles = [await cache.load(f"photos/{index}.png") for index in range(3)]

    cache.clear()

    assert all(not handle_path(handle).exists() for handle in handles)
    assert cache.cached_handle("photos/0.png") is None
