"""Cache of authenticated question images as local file handles."""
import asyncio
import logging
import uuid
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

from PIL import Image

from examprep.config import IMAGE_CACHE_DIR, IMAGE_PROBE_TIMEOUT_SECONDS
from examprep.errors import ExamPrepError
from examprep.services.api_client import ApiClient
from examprep.services.request_coalescer import RequestCoalescer

logger = logging.getLogger(__name__)

NO_IMAGE = ""

_REMOTE_SCHEMES = ("http://", "https://")
_LOCAL_SCHEME = "file://"


def is_revocable(handle: str) -> bool:
    """Local handles point at files this cache wrote and may delete."""
    return handle.startswith(_LOCAL_SCHEME)


def handle_path(handle: str) -> Path | None:
    """Filesystem path behind a local handle."""
    if not is_revocable(handle):
        return None
    return Path(url2pathname(urlparse(handle).path))


def _decode(path: Path) -> bool:
    try:
        with Image.open(path) as img:
            img.verify()
        return True
    except Exception as e:
        logger.debug(f"Image probe failed for {path}: {e}")
        return False


class ImageCache:
    """
    Process-wide map of image key to local handle.

    A cached local handle is not trusted: it is probed (decoded with a
    bounded timeout) before reuse, and refetched if the probe fails. Loads
    never raise; any failure yields ``NO_IMAGE``.
    """

    def __init__(
        self,
        client: ApiClient,
        coalescer: RequestCoalescer,
        cache_dir: Path = IMAGE_CACHE_DIR,
        probe_timeout: float = IMAGE_PROBE_TIMEOUT_SECONDS,
    ):
        self._client = client
        self._coalescer = coalescer
        self.cache_dir = Path(cache_dir)
        self.probe_timeout = probe_timeout
        self._handles: dict[str, str] = {}
        self._etags: dict[str, str] = {}

    def cached_handle(self, source_key: str) -> str | None:
        return self._handles.get(source_key)

    def _store(self, source_key: str, handle: str) -> None:
        updated = dict(self._handles)
        updated[source_key] = handle
        self._handles = updated

    def _discard(self, source_key: str, handle: str) -> None:
        if self._handles.get(source_key) != handle:
            return
        updated = dict(self._handles)
        del updated[source_key]
        self._handles = updated

    async def probe(self, handle: str) -> bool:
        """Check that a local handle still decodes as an image."""
        path = handle_path(handle)
        if path is None:
            return True
        try:
            return await asyncio.wait_for(asyncio.to_thread(_decode, path), self.probe_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Image probe timed out for {path}")
            return False

    async def load(self, source_key: str) -> str:
        """
        Get a handle for an image key.

        Args:
            source_key: Storage key of the image (or an absolute URL)

        Returns:
            Handle string, or ``NO_IMAGE`` if the image is unavailable
        """
        if not source_key:
            return NO_IMAGE

        if source_key.startswith(_REMOTE_SCHEMES):
            self._store(source_key, source_key)
            return source_key

        cached = self._handles.get(source_key)
        if cached:
            if not is_revocable(cached):
                return cached
            if await self.probe(cached):
                return cached
            logger.info(f"Cached image for {source_key} is no longer valid, reloading")
            self._discard(source_key, cached)

        return await self._coalescer.fetch(f"image:{source_key}", lambda: self._fetch(source_key))

    async def _fetch(self, source_key: str) -> str:
        try:
            extra: dict[str, str] = {}
            etag = self._etags.get(source_key)
            if etag:
                extra["If-None-Match"] = etag

            response = await self._client.request(
                "GET",
                "/api/v1/storage/file",
                params={"key": source_key},
                headers=extra,
                allow_statuses=(304,),
            )
            if response.status_code == 304:
                cached = self._handles.get(source_key)
                if cached:
                    return cached
                # Nothing local to reuse; fetch the body without the validator
                response = await self._client.request(
                    "GET", "/api/v1/storage/file", params={"key": source_key}
                )

            handle = self._write(source_key, response.content)
            if not await self.probe(handle):
                self.revoke(handle)
                logger.warning(f"Image {source_key} could not be decoded")
                return NO_IMAGE

            new_etag = response.headers.get("ETag")
            if new_etag:
                self._etags[source_key] = new_etag
            self._store(source_key, handle)
            return handle
        except (ExamPrepError, OSError) as e:
            logger.error(f"Error loading image {source_key}: {e}")
            return NO_IMAGE

    def _write(self, source_key: str, content: bytes) -> str:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        suffix = Path(source_key).suffix.lower()[:8]
        path = self.cache_dir / f"{uuid.uuid4().hex}{suffix}"
        path.write_bytes(content)
        return path.resolve().as_uri()

    def revoke(self, handle: str) -> None:
        """Delete a local handle's file and drop every key pointing at it."""
        path = handle_path(handle)
        if path is None:
            return
        stale_keys = [key for key, value in self._handles.items() if value == handle]
        if stale_keys:
            self._handles = {
                key: value for key, value in self._handles.items() if value != handle
            }
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error deleting image file {path}: {e}")

    def clear(self) -> None:
        """Revoke all local handles."""
        for handle in set(self._handles.values()):
            self.revoke(handle)
        self._handles = {}
        self._etags.clear()

    def scope(self) -> "ImageScope":
        return ImageScope(self)


class ImageScope:
    """
    Handles loaded on behalf of one screen.

    ``release`` waits for the scope's pending loads to settle and only then
    revokes the local handles it obtained.
    """

    def __init__(self, cache: ImageCache):
        self._cache = cache
        self._pending: set[asyncio.Task[str]] = set()
        self._handles: set[str] = set()
        self.released = False

    @property
    def handles(self) -> frozenset[str]:
        return frozenset(self._handles)

    async def load(self, source_key: str) -> str:
        if self.released:
            return NO_IMAGE
        task = asyncio.ensure_future(self._cache.load(source_key))
        self._pending.add(task)
        try:
            handle = await task
        finally:
            self._pending.discard(task)
        self._track(handle)
        return handle

    def _track(self, handle: object) -> None:
        if isinstance(handle, str) and is_revocable(handle):
            self._handles.add(handle)

    async def release(self) -> None:
        self.released = True
        if self._pending:
            settled = await asyncio.gather(*list(self._pending), return_exceptions=True)
            for handle in settled:
                self._track(handle)
        for handle in self._handles:
            self._cache.revoke(handle)
        self._handles.clear()
