"""Authenticated client for the remote lesson service."""
import logging
from typing import Any, Callable

import httpx

from examprep.config import API_BASE_URL, REQUEST_TIMEOUT_SECONDS
from examprep.errors import (
    AuthenticationRequiredError,
    MalformedPayloadError,
    RateLimitedError,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str | None]


def build_api_url(base_url: str, path: str) -> str:
    """Join base URL and path without doubled slashes."""
    base = base_url.rstrip("/")
    normalized_path = path if path.startswith("/") else f"/{path}"
    return f"{base}{normalized_path}"


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code == 401:
        raise AuthenticationRequiredError()
    if response.status_code == 429:
        raise RateLimitedError()
    if response.is_error:
        body = response.text[:200]
        logger.error(f"API request failed with status {response.status_code}: {body}")
        raise TransientNetworkError(
            f"HTTP error! status: {response.status_code}",
            status_code=response.status_code,
        )


class ApiClient:
    """
    Thin wrapper over ``httpx.AsyncClient``.

    Attaches the bearer token (when the provider returns one) and the
    ``Accept-Language`` header, and maps failures onto the package error
    types: transport errors and non-2xx statuses become
    ``TransientNetworkError`` (401/429 get their own subclasses) and
    unparsable bodies become ``MalformedPayloadError``.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token_provider: TokenProvider | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self._token_provider = token_provider or (lambda: None)
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def url(self, path: str) -> str:
        return build_api_url(self.base_url, path)

    def headers(self, locale: str | None = None, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if locale:
            headers["Accept-Language"] = locale
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        locale: str | None = None,
        params: dict[str, Any] | None = None,
        json: object = None,
        headers: dict[str, str] | None = None,
        allow_statuses: tuple[int, ...] = (),
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                self.url(path),
                params=params,
                json=json,
                headers=self.headers(locale, headers),
            )
        except httpx.HTTPError as e:
            raise TransientNetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code not in allow_statuses:
            _raise_for_status(response)
        return response

    async def get_json(self, path: str, *, locale: str | None = None, params: dict[str, Any] | None = None) -> Any:
        response = await self.request("GET", path, locale=locale, params=params)
        return self._parse_json(response)

    async def post_json(self, path: str, payload: object, *, locale: str | None = None) -> Any:
        response = await self.request("POST", path, locale=locale, json=payload)
        if not response.content:
            return None
        return self._parse_json(response)

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise MalformedPayloadError(f"Invalid JSON from {response.request.url}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
