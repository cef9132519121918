"""Image download over HTTP(S)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from snapclassify.errors import RetrievalError

if TYPE_CHECKING:
    from snapclassify.config import Settings

logger = logging.getLogger(__name__)

_ACCEPTED_CONTENT_TYPES = ("image/", "application/octet-stream")
_ALLOWED_SCHEMES = ("http", "https")


class ImageFetcher:
    """Downloads raw image bytes for a URL.

    ``transport`` lets tests substitute an ``httpx.MockTransport``.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._timeout = settings.fetch_timeout
        self._max_bytes = settings.max_file_size
        self._transport = transport

    async def fetch(self, url: str) -> bytes:
        """Return the body of ``url``.

        Raises:
            RetrievalError: On empty, relative or non-HTTP(S) URLs, transport
                errors, non-2xx responses, non-image content types, empty
                bodies or bodies over the size limit.
        """
        self._check_url(url)
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            ) as client, client.stream("GET", url) as response:
                response.raise_for_status()
                self._check_content_type(url, response)
                body = await self._read_limited(url, response)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise RetrievalError(f"Failed to fetch {url}: {exc}") from exc

        if not body:
            raise RetrievalError(f"Empty response from {url}")

        logger.info("Fetched %d bytes from %s", len(body), url)
        return body

    @staticmethod
    def _check_url(url: str) -> None:
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise RetrievalError(f"Invalid image URL {url!r}: {exc}") from exc
        if parsed.scheme not in _ALLOWED_SCHEMES or not parsed.host:
            raise RetrievalError(f"Image URL must be an absolute http(s) URL, got {url!r}")

    @staticmethod
    def _check_content_type(url: str, response: httpx.Response) -> None:
        content_type = response.headers.get("content-type")
        if content_type is None:
            return
        media_type = content_type.split(";", 1)[0].strip().lower()
        if not media_type.startswith(_ACCEPTED_CONTENT_TYPES):
            raise RetrievalError(f"{url} returned non-image content type {media_type!r}")

    async def _read_limited(self, url: str, response: httpx.Response) -> bytes:
        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > self._max_bytes:
                raise RetrievalError(f"{url} exceeds the {self._max_bytes} byte download limit")
            chunks.append(chunk)
        return b"".join(chunks)
