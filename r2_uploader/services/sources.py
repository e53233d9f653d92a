from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import UploadFile

from r2_uploader.core.exceptions import MissingFileError, RemoteFetchError, StreamConsumedError

logger = logging.getLogger("r2_uploader.sources")

DEFAULT_CONTENT_TYPE = "application/octet-stream"
READ_CHUNK_SIZE = 1024 * 1024


class ByteStream:
    """Single-pass async stream of byte chunks handed to the relay."""

    def __init__(self, chunks: AsyncIterator[bytes], content_type: str, size_hint: int | None = None):
        self._chunks = chunks
        self._consumed = False
        self.content_type = content_type or DEFAULT_CONTENT_TYPE
        self.size_hint = size_hint

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise StreamConsumedError("Byte stream has already been consumed")
        self._consumed = True
        return self._chunks.__aiter__()


async def _read_upload(upload: UploadFile) -> AsyncIterator[bytes]:
    while chunk := await upload.read(READ_CHUNK_SIZE):
        yield chunk


def local_source(upload: UploadFile | None) -> ByteStream:
    if upload is None:
        raise MissingFileError("No file")
    return ByteStream(
        _read_upload(upload),
        content_type=upload.content_type or DEFAULT_CONTENT_TYPE,
        size_hint=upload.size,
    )


def _content_length(headers: httpx.Headers) -> int | None:
    value = headers.get("content-length")
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length >= 0 else None


@asynccontextmanager
async def remote_source(client: httpx.AsyncClient, url: str) -> AsyncIterator[ByteStream]:
    """Open ``url`` and expose its body as a ByteStream until the context exits."""
    try:
        request = client.build_request("GET", url)
        response = await client.send(request, stream=True, follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("event=remote_fetch_failed url=%s error=%s", url, exc)
        raise RemoteFetchError(f"Fetch error: {exc}") from exc

    try:
        if not response.is_success:
            logger.warning("event=remote_fetch_failed url=%s status=%s", url, response.status_code)
            raise RemoteFetchError(
                f"Fetch error: HTTP {response.status_code}", upstream_status=response.status_code
            )
        logger.info(
            "event=remote_fetch_opened url=%s content_type=%s content_length=%s",
            url,
            response.headers.get("content-type"),
            response.headers.get("content-length"),
        )
        yield ByteStream(
            response.aiter_bytes(READ_CHUNK_SIZE),
            content_type=response.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
            size_hint=_content_length(response.headers),
        )
    finally:
        await response.aclose()
