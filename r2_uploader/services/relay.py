"""
Chunked multipart relay from a ByteStream into the object store.

The source is read into fixed-size parts while up to ``queue_size`` earlier
parts are being uploaded in worker threads, so at most roughly
``(queue_size + 1) * part_size`` bytes are buffered per relay. The object
only becomes visible once the final complete call succeeds; any failure or
cancellation aborts the multipart upload.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterable, AsyncIterator, Callable, Optional

from r2_uploader.core.exceptions import UploadError

logger = logging.getLogger("r2_uploader.relay")

PART_SIZE = 30 * 1024 * 1024
QUEUE_SIZE = 4
OBJECT_CACHE_CONTROL = "public, max-age=31536000, immutable"

ProgressCallback = Callable[[int], None]


def attachment_disposition(key: str) -> str:
    return f'attachment; filename="{key}"'


async def iter_parts(chunks: AsyncIterable[bytes], part_size: int) -> AsyncIterator[bytes]:
    buffer = bytearray()
    async for chunk in chunks:
        buffer.extend(chunk)
        while len(buffer) >= part_size:
            yield bytes(buffer[:part_size])
            del buffer[:part_size]
    if buffer:
        yield bytes(buffer)


class _Progress:
    """Turns byte counts into non-decreasing whole percentages."""

    def __init__(self, total: Optional[int], callback: Optional[ProgressCallback]):
        self._total = total if total and total > 0 else None
        self._callback = callback
        self._last = -1
        self.loaded = 0

    def advance(self, size: int) -> None:
        self.loaded += size
        if self._total is None or self._callback is None:
            return
        # Halves round up: 12.5 -> 13.
        percent = min(100, int(self.loaded * 100 / self._total + 0.5))
        if percent > self._last:
            self._last = percent
            self._callback(percent)


class ChunkedUploadRelay:
    def __init__(self, store, part_size: int = PART_SIZE, queue_size: int = QUEUE_SIZE):
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")
        self._store = store
        self.part_size = part_size
        self.queue_size = queue_size

    async def relay(
        self,
        stream: AsyncIterable[bytes],
        key: str,
        content_type: str,
        size_hint: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Upload ``stream`` to ``key`` and return the number of bytes relayed.

        Raises UploadError (chained to the cause) if the source, a part or the
        final commit fails.
        """
        try:
            upload_id = await asyncio.to_thread(
                self._store.create_multipart_upload,
                key,
                content_type,
                attachment_disposition(key),
                OBJECT_CACHE_CONTROL,
            )
        except Exception as exc:
            raise UploadError(f"Could not start upload for {key}: {exc}") from exc

        logger.info(
            "event=relay_started key=%s upload_id=%s size_hint=%s part_size=%s",
            key,
            upload_id,
            size_hint,
            self.part_size,
        )
        progress = _Progress(size_hint, on_progress)
        slots = asyncio.Semaphore(self.queue_size)
        tasks: list[asyncio.Task] = []

        try:
            part_number = 0
            async for body in iter_parts(stream, self.part_size):
                await slots.acquire()
                _raise_first_failure(tasks)
                part_number += 1
                tasks.append(
                    asyncio.create_task(
                        self._send_part(key, upload_id, part_number, body, slots, progress)
                    )
                )
            if part_number == 0:
                # Multipart uploads need at least one part, even for empty sources.
                await slots.acquire()
                tasks.append(
                    asyncio.create_task(self._send_part(key, upload_id, 1, b"", slots, progress))
                )

            # asyncio.wait leaves the part tasks running if this coroutine is cancelled.
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            _raise_first_failure(tasks)
            parts = [task.result() for task in tasks]
            await asyncio.to_thread(self._store.complete_multipart_upload, key, upload_id, parts)
        except asyncio.CancelledError:
            logger.warning("event=relay_cancelled key=%s upload_id=%s", key, upload_id)
            await asyncio.shield(self._abandon(tasks, key, upload_id))
            raise
        except Exception as exc:
            logger.error("event=relay_failed key=%s upload_id=%s error=%s", key, upload_id, exc)
            await self._abandon(tasks, key, upload_id)
            raise UploadError(f"Upload of {key} failed: {exc}") from exc

        logger.info(
            "event=relay_completed key=%s upload_id=%s parts=%s size_bytes=%s",
            key,
            upload_id,
            len(parts),
            progress.loaded,
        )
        return progress.loaded

    async def _send_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        slots: asyncio.Semaphore,
        progress: _Progress,
    ) -> dict:
        try:
            etag = await asyncio.to_thread(self._store.upload_part, key, upload_id, part_number, body)
        finally:
            slots.release()
        logger.debug("event=part_uploaded key=%s part=%s size_bytes=%s", key, part_number, len(body))
        progress.advance(len(body))
        return {"PartNumber": part_number, "ETag": etag}

    async def _abandon(self, tasks: list[asyncio.Task], key: str, upload_id: str) -> None:
        # Parts already handed to a worker thread cannot be stopped; let them
        # land before the abort so none are stored after it.
        await asyncio.gather(*tasks, return_exceptions=True)
        try:
            await asyncio.to_thread(self._store.abort_multipart_upload, key, upload_id)
        except Exception as exc:
            logger.warning("event=relay_abort_failed key=%s upload_id=%s error=%s", key, upload_id, exc)
        else:
            logger.info("event=relay_aborted key=%s upload_id=%s", key, upload_id)


def _raise_first_failure(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        if task.done() and not task.cancelled() and task.exception() is not None:
            raise task.exception()
