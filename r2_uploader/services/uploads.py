from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from r2_uploader.models import UploadRecord, UploadSource
from r2_uploader.services.ledger import UploadLedger
from r2_uploader.services.naming import object_key
from r2_uploader.services.relay import ChunkedUploadRelay, ProgressCallback
from r2_uploader.services.sources import ByteStream, remote_source

logger = logging.getLogger("r2_uploader.uploads")

LinkBuilder = Callable[[str], str]


class UploadService:
    def __init__(self, relay: ChunkedUploadRelay, ledger: UploadLedger, store):
        self._relay = relay
        self._ledger = ledger
        self._store = store

    async def upload(
        self,
        source: ByteStream,
        raw_name: Optional[str],
        origin: UploadSource,
        link_for: LinkBuilder,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadRecord:
        key = object_key(raw_name, source.content_type)
        size_bytes = await self._relay.relay(
            source,
            key,
            source.content_type,
            size_hint=source.size_hint,
            on_progress=on_progress,
        )
        # Only reached once the store confirmed the multipart upload.
        record = UploadRecord.create(
            file_name=key,
            app_link=link_for(key),
            direct_url=self._store.public_url(key),
            source=origin,
            size_bytes=size_bytes,
        )
        self._ledger.record(record)
        logger.info(
            "event=upload_success key=%s source=%s size_bytes=%s content_type=%s",
            key,
            origin.value,
            size_bytes,
            source.content_type,
        )
        return record

    async def upload_remote(
        self,
        client: httpx.AsyncClient,
        url: str,
        raw_name: Optional[str],
        link_for: LinkBuilder,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadRecord:
        async with remote_source(client, url) as source:
            return await self.upload(
                source, raw_name, UploadSource.REMOTE_URL, link_for, on_progress=on_progress
            )
