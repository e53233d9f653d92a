from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError, ClientError

from r2_uploader.core.exceptions import LinkIssuanceError
from r2_uploader.services.relay import attachment_disposition

logger = logging.getLogger("r2_uploader.links")

LINK_TTL_SECONDS = 3 * 60 * 60
LINK_CACHE_CONTROL = "public, max-age=31536000"


class RetrievalLinkIssuer:
    """Issues presigned GET links; each call signs a fresh, independently expiring URL."""

    def __init__(self, store, expires_in: int = LINK_TTL_SECONDS):
        self._store = store
        self.expires_in = expires_in

    def issue(self, object_key: str) -> str:
        if not object_key:
            raise LinkIssuanceError("Link expired or file not found")
        try:
            url = self._store.presigned_get_url(
                object_key,
                self.expires_in,
                attachment_disposition(object_key),
                LINK_CACHE_CONTROL,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("event=link_issue_failed key=%s error=%s", object_key, exc)
            raise LinkIssuanceError("Link expired or file not found") from exc
        logger.info("event=link_issued key=%s expires_in=%s", object_key, self.expires_in)
        return url
