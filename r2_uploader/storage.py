"""
S3-compatible object store client (Cloudflare R2 by default).

Thin wrapper over a boto3 S3 client exposing the multipart primitives the
upload relay needs, presigned GET links and the public object URL. The boto3
client is thread-safe, so one instance is shared process-wide.
"""
from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config

logger = logging.getLogger("r2_uploader.storage")


class ObjectStore:
    def __init__(
        self,
        *,
        endpoint_url: str,
        access_key_id: str,
        secret_access_key: str,
        bucket: str,
        public_url: str,
        region: str = "auto",
        client: Any = None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self._public_base = _normalize_public_base(public_url)
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
            config=Config(signature_version="s3v4", retries={"max_attempts": 3, "mode": "standard"}),
        )
        logger.info("event=store_ready endpoint=%s bucket=%s", endpoint_url, bucket)

    def create_multipart_upload(
        self, key: str, content_type: str, content_disposition: str, cache_control: str
    ) -> str:
        response = self._client.create_multipart_upload(
            Bucket=self.bucket,
            Key=key,
            ContentType=content_type,
            ContentDisposition=content_disposition,
            CacheControl=cache_control,
        )
        return response["UploadId"]

    def upload_part(self, key: str, upload_id: str, part_number: int, body: bytes) -> str:
        response = self._client.upload_part(
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        return response["ETag"]

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[dict]) -> None:
        self._client.complete_multipart_upload(
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._client.abort_multipart_upload(Bucket=self.bucket, Key=key, UploadId=upload_id)

    def presigned_get_url(
        self, key: str, expires_in: int, content_disposition: str, cache_control: str
    ) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={
                "Bucket": self.bucket,
                "Key": key,
                "ResponseContentDisposition": content_disposition,
                "ResponseCacheControl": cache_control,
            },
            ExpiresIn=expires_in,
        )

    def public_url(self, key: str) -> str:
        """Permanent URL of ``key`` behind the bucket's public domain."""
        return f"{self._public_base}/{key}"


def _normalize_public_base(public_url: str) -> str:
    base = public_url.rstrip("/")
    if not base.startswith(("http://", "https://")):
        base = f"https://{base}"
    return base
