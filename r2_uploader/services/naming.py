from __future__ import annotations

import re
import uuid

DEFAULT_EXTENSION = "bin"

MIME_EXTENSIONS = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/x-matroska": "mkv",
    "video/quicktime": "mov",
    "video/avi": "avi",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
}

_DISALLOWED = re.compile(r"[^\w\-. ]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")


def mime_to_extension(mime_type: str | None) -> str:
    base = (mime_type or "").split(";", 1)[0].strip().lower()
    return MIME_EXTENSIONS.get(base, DEFAULT_EXTENSION)


def sanitize_name(raw_name: str | None) -> str:
    if not raw_name:
        return ""
    cleaned = _DISALLOWED.sub("", raw_name)
    return _WHITESPACE.sub("-", cleaned).strip()


def object_key(raw_name: str | None, mime_type: str | None) -> str:
    """Build ``<sanitized name>.<extension>``.

    Keys are not checked against the bucket: an upload under an existing key
    replaces the earlier object.
    """
    base = sanitize_name(raw_name) or uuid.uuid4().hex
    return f"{base}.{mime_to_extension(mime_type)}"
