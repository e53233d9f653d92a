import sys
import threading
import time
import uuid
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def _client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, operation)


class InMemoryStore:
    """Stands in for ObjectStore, keeping objects and multipart state in memory."""

    def __init__(self, part_delay: float = 0.0, part_delays=None):
        self.objects = {}
        self.events = []
        self.uploads = {}
        self.aborted = []
        self.presign_calls = []
        self.part_sizes = []
        self.fail_part = None
        self.fail_complete = False
        self.fail_presign = False
        self.part_delay = part_delay
        self.part_delays = part_delays or {}
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def create_multipart_upload(self, key, content_type, content_disposition, cache_control):
        upload_id = uuid.uuid4().hex
        self.uploads[upload_id] = {
            "key": key,
            "parts": {},
            "metadata": {
                "ContentType": content_type,
                "ContentDisposition": content_disposition,
                "CacheControl": cache_control,
            },
        }
        return upload_id

    def upload_part(self, key, upload_id, part_number, body):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.part_delays.get(part_number, self.part_delay)
            if delay:
                time.sleep(delay)
            if self.fail_part == part_number:
                raise _client_error("UploadPart")
            with self._lock:
                self.uploads[upload_id]["parts"][part_number] = bytes(body)
                self.part_sizes.append(len(body))
                self.events.append(f"part{part_number}_stored")
            return f'"etag-{part_number}"'
        finally:
            with self._lock:
                self.in_flight -= 1

    def complete_multipart_upload(self, key, upload_id, parts):
        if self.fail_complete:
            raise _client_error("CompleteMultipartUpload")
        upload = self.uploads.pop(upload_id)
        numbers = [part["PartNumber"] for part in parts]
        assert numbers == sorted(numbers)
        body = b"".join(upload["parts"][number] for number in numbers)
        self.objects[key] = {"body": body, **upload["metadata"]}

    def abort_multipart_upload(self, key, upload_id):
        self.uploads.pop(upload_id, None)
        self.aborted.append(upload_id)
        self.events.append("abort")

    def presigned_get_url(self, key, expires_in, content_disposition, cache_control):
        if self.fail_presign:
            raise _client_error("GetObject")
        self.presign_calls.append((key, expires_in, content_disposition, cache_control))
        return f"https://signed.example.com/{key}?X-Amz-Expires={expires_in}&n={len(self.presign_calls)}"

    def public_url(self, key):
        return f"https://cdn.example.com/{key}"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(tmp_path):
    from sqlmodel import SQLModel, create_engine

    from r2_uploader import models  # noqa: F401

    db_engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    SQLModel.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def make_store():
    return InMemoryStore
