from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel
from sqlalchemy import BigInteger, Column
from sqlmodel import Field, SQLModel

# Upper bound for millisecond timestamps. Ledger keys store
# MAX_TIMESTAMP_MS - created_at_ms so that ascending key order is
# newest-first; changing this value reorders every persisted record.
MAX_TIMESTAMP_MS = 9_999_999_999_999


class UploadSource(str, Enum):
    LOCAL_FILE = "File"
    REMOTE_URL = "URL"


class LedgerKey(NamedTuple):
    sort_key: int
    id: str


def inverted_timestamp(moment: datetime) -> int:
    return MAX_TIMESTAMP_MS - int(moment.timestamp() * 1000)


class UploadRecord(SQLModel, table=True):
    __tablename__ = "upload_record"

    # Inverted millisecond timestamps exceed a 32-bit INTEGER.
    sort_key: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    id: str = Field(primary_key=True)
    file_name: str
    app_link: str
    direct_url: str
    size_bytes: int = Field(default=0)
    source: UploadSource
    created_at: datetime

    @classmethod
    def create(
        cls,
        *,
        file_name: str,
        app_link: str,
        direct_url: str,
        source: UploadSource,
        size_bytes: int = 0,
        created_at: datetime | None = None,
    ) -> "UploadRecord":
        moment = created_at or datetime.now(timezone.utc)
        return cls(
            sort_key=inverted_timestamp(moment),
            id=uuid.uuid4().hex,
            file_name=file_name,
            app_link=app_link,
            direct_url=direct_url,
            size_bytes=size_bytes,
            source=source,
            created_at=moment,
        )

    @property
    def key(self) -> LedgerKey:
        return LedgerKey(self.sort_key, self.id)


class RemoteUploadRequest(BaseModel):
    url: str
    name: str | None = None


class DeleteHistoryRequest(BaseModel):
    key: tuple[int, str]
