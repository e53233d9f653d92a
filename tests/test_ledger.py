from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable
from sqlmodel import create_engine

from r2_uploader.core.exceptions import PersistenceError
from r2_uploader.models import MAX_TIMESTAMP_MS, LedgerKey, UploadRecord, UploadSource, inverted_timestamp
from r2_uploader.services.ledger import UploadLedger

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _record(name: str, minutes: int, source: UploadSource = UploadSource.LOCAL_FILE) -> UploadRecord:
    return UploadRecord.create(
        file_name=name,
        app_link=f"https://app.example.com/download/{name}",
        direct_url=f"https://cdn.example.com/{name}",
        source=source,
        size_bytes=10,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def test_sort_key_inverts_the_timestamp():
    record = _record("a.mp4", 0)
    assert record.sort_key == MAX_TIMESTAMP_MS - int(BASE_TIME.timestamp() * 1000)
    assert inverted_timestamp(BASE_TIME + timedelta(seconds=1)) < record.sort_key
    assert record.key == LedgerKey(record.sort_key, record.id)


def test_list_returns_most_recent_first(engine):
    ledger = UploadLedger(engine)
    for name, minutes in [("old.mp4", 0), ("newest.mp4", 30), ("middle.mp4", 10)]:
        ledger.record(_record(name, minutes))

    names = [record.file_name for record in ledger.list(10)]
    assert names == ["newest.mp4", "middle.mp4", "old.mp4"]

    created = [record.created_at for record in ledger.list(10)]
    assert created == sorted(created, reverse=True)


def test_list_respects_limit(engine):
    ledger = UploadLedger(engine)
    for minutes in range(7):
        ledger.record(_record(f"f{minutes}.mp4", minutes))

    recent = ledger.list(3)
    assert len(recent) == 3
    assert [record.file_name for record in recent] == ["f6.mp4", "f5.mp4", "f4.mp4"]
    assert ledger.list(0) == []


def test_records_with_the_same_timestamp_are_both_kept(engine):
    ledger = UploadLedger(engine)
    ledger.record(_record("twin.mp4", 5))
    ledger.record(_record("twin.mp4", 5))
    assert len(ledger.list(10)) == 2


def test_record_round_trips_fields(engine):
    ledger = UploadLedger(engine)
    entry = _record("remote.webm", 1, UploadSource.REMOTE_URL)
    ledger.record(entry)

    (stored,) = ledger.list(1)
    assert stored.id == entry.id
    assert stored.source == UploadSource.REMOTE_URL
    assert stored.direct_url == "https://cdn.example.com/remote.webm"
    assert stored.size_bytes == 10


def test_delete_is_idempotent(engine):
    ledger = UploadLedger(engine)
    keep = _record("keep.mp4", 0)
    drop = _record("drop.mp4", 1)
    ledger.record(keep)
    ledger.record(drop)

    ledger.delete(drop.key)
    ledger.delete(drop.key)
    ledger.delete(LedgerKey(1, "missing"))

    assert [record.file_name for record in ledger.list(10)] == ["keep.mp4"]


def test_backend_failures_raise_persistence_error(tmp_path):
    # No tables created, so every statement fails.
    ledger = UploadLedger(create_engine(f"sqlite:///{tmp_path / 'empty.db'}"))

    with pytest.raises(PersistenceError):
        ledger.record(_record("lost.mp4", 0))
    with pytest.raises(PersistenceError):
        ledger.list(5)
    with pytest.raises(PersistenceError):
        ledger.delete(LedgerKey(1, "x"))


def test_sort_key_column_is_64_bit_on_postgres():
    ddl = str(CreateTable(UploadRecord.__table__).compile(dialect=postgresql.dialect()))
    assert "sort_key BIGINT NOT NULL" in ddl
    assert "id VARCHAR NOT NULL" in ddl
