from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import delete as sa_delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from r2_uploader.core.exceptions import PersistenceError
from r2_uploader.models import LedgerKey, UploadRecord

logger = logging.getLogger("r2_uploader.ledger")


class UploadLedger:
    """History of completed uploads, newest first.

    Records are keyed by ``(sort_key, id)`` where ``sort_key`` is the inverted
    completion timestamp, so plain ascending primary-key order is
    most-recent-first.
    """

    def __init__(self, engine: Engine):
        self._engine = engine

    def record(self, entry: UploadRecord) -> None:
        try:
            with Session(self._engine, expire_on_commit=False) as session:
                session.add(entry)
                session.commit()
        except SQLAlchemyError as exc:
            logger.error("event=ledger_write_failed file_name=%s error=%s", entry.file_name, exc)
            raise PersistenceError(f"Could not record upload {entry.file_name}: {exc}") from exc
        logger.info("event=ledger_recorded key=%s file_name=%s", list(entry.key), entry.file_name)

    def list(self, limit: int) -> Sequence[UploadRecord]:
        if limit <= 0:
            return []
        statement = (
            select(UploadRecord)
            .order_by(UploadRecord.sort_key.asc(), UploadRecord.id.asc())
            .limit(limit)
        )
        try:
            with Session(self._engine) as session:
                return session.exec(statement).all()
        except SQLAlchemyError as exc:
            logger.error("event=ledger_read_failed error=%s", exc)
            raise PersistenceError(f"Could not read upload history: {exc}") from exc

    def delete(self, key: LedgerKey) -> None:
        sort_key, record_id = key
        statement = sa_delete(UploadRecord).where(
            UploadRecord.sort_key == sort_key,
            UploadRecord.id == record_id,
        )
        try:
            with Session(self._engine) as session:
                result = session.execute(statement)
                session.commit()
        except SQLAlchemyError as exc:
            logger.error("event=ledger_delete_failed key=%s error=%s", list(key), exc)
            raise PersistenceError(f"Could not delete history entry: {exc}") from exc
        logger.info("event=ledger_deleted key=%s removed=%s", list(key), result.rowcount)
