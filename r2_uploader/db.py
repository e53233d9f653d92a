import logging

from sqlmodel import SQLModel, create_engine
from sqlalchemy.pool import QueuePool

from r2_uploader.config import DB_CONNECT_ARGS, DB_URL

# Configure engine with connection pooling parameters to handle long-running processes
engine = create_engine(
    DB_URL,
    connect_args=DB_CONNECT_ARGS,
    poolclass=QueuePool,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
    pool_recycle=3600,
    echo=False,
)


def init_db() -> None:
    # Register the table on SQLModel.metadata before create_all.
    from r2_uploader import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logging.getLogger("r2_uploader.db").info("event=db_ready url=%s", engine.url.render_as_string())
