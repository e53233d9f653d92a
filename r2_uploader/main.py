import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from r2_uploader.api.routes import public_router, router
from r2_uploader.config import (
    CORS_ORIGINS,
    LOG_LEVEL,
    R2_ACCESS_KEY_ID,
    R2_BUCKET_NAME,
    R2_ENDPOINT_URL,
    R2_PUBLIC_URL,
    R2_REGION,
    R2_SECRET_ACCESS_KEY,
)
from r2_uploader.core.exceptions import register_exception_handlers
from r2_uploader.db import engine, init_db
from r2_uploader.services.ledger import UploadLedger
from r2_uploader.storage import ObjectStore

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("r2_uploader")

# The remote fetch may stream for a long time; only connecting is bounded.
REMOTE_FETCH_TIMEOUT = httpx.Timeout(30.0, read=None)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.http_client = httpx.AsyncClient(timeout=REMOTE_FETCH_TIMEOUT)
    logger.info("event=startup bucket=%s", R2_BUCKET_NAME)
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        logger.info("event=shutdown")


app = FastAPI(title="R2 Uploader", version="1.0.0", lifespan=lifespan)

origins = [origin.strip() for origin in CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()

app.state.store = ObjectStore(
    endpoint_url=R2_ENDPOINT_URL,
    access_key_id=R2_ACCESS_KEY_ID,
    secret_access_key=R2_SECRET_ACCESS_KEY,
    bucket=R2_BUCKET_NAME,
    public_url=R2_PUBLIC_URL,
    region=R2_REGION,
)
app.state.ledger = UploadLedger(engine)

app.include_router(public_router)
app.include_router(router)
register_exception_handlers(app)
