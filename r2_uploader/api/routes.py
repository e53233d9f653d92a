from __future__ import annotations

import asyncio
import html
import json
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Callable

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, StreamingResponse

from r2_uploader.api.deps import get_http_client, get_ledger, get_link_issuer, get_upload_service
from r2_uploader.config import HISTORY_LIMIT
from r2_uploader.core.exceptions import LinkIssuanceError, UploaderError
from r2_uploader.core.metrics import metrics
from r2_uploader.core.security import require_basic_auth
from r2_uploader.core.templates import render_template
from r2_uploader.models import DeleteHistoryRequest, LedgerKey, RemoteUploadRequest, UploadRecord, UploadSource
from r2_uploader.services.ledger import UploadLedger
from r2_uploader.services.links import RetrievalLinkIssuer
from r2_uploader.services.sources import local_source
from r2_uploader.services.uploads import UploadService

# Everything except the download redirect sits behind basic auth.
router = APIRouter(dependencies=[Depends(require_basic_auth)])
public_router = APIRouter()

logger = logging.getLogger("r2_uploader")

MAX_HISTORY_LIMIT = 500
NDJSON_MEDIA_TYPE = "application/x-ndjson"


def _link_builder(request: Request) -> Callable[[str], str]:
    return lambda key: str(request.url_for("download", object_key=key))


def _links(record: UploadRecord) -> dict[str, str]:
    return {"appLink": record.app_link, "directUrl": record.direct_url}


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands datetimes back naive; they are stored in UTC.
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _record_payload(record: UploadRecord) -> dict:
    return {
        "key": list(record.key),
        "id": record.id,
        "fileName": record.file_name,
        "appLink": record.app_link,
        "directUrl": record.direct_url,
        "sizeBytes": record.size_bytes,
        "source": UploadSource(record.source).value,
        "createdAt": _as_utc(record.created_at).isoformat(),
    }


def _time_ago(moment: datetime, now: datetime | None = None) -> str:
    moment = _as_utc(moment)
    now = now or datetime.now(timezone.utc)
    seconds = int((now - moment).total_seconds())
    for span, unit in ((31536000, "y"), (2592000, "mo"), (86400, "d"), (3600, "h"), (60, "m")):
        if seconds > span:
            return f"{seconds // span}{unit} ago"
    return f"{max(seconds, 0)}s ago"


def _link_row_html(label: str, value: str) -> str:
    safe_value = html.escape(value, quote=True)
    return (
        "<div class='link-group'>"
        f"<div class='lbl'>{html.escape(label)}</div>"
        f"<div class='link-row'><input readonly value=\"{safe_value}\">"
        "<button class='copy-btn' onclick='copyTxt(this)'>Copy</button></div>"
        "</div>"
    )


def _history_item_html(record: UploadRecord) -> str:
    key_attr = html.escape(json.dumps(list(record.key)), quote=True)
    return (
        "<div class='item'>"
        f"<div class='top'><b>{html.escape(record.file_name)}</b>"
        f"<button data-key=\"{key_attr}\" onclick='del(this)'>Del</button></div>"
        f"<div class='meta'>{_time_ago(record.created_at)}</div>"
        f"{_link_row_html('App Link', record.app_link)}"
        f"{_link_row_html('R2 Direct', record.direct_url)}"
        "</div>"
    )


@router.get("/", include_in_schema=False)
async def home():
    return HTMLResponse(content=render_template("pages/home.html", {"title": "R2 Uploader"}))


@router.post("/upload-file")
async def upload_file(
    request: Request,
    file: UploadFile | None = File(None),
    service: UploadService = Depends(get_upload_service),
):
    try:
        source = local_source(file)
        record = await service.upload(
            source, file.filename, UploadSource.LOCAL_FILE, _link_builder(request)
        )
    except UploaderError:
        metrics.record_failure()
        raise
    metrics.record_upload(record.size_bytes)
    return _links(record)


async def _remote_upload_events(
    service: UploadService,
    client: httpx.AsyncClient,
    payload: RemoteUploadRequest,
    link_for: Callable[[str], str],
) -> AsyncIterator[str]:
    events: asyncio.Queue = asyncio.Queue()

    async def run() -> None:
        try:
            record = await service.upload_remote(
                client,
                payload.url,
                payload.name,
                link_for,
                on_progress=lambda percent: events.put_nowait({"progress": percent}),
            )
        except UploaderError as exc:
            metrics.record_failure()
            events.put_nowait({"error": str(exc)})
        except Exception as exc:
            logger.exception("event=remote_upload_crashed url=%s", payload.url)
            metrics.record_failure()
            events.put_nowait({"error": str(exc)})
        else:
            metrics.record_upload(record.size_bytes, remote=True)
            events.put_nowait({"done": _links(record)})
        finally:
            events.put_nowait(None)

    task = asyncio.create_task(run())
    try:
        while (event := await events.get()) is not None:
            yield json.dumps(event) + "\n"
    finally:
        # Client went away: cancelling aborts the multipart upload.
        if not task.done():
            task.cancel()


@router.post("/upload-remote")
async def upload_remote(
    payload: RemoteUploadRequest,
    request: Request,
    service: UploadService = Depends(get_upload_service),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    logger.info("event=remote_upload_requested url=%s name=%s", payload.url, payload.name)
    return StreamingResponse(
        _remote_upload_events(service, client, payload, _link_builder(request)),
        media_type=NDJSON_MEDIA_TYPE,
    )


@public_router.get("/download/{object_key:path}", name="download")
def download(object_key: str, issuer: RetrievalLinkIssuer = Depends(get_link_issuer)):
    try:
        signed_url = issuer.issue(object_key)
    except LinkIssuanceError:
        raise HTTPException(status_code=404, detail="Link expired or file not found")
    metrics.record_link()
    return RedirectResponse(url=signed_url, status_code=302)


@router.get("/history", include_in_schema=False)
def history(ledger: UploadLedger = Depends(get_ledger)):
    records = ledger.list(HISTORY_LIMIT)
    items = "".join(_history_item_html(record) for record in records)
    if not items:
        items = "<p class='empty'>No uploads yet.</p>"
    page = render_template("pages/history.html", {"items_html": items, "count": len(records)})
    return HTMLResponse(content=page)


@router.get("/api/history")
def history_api(
    limit: int = Query(HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    ledger: UploadLedger = Depends(get_ledger),
):
    return {"uploads": [_record_payload(record) for record in ledger.list(limit)]}


@router.post("/api/delete-history")
def delete_history(payload: DeleteHistoryRequest, ledger: UploadLedger = Depends(get_ledger)):
    ledger.delete(LedgerKey(*payload.key))
    return {"ok": True}


@router.get("/metrics")
def metrics_snapshot():
    response = JSONResponse(metrics.snapshot())
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return response
