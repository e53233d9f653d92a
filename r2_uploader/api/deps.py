import httpx
from fastapi import Request

from r2_uploader.config import LINK_EXPIRY_SECONDS, UPLOAD_PART_SIZE, UPLOAD_QUEUE_SIZE
from r2_uploader.services.ledger import UploadLedger
from r2_uploader.services.links import RetrievalLinkIssuer
from r2_uploader.services.relay import ChunkedUploadRelay
from r2_uploader.services.uploads import UploadService


def get_ledger(request: Request) -> UploadLedger:
    return request.app.state.ledger


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_upload_service(request: Request) -> UploadService:
    store = request.app.state.store
    relay = ChunkedUploadRelay(store, part_size=UPLOAD_PART_SIZE, queue_size=UPLOAD_QUEUE_SIZE)
    return UploadService(relay, request.app.state.ledger, store)


def get_link_issuer(request: Request) -> RetrievalLinkIssuer:
    return RetrievalLinkIssuer(request.app.state.store, expires_in=LINK_EXPIRY_SECONDS)
