import logging

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from r2_uploader.core.templates import render_template

logger = logging.getLogger("r2_uploader")


class UploaderError(Exception):
    """Base class for failures surfaced to callers as ``{"error": message}``."""

    status_code = 500


class MissingFileError(UploaderError):
    status_code = 400


class RemoteFetchError(UploaderError):
    """The remote source could not be fetched (network error or non-2xx status)."""

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class UploadError(UploaderError):
    """A multipart relay failed; ``__cause__`` holds the underlying error."""


class StreamConsumedError(UploaderError):
    pass


class PersistenceError(UploaderError):
    pass


class LinkIssuanceError(UploaderError):
    status_code = 404


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UploaderError)
    async def uploader_error_handler(request: Request, exc: UploaderError):
        logger.warning(
            "event=request_failed path=%s error_type=%s error=%s",
            request.url.path,
            type(exc).__name__,
            exc,
        )
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        accept = request.headers.get("accept", "")
        detail = exc.detail if hasattr(exc, "detail") else "Not Found"
        if "application/json" in accept and "text/html" not in accept:
            return JSONResponse({"detail": detail}, status_code=404)
        detail_text = (
            detail
            if detail not in (None, "", "Not found", "Not Found")
            else "The resource you were looking for isn't here. It may have been removed or its link is outdated."
        )
        html = render_template("errors/404.html", {"detail": detail_text})
        return HTMLResponse(content=html, status_code=404)
