"""HTTP API backing the visitor kiosk front end."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .config import ServiceSettings, load_configured_directory, load_settings
from .directory import DirectorySource
from .models import EmailMessage, MonthlyUpload
from .providers import (
    AcceptAllTokenValidator,
    DocumentUploader,
    LoggingDocumentUploader,
    LoggingMailSender,
    MailSender,
    TokenValidator,
)

logger = logging.getLogger("kiosk.service")

SERVICE_STATUS = "Visitor Kiosk API is running!"
SERVICE_VERSION = "1.0.0"
MAIL_NOTE = "Email logged - configure SMTP for actual sending"
MIN_QUERY_LENGTH = 2


class DirectorySearchRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    query: Any = None


class MailSendRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    to: Any = None
    subject: Any = None
    body: Any = None


class SharePointUploadRequest(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    monthly_data: Any = Field(default=None, alias="monthlyData")
    month_name: Any = Field(default=None, alias="monthName")
    year: Any = None

    def monthly_field(self, name: str) -> Any:
        if isinstance(self.monthly_data, dict):
            return self.monthly_data.get(name)
        return None


def _timestamp() -> str:
    """Return the current UTC time as ISO-8601 with millisecond precision."""

    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _requested_path(request: Request) -> str:
    raw_path = request.scope.get("raw_path")
    path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else request.url.path
    query = request.url.query
    return f"{path}?{query}" if query else path


def _internal_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "timestamp": _timestamp()},
    )


def _not_found_response(request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "Endpoint not found",
            "path": _requested_path(request),
            "method": request.method,
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    """Convert every failure that escapes a route into a JSON envelope."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Starlette reports a known path with the wrong method as 405; clients
        # only ever see method+path misses as 404.
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return _not_found_response(request)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc.errors())
        return _internal_error_response()

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return _internal_error_response()


class RequestBodyLimitMiddleware:
    """Cap request bodies at ``max_body_bytes``, declared or streamed.

    A declared ``Content-Length`` over the limit is refused before the app
    runs.  Bodies without one (chunked uploads) are counted as they arrive;
    once the count passes the limit the app sees a disconnect and whatever it
    tries to send is replaced by the generic server error.
    """

    def __init__(self, app: ASGIApp, *, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        declared = Headers(scope=scope).get("content-length")
        if declared is not None:
            try:
                size = int(declared)
            except ValueError:
                logger.error("Invalid Content-Length %r on %s", declared, path)
                await _internal_error_response()(scope, receive, send)
                return
            if size > self.max_body_bytes:
                self._log_rejection(size, path)
                await _internal_error_response()(scope, receive, send)
                return

        received = 0
        exceeded = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            if exceeded:
                return {"type": "http.disconnect"}
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    exceeded = True
                    self._log_rejection(received, path)
                    return {"type": "http.disconnect"}
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            if exceeded and not response_started:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except Exception:
            if not exceeded or response_started:
                raise

        if exceeded and not response_started:
            await _internal_error_response()(scope, receive, send)

    def _log_rejection(self, size: int, path: str) -> None:
        logger.error(
            "Request body of at least %d bytes exceeds limit of %d bytes on %s",
            size,
            self.max_body_bytes,
            path,
        )


def register_api_routes(
    app: FastAPI,
    *,
    settings: ServiceSettings,
    directory: DirectorySource,
    mail_sender: MailSender,
    token_validator: TokenValidator,
    document_uploader: DocumentUploader,
) -> None:
    """Expose the kiosk JSON endpoints on the provided FastAPI application."""

    started_at = time.monotonic()

    @app.get("/")
    async def index() -> Dict[str, Any]:
        return {
            "status": SERVICE_STATUS,
            "timestamp": _timestamp(),
            "version": SERVICE_VERSION,
            "port": settings.port,
        }

    @app.get("/health")
    async def healthcheck() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": _timestamp(),
            "uptime": time.monotonic() - started_at,
        }

    @app.post("/api/directory/search")
    async def directory_search(payload: Optional[DirectorySearchRequest] = None) -> JSONResponse:
        query = payload.query if payload is not None else None
        if not query or (isinstance(query, str) and len(query) < MIN_QUERY_LENGTH):
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": f"Query must be at least {MIN_QUERY_LENGTH} characters",
                    "users": [],
                    "count": 0,
                },
            )

        try:
            users = [user.to_dict() for user in directory.search(query)]
        except Exception as exc:
            logger.exception("Directory search error")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Directory search failed",
                    "message": str(exc),
                    "users": [],
                    "count": 0,
                },
            )

        return JSONResponse(content={"users": users, "count": len(users), "query": query})

    @app.post("/api/mail/send")
    async def send_mail(payload: Optional[MailSendRequest] = None) -> JSONResponse:
        request = payload or MailSendRequest()
        if not request.to or not request.subject or not request.body:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": "Missing required fields: to, subject, body",
                    "success": False,
                },
            )

        try:
            message_id = mail_sender.send(
                EmailMessage(to=request.to, subject=request.subject, body=request.body)
            )
        except Exception as exc:
            logger.exception("Email send error")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Email send failed", "message": str(exc), "success": False},
            )

        return JSONResponse(
            content={
                "success": True,
                "messageId": message_id,
                "timestamp": _timestamp(),
                "note": MAIL_NOTE,
            }
        )

    @app.post("/api/auth/token")
    async def validate_token() -> JSONResponse:
        try:
            valid = bool(token_validator.validate())
        except Exception:
            logger.exception("Token validation error")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "error": "Token validation failed"},
            )

        return JSONResponse(content={"success": True, "timestamp": _timestamp(), "valid": valid})

    @app.post("/api/sharepoint/upload")
    async def sharepoint_upload(payload: Optional[SharePointUploadRequest] = None) -> JSONResponse:
        request = payload or SharePointUploadRequest()

        try:
            receipt = document_uploader.upload(
                MonthlyUpload(
                    visitors=request.monthly_field("visitors"),
                    staff=request.monthly_field("staff"),
                    month_name=request.month_name,
                    year=request.year,
                )
            )
        except Exception as exc:
            logger.exception("SharePoint upload error")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "SharePoint upload failed", "message": str(exc), "success": False},
            )

        return JSONResponse(
            content={
                "success": True,
                "visitorsUploaded": receipt.visitors_uploaded,
                "staffUploaded": receipt.staff_uploaded,
                "month": receipt.month,
                "year": receipt.year,
                "timestamp": _timestamp(),
            }
        )


def create_app(
    *,
    settings: ServiceSettings | None = None,
    directory: DirectorySource | None = None,
    mail_sender: MailSender | None = None,
    token_validator: TokenValidator | None = None,
    document_uploader: DocumentUploader | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the kiosk backend."""

    app_settings = settings if settings is not None else load_settings()
    app_directory = (
        directory if directory is not None else load_configured_directory(app_settings.directory_path)
    )

    app = FastAPI(
        title="Visitor Kiosk API",
        version=SERVICE_VERSION,
        description="Directory search and stub integrations for the visitor kiosk.",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.add_middleware(RequestBodyLimitMiddleware, max_body_bytes=app_settings.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    register_api_routes(
        app,
        settings=app_settings,
        directory=app_directory,
        mail_sender=mail_sender if mail_sender is not None else LoggingMailSender(),
        token_validator=token_validator if token_validator is not None else AcceptAllTokenValidator(),
        document_uploader=(
            document_uploader if document_uploader is not None else LoggingDocumentUploader()
        ),
    )

    return app


__all__ = [
    "RequestBodyLimitMiddleware",
    "create_app",
    "register_api_routes",
    "register_error_handlers",
]
