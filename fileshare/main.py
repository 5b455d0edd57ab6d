from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .config import settings
from .exceptions import FolderNotEmptyError, RequestTooLargeError, StorageError
from .routers import files
from .schemas import FolderNotEmptyResponse
from .services.file_locks import FileLockRegistry
from .services.file_ops import FileOps

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

_UPLOAD_PATH = '/files/upload'


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.file_ops = FileOps(
        settings.storage_path,
        FileLockRegistry(),
        max_upload_bytes=settings.max_upload_bytes,
    )
    logger.info('Serving files from %s', app.state.file_ops.root)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)


def _parse_cors_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(',') if origin.strip()]


cors_origins = _parse_cors_origins(settings.cors_origins)
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=['GET', 'POST', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type'],
        expose_headers=['Content-Disposition'],
    )


def _declared_length(headers: Headers) -> int | None:
    raw = headers.get('content-length', '')
    return int(raw) if raw.isdigit() else None


class UploadSizeLimitMiddleware:
    """Caps upload request bodies, by declared length and by bytes actually received."""

    def __init__(self, app: ASGIApp, path: str = _UPLOAD_PATH):
        self.app = app
        self.path = path

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope['type'] != 'http' or scope['method'] != 'POST' or scope['path'] != self.path:
            await self.app(scope, receive, send)
            return

        limit = settings.max_upload_bytes + settings.multipart_overhead_bytes
        length = _declared_length(Headers(scope=scope))
        if length is not None and length > limit:
            logger.info('Rejected upload with declared body of %d bytes', length)
            response = PlainTextResponse(RequestTooLargeError(settings.max_upload_mb).message, status_code=400)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message['type'] == 'http.request':
                received += len(message.get('body', b''))
                if received > limit:
                    logger.info('Rejected upload after receiving %d bytes', received)
                    raise RequestTooLargeError(settings.max_upload_mb)
            return message

        await self.app(scope, limited_receive, send)


app.add_middleware(UploadSizeLimitMiddleware)


@app.exception_handler(FolderNotEmptyError)
async def folder_not_empty_handler(request: Request, exc: FolderNotEmptyError):
    body = FolderNotEmptyResponse(
        message=exc.message,
        files_count=exc.files_count,
        folders_count=exc.folders_count,
    )
    return JSONResponse(body.model_dump(by_alias=True), status_code=exc.status_code)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = '.'.join(str(part) for part in first.get('loc', ()))
        message = f"Invalid request: {location}: {first.get('msg', 'invalid value')}"
    else:
        message = 'Invalid request.'
    return PlainTextResponse(message, status_code=400)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return PlainTextResponse('Internal server error. Please try again.', status_code=500)


@app.get('/healthz')
def healthz():
    return {'ok': True}


app.include_router(files.router)


def run() -> None:
    uvicorn.run(
        'fileshare.main:app',
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level,
    )
