import base64
import binascii
import logging
import time
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, get_settings
from app.errors import RejectionReason, StorageError, UploadRejected
from app.gateway import STORED_CONTENT_TYPE, UploadGateway
from app.identity import client_key_from_headers
from app.logging_config import setup_logging
from app.models import ErrorResponse, UploadCandidate, UploadedFile, UploadResponse
from app.naming import NameGenerator
from app.ratelimit import FixedWindowRateLimiter
from app.storage import LocalObjectStore, ObjectStore, SupabaseObjectStore, build_object_store
from app.validation import ContentValidator

logger = logging.getLogger(__name__)


def decode_file_data(file_data: str) -> bytes:
    # browsers reading files as data URLs send "data:application/pdf;base64,..."
    if file_data.startswith("data:") and "," in file_data:
        file_data = file_data.split(",", 1)[1]
    return base64.b64decode("".join(file_data.split()), validate=True)


def _form_text(form: FormData, name: str) -> str | None:
    value = form.get(name)
    return value if isinstance(value, str) else None


def create_app(
    settings: Settings | None = None,
    *,
    store: ObjectStore | None = None,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    clock = clock or time.time
    setup_logging(settings.log_level)

    store = store or build_object_store(settings, clock=clock)
    gateway = UploadGateway(
        store=store,
        rate_limiter=FixedWindowRateLimiter(
            max_per_window=settings.rate_limit_max_uploads,
            window_seconds=settings.rate_limit_window_seconds,
            clock=clock,
        ),
        validator=ContentValidator(settings.max_file_size_bytes),
        name_generator=NameGenerator(clock),
        grant_ttl_seconds=settings.grant_ttl_seconds,
        cache_control=settings.cache_control,
        compensate_orphans=settings.compensate_orphaned_objects,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if isinstance(store, LocalObjectStore):
            store.init()
        yield
        if isinstance(store, SupabaseObjectStore):
            store.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.gateway = gateway
    # base64 inflates by 4/3; the slack covers a data URL prefix
    max_form_part_size = settings.max_file_size_bytes * 4 // 3 + 4096

    def error_response(status_code: int, message: str) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": message})

    @app.exception_handler(UploadRejected)
    async def upload_rejected_handler(_: Request, exc: UploadRejected):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        missing_fields = [
            ".".join(str(item) for item in error["loc"] if item not in ("body", "query"))
            for error in exc.errors()
            if error.get("type") == "missing"
        ]
        if missing_fields:
            message = f"missing parameters: {', '.join(missing_fields)}"
        else:
            message = "invalid request parameters"
        return error_response(400, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_: Request, exc: StarletteHTTPException):
        message_map = {
            404: "Not found",
            405: RejectionReason.METHOD_NOT_ALLOWED.default_message,
        }
        message = message_map.get(exc.status_code) or str(exc.detail) or "request failed"
        return error_response(exc.status_code, message)

    @app.get("/")
    def root() -> dict:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "environment": settings.app_env, "storage": settings.storage_backend}

    @app.post(
        "/api/upload",
        response_model=UploadResponse,
        responses={code: {"model": ErrorResponse} for code in (400, 405, 429, 500)},
    )
    async def upload_file(request: Request):
        client_key = client_key_from_headers(request.headers)
        gateway.admit(client_key)

        content_type = request.headers.get("content-type", "")
        if "multipart/form-data" not in content_type:
            raise UploadRejected(RejectionReason.MALFORMED_REQUEST, "Invalid content type")

        try:
            async with request.form(max_part_size=max_form_part_size) as form:
                file_data = _form_text(form, "fileData")
                file_name = _form_text(form, "fileName")
                file_size = _form_text(form, "fileSize")
                file_type = _form_text(form, "fileType")
        except StarletteHTTPException as exc:
            logger.info("unreadable upload form from %s: %s", client_key, exc.detail)
            if "maximum size" in str(exc.detail):
                raise gateway.validator.too_large() from None
            raise UploadRejected(RejectionReason.MALFORMED_REQUEST, "Invalid file data") from None

        if not file_data or not file_name:
            raise UploadRejected(RejectionReason.MALFORMED_REQUEST)

        try:
            data = decode_file_data(file_data)
            declared_size = int(file_size) if file_size not in (None, "") else len(data)
        except (binascii.Error, ValueError):
            raise UploadRejected(RejectionReason.MALFORMED_REQUEST, "Invalid file data") from None

        candidate = UploadCandidate(
            data=data,
            declared_name=file_name,
            declared_size=declared_size,
            declared_content_type=file_type or "application/octet-stream",
        )

        try:
            grant = await run_in_threadpool(gateway.store_and_grant, candidate, client_key)
        except UploadRejected:
            raise
        except Exception:
            logger.exception("unexpected failure handling upload from %s", client_key)
            raise UploadRejected(RejectionReason.INTERNAL_ERROR) from None

        return UploadResponse(
            file=UploadedFile(
                name=file_name,
                url=grant.view_url,
                download_url=grant.download_url,
                expires_at=grant.expires_at,
            )
        )

    @app.get("/v1/objects/{key}")
    def serve_object(
        key: str,
        exp: int = Query(...),
        sig: str = Query(...),
        download: int = Query(0),
    ):
        if not isinstance(store, LocalObjectStore):
            return error_response(404, "Not found")

        if exp < int(clock()):
            return error_response(410, "link expired")
        if not store.signer.verify(key=key, expires_at=exp, download=bool(download), signature=sig):
            return error_response(403, "invalid signature")

        try:
            path = store.path_for(key)
        except StorageError:
            return error_response(404, "file not found")
        if not path.exists():
            return error_response(404, "file not found")

        return FileResponse(
            path=path,
            filename=key,
            media_type=STORED_CONTENT_TYPE,
            headers={"Cache-Control": f"max-age={settings.cache_control}"},
            content_disposition_type="attachment" if download else "inline",
        )

    return app


app = create_app()
