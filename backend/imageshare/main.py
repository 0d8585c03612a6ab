import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from imageshare.api.admin import router as admin_router
from imageshare.api.albums import router as albums_router
from imageshare.api.auth import router as auth_router
from imageshare.api.images import router as images_router
from imageshare.api.moderation import router as moderation_router
from imageshare.api.profiles import router as profiles_router
from imageshare.core.admin_sync import sync_admin_users
from imageshare.core.api_response import app_error_payload, error_response_payload, get_request_id
from imageshare.core.config import Settings
from imageshare.core.errors import AppError
from imageshare.core.mailer import Mailer
from imageshare.core.sessions import SessionManager
from imageshare.core.uploads import LocalFileStore
from imageshare.db.migrate import upgrade_to_head
from imageshare.db.session import create_db_engine, create_session_factory

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.auto_migrate:
        upgrade_to_head(app.state.engine)
    if settings.admin_emails:
        db: Session = app.state.session_factory()
        try:
            sync_admin_users(db, settings.admin_emails, settings.admin_password)
        finally:
            db.close()

    yield

    app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="ImageShare API", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = create_db_engine(settings.database_url)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.sessions = SessionManager(settings.secret_key, settings.session_ttl_minutes)
    app.state.mailer = Mailer.from_settings(settings)
    app.state.file_store = LocalFileStore(settings.upload_dir, settings.max_upload_bytes)

    for router in (auth_router, images_router, moderation_router, albums_router, profiles_router, admin_router):
        app.include_router(router, prefix="/api")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        started_at = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started_at) * 1000
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "http_request request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.warning("app_error request_id=%s code=%s message=%s", get_request_id(request), exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=app_error_payload(request, exc))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        message = detail if isinstance(detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response_payload(
                request,
                code=f"http_{exc.status_code}",
                message=message,
                details=detail,
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response_payload(
                request,
                code="request_validation_error",
                message="Validation error",
                details=jsonable_errors(exc),
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error request_id=%s", get_request_id(request), exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=error_response_payload(
                request,
                code="internal_error",
                message="Internal server error",
            ),
        )

    @app.get("/health")
    def health(request: Request):
        return {"ok": True, "status": "ok", "request_id": get_request_id(request)}

    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")
    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=5000)
