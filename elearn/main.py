"""E-learning backend - FastAPI app entry point."""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from elearn.core.config import Settings, get_settings
from elearn.core.errors import AppError
from elearn.core.logging import configure_logging
from elearn.db.base import Base
from elearn.db.session import build_engine, build_sessionmaker
from elearn.routers import auth, courses, payments, progress, topics, users
from elearn.services.esewa import EsewaClient
from elearn.services.mailer import Mailer
from elearn.services.payments import reconcile_pending_payments
from elearn.services.tokens import purge_expired_refresh_tokens

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with app.state.sessionmaker() as db:
        purged = await purge_expired_refresh_tokens(db)
        await db.commit()
        applied = await reconcile_pending_payments(db)
    logger.info("Startup: purged %d expired refresh tokens, reconciled %d payments", purged, applied)

    yield

    await app.state.gateway.aclose()
    await app.state.engine.dispose()


def _field_name(loc) -> str:
    # drop the "body"/"query" prefix FastAPI puts in front
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts)


def _register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message, **exc.extra},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [{"field": _field_name(e["loc"]), "message": e["msg"]} for e in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Validation failed", "errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Invalid path! Current route does not exist!" if exc.status_code == 404 else exc.detail
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"success": False, "message": str(exc) or "Internal server error"}
        if not settings.is_production:
            content["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=500, content=content)


def create_app(
    settings: Settings | None = None,
    mailer: Mailer | None = None,
    gateway: EsewaClient | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description="Courses, accounts, progress tracking and eSewa payments",
        debug=settings.debug,
        lifespan=lifespan,
    )

    engine = build_engine(settings.database_url, echo=settings.debug)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.mailer = mailer or Mailer(settings)
    app.state.gateway = gateway or EsewaClient(
        merchant_id=settings.esewa_merchant_id,
        verify_url=settings.esewa_verify_url,
        timeout=settings.esewa_timeout_seconds,
        allow_mock=settings.esewa_mock_verification and not settings.is_production,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    _register_error_handlers(app, settings)

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(courses.router)
    app.include_router(topics.router)
    app.include_router(progress.router)
    app.include_router(payments.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "environment": settings.environment}

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("elearn.main:create_app", factory=True, host="0.0.0.0", port=8000)
