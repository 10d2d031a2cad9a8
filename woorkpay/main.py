from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from woorkpay import db
from woorkpay.config import ALLOWED_CREATE_ENV, AppInfo, get_settings
from woorkpay.core.logging import get_logger, setup_logging
from woorkpay.core.runtime_state import set_scheduler_active
import woorkpay.models  # registers the tables
from woorkpay.routers import get_api_router
from woorkpay.services.reconciliation import reconcile_pending_payments_once
from woorkpay.services.scheduler_lock import (
    refresh_scheduler_lock,
    release_scheduler_lock,
    try_acquire_scheduler_lock,
)
from woorkpay.utils.errors import InternalError, PaymentError, error_response

logger = get_logger(__name__)
scheduler: AsyncIOScheduler | None = None


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    runtime_settings = get_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "x-client-info", "apikey"],
    )

    if runtime_settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware, app_name="woorkpay")
        fastapi_app.add_route("/metrics", handle_metrics)

    if runtime_settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=runtime_settings.SENTRY_DSN, traces_sample_rate=0.2)


def _log_processor_config(settings: Any) -> None:
    if not settings.mercadopago_configured:
        logger.warning(
            "MERCADOPAGO_ACCESS_TOKEN is not set; payment requests will be refused.",
            extra={"env": settings.app_env},
        )
    if not settings.MERCADOPAGO_WEBHOOK_SECRET:
        logger.warning(
            "MERCADOPAGO_WEBHOOK_SECRET is not set; webhook signatures are not verified.",
            extra={"env": settings.app_env},
        )


def _start_scheduler(settings: Any) -> bool:
    """Start the reconciliation job when this runner wins the DB lock."""

    global scheduler
    if not try_acquire_scheduler_lock():
        logger.warning(
            "Scheduler disabled because lock is already held by another instance.",
            extra={"env": settings.app_env},
        )
        return False

    scheduler = AsyncIOScheduler()
    scheduler.start()
    scheduler.add_job(
        reconcile_pending_payments_once,
        "interval",
        minutes=settings.RECONCILE_INTERVAL_MINUTES,
        id="reconcile-payments",
        replace_existing=True,
    )
    scheduler.add_job(
        refresh_scheduler_lock,
        "interval",
        seconds=60,
        id="scheduler-lock-heartbeat",
        replace_existing=True,
    )
    set_scheduler_active(True)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Application startup", extra={"env": settings.app_env})
    _log_processor_config(settings)

    db.init_engine()
    env_lower = settings.app_env.lower()
    if settings.ALLOW_DB_CREATE_ALL and env_lower in ALLOWED_CREATE_ENV:
        logger.warning(
            "Running Base.metadata.create_all() because APP_ENV=%s and ALLOW_DB_CREATE_ALL=True",
            settings.app_env,
        )
        db.create_all()
    else:
        logger.info(
            "Skipping create_all(); use Alembic migrations. APP_ENV=%s, ALLOW_DB_CREATE_ALL=%s",
            settings.app_env,
            settings.ALLOW_DB_CREATE_ALL,
        )

    # Enable SCHEDULER_ENABLED on one runner only; the DB lock is a second guard.
    set_scheduler_active(False)
    lock_acquired = _start_scheduler(settings) if settings.SCHEDULER_ENABLED else False
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
            scheduler = None
        if lock_acquired:
            release_scheduler_lock()
        set_scheduler_active(False)
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.app_env})


app_info = AppInfo()

app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)

_configure_middlewares(app)
app.include_router(get_api_router())


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    logger.info(
        "Payment request failed",
        extra={"code": exc.code, "path": request.url.path, "status": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    message = errors[0]["msg"] if errors else "Invalid request."
    payload = error_response("INVALID_REQUEST", message, {"errors": errors})
    return JSONResponse(status_code=400, content=payload)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content: dict[str, Any] = detail
    else:
        content = error_response("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc)
    return JSONResponse(status_code=500, content=InternalError().to_payload())


__all__ = ["app"]
