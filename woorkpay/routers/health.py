"""Health check endpoint."""
from __future__ import annotations

import logging

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from woorkpay.config import get_settings
from woorkpay.core.runtime_state import is_scheduler_active, last_reconciliation_run
from woorkpay.db import get_engine
from woorkpay.services.scheduler_lock import describe_scheduler_lock

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)


def _db_status() -> str:
    """Return 'ok' if the DB is reachable, 'error' otherwise."""

    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:  # noqa: BLE001
        logger.exception("DB health check failed")
        return "error"


def _expected_migration_head() -> str | None:
    try:
        script = ScriptDirectory.from_config(Config("alembic.ini"))
        return script.get_current_head()
    except Exception:  # noqa: BLE001
        logger.exception("Failed to load Alembic head revision")
        return None


def _migrations_status() -> tuple[bool, str]:
    expected_head = _expected_migration_head()
    try:
        with get_engine().connect() as conn:
            current = conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    except SQLAlchemyError:
        logger.exception("Migration check failed")
        return False, "unknown"
    if expected_head is None:
        return False, "unknown"
    if current == expected_head:
        return True, "up_to_date"
    return False, "out_of_date"


def _scheduler_lock_state() -> dict[str, object]:
    try:
        return describe_scheduler_lock()
    except SQLAlchemyError:
        logger.exception("Scheduler lock lookup failed")
        return {"status": "unknown", "owner": None}


@router.get("", summary="Health check")
def healthcheck() -> dict[str, object]:
    settings = get_settings()
    db_status = _db_status()
    db_ok = db_status == "ok"
    if db_ok:
        migration_ok, migration_status = _migrations_status()
    else:
        migration_ok, migration_status = False, "unknown"
    return {
        "status": "ok" if db_ok and migration_ok else "degraded",
        "db_ok": db_ok,
        "db_status": db_status,
        "migrations_ok": migration_ok,
        "migrations_status": migration_status,
        "mercadopago": {
            "access_token_configured": settings.mercadopago_configured,
            "webhook_secret_configured": bool(settings.MERCADOPAGO_WEBHOOK_SECRET),
            "notification_url_configured": bool(settings.MERCADOPAGO_NOTIFICATION_URL),
        },
        "scheduler_config_enabled": bool(settings.SCHEDULER_ENABLED),
        "scheduler_running": is_scheduler_active(),
        "last_reconciliation": last_reconciliation_run(),
        "scheduler_lock": _scheduler_lock_state() if db_ok else {"status": "unknown", "owner": None},
    }
