"""Background reconciliation of pending and uncredited processor payments."""
from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from woorkpay import db as db_module
from woorkpay.config import get_settings
from woorkpay.core.runtime_state import record_reconciliation_run
from woorkpay.models import PaymentRecordStatus, ProposalPayment, WoorkoinsPayment
from woorkpay.services import ledger
from woorkpay.services.payment_initiator import PaymentProcessor
from woorkpay.services.psp_mercadopago import MercadoPagoClient
from woorkpay.utils.errors import PaymentError
from woorkpay.utils.time import utcnow

logger = logging.getLogger(__name__)


def _stale_payment_ids(db: Session, model, *, min_age_minutes: int, limit: int) -> list[str]:
    cutoff = utcnow() - timedelta(minutes=min_age_minutes)
    stmt = (
        select(model.processor_payment_id)
        .where(
            or_(
                (model.status == PaymentRecordStatus.PENDING) & (model.created_at <= cutoff),
                (model.status == PaymentRecordStatus.PAID) & model.credited_at.is_(None),
            )
        )
        .order_by(model.created_at)
        .limit(limit)
    )
    return list(db.scalars(stmt))


def reconcile_pending_payments(db: Session, processor: PaymentProcessor) -> dict[str, int]:
    """Re-poll stale payments and resume crediting. One failure never stops the batch."""

    settings = get_settings()
    payment_ids: list[str] = []
    for model in (ProposalPayment, WoorkoinsPayment):
        payment_ids.extend(
            _stale_payment_ids(
                db,
                model,
                min_age_minutes=settings.RECONCILE_MIN_AGE_MINUTES,
                limit=settings.RECONCILE_BATCH_SIZE,
            )
        )

    stats = {"checked": 0, "credited": 0, "failed": 0}
    for payment_id in dict.fromkeys(payment_ids):
        stats["checked"] += 1
        try:
            processor_payment = processor.get_payment(payment_id)
            record = ledger.reconcile_payment(db, processor_payment)
        except PaymentError as exc:
            stats["failed"] += 1
            logger.warning(
                "Reconciliation failed for payment",
                extra={"processor_payment_id": payment_id, "code": exc.code},
            )
            continue
        if record is not None and record.credited_at is not None:
            stats["credited"] += 1

    logger.info("Reconciliation pass finished", extra=stats)
    record_reconciliation_run(stats)
    return stats


def reconcile_pending_payments_once() -> None:
    """Scheduler entry point: open a session and a processor client for one pass."""

    if not get_settings().mercadopago_configured:
        logger.info("Skipping reconciliation; Mercado Pago is not configured")
        return

    session = db_module.get_sessionmaker()()
    try:
        reconcile_pending_payments(session, MercadoPagoClient.from_env())
    finally:
        session.close()


__all__ = ["reconcile_pending_payments", "reconcile_pending_payments_once"]
