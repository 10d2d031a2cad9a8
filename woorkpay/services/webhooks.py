"""Services handling Mercado Pago payment notifications."""
from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from woorkpay.config import get_settings
from woorkpay.models import ProcessorWebhookEvent
from woorkpay.services import ledger
from woorkpay.services.payment_initiator import PaymentProcessor
from woorkpay.utils.errors import WebhookPayloadInvalid, WebhookSignatureInvalid
from woorkpay.utils.time import utcnow

logger = logging.getLogger(__name__)

PROVIDER = "mercadopago"
PAYMENT_TOPIC = "payment"


def _masked_secret_status(secret: str | None) -> str | None:
    """Return a fingerprint instead of the raw secret for logging."""

    if not secret:
        return None
    return "sha256:" + hashlib.sha256(secret.encode()).hexdigest()[:8]


def _get_header(headers: Mapping[str, str], key: str) -> str | None:
    for h_key, value in headers.items():
        if h_key.lower() == key.lower():
            return value
    return None


def _parse_signature_header(value: str) -> tuple[str | None, str | None]:
    """Split ``ts=...,v1=...`` into its timestamp and hash parts."""

    parts: dict[str, str] = {}
    for item in value.split(","):
        key, sep, val = item.partition("=")
        if sep:
            parts[key.strip()] = val.strip()
    return parts.get("ts"), parts.get("v1")


def compute_signature(secret: str, *, data_id: str, request_id: str, ts: str) -> str:
    """HMAC-SHA256 of the manifest Mercado Pago signs for each notification."""

    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    return hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_mercadopago_signature(headers: Mapping[str, str], data_id: str) -> None:
    """Validate ``x-signature`` when a webhook secret is configured; raise on mismatch."""

    secret = get_settings().MERCADOPAGO_WEBHOOK_SECRET
    if not secret:
        return

    signature = _get_header(headers, "x-signature")
    request_id = _get_header(headers, "x-request-id") or ""
    if not signature:
        logger.warning("Mercado Pago signature header missing", extra={"data_id": data_id})
        raise WebhookSignatureInvalid("Signature header missing.")

    ts, provided = _parse_signature_header(signature)
    if not ts or not provided:
        raise WebhookSignatureInvalid("Malformed signature header.")

    expected = compute_signature(secret, data_id=data_id, request_id=request_id, ts=ts)
    if not hmac.compare_digest(expected, provided):
        logger.warning(
            "Mercado Pago signature mismatch",
            extra={"data_id": data_id, "secret_status": _masked_secret_status(secret)},
        )
        raise WebhookSignatureInvalid()


def _data_id(payload: Mapping[str, Any]) -> str:
    data = payload.get("data")
    data_id = data.get("id") if isinstance(data, Mapping) else None
    if data_id in (None, ""):
        raise WebhookPayloadInvalid("Webhook data.id is required.")
    return str(data_id)


def _event_id(payload: Mapping[str, Any], kind: str, data_id: str) -> str:
    notification_id = payload.get("id")
    if notification_id not in (None, ""):
        return str(notification_id)
    return f"{kind}:{data_id}:{payload.get('action') or 'notification'}"


def _find_event(db: Session, event_id: str) -> ProcessorWebhookEvent | None:
    return db.scalars(
        select(ProcessorWebhookEvent)
        .where(
            ProcessorWebhookEvent.provider == PROVIDER,
            ProcessorWebhookEvent.event_id == event_id,
        )
        .execution_options(populate_existing=True)
    ).first()


def handle_mercadopago_notification(
    db: Session,
    *,
    payload: Mapping[str, Any],
    headers: Mapping[str, str],
    processor: PaymentProcessor,
) -> dict[str, str]:
    """Verify, deduplicate and apply a payment notification.

    A delivery counts as a duplicate only once ``processed_at`` is set. A
    delivery whose crediting failed stays unprocessed, so Mercado Pago's
    redelivery resumes it.
    """

    kind = str(payload.get("type") or payload.get("topic") or "unknown")
    if kind != PAYMENT_TOPIC:
        logger.info("Ignoring Mercado Pago notification", extra={"kind": kind})
        return {"status": "ignored"}

    data_id = _data_id(payload)
    verify_mercadopago_signature(headers, data_id)
    event_id = _event_id(payload, kind, data_id)

    event = _find_event(db, event_id)
    if event is not None and event.processed_at is not None:
        logger.info("Duplicate Mercado Pago notification", extra={"event_id": event_id})
        return {"status": "duplicate"}

    if event is None:
        event = ProcessorWebhookEvent(
            provider=PROVIDER,
            event_id=event_id,
            kind=kind,
            processor_payment_id=data_id,
            raw_json=dict(payload),
            received_at=utcnow(),
        )
        try:
            db.add(event)
            db.flush()
        except IntegrityError:
            # Another delivery of the same notification is in flight.
            db.rollback()
            logger.info("Duplicate Mercado Pago notification", extra={"event_id": event_id})
            return {"status": "duplicate"}
    else:
        logger.info("Resuming unprocessed Mercado Pago notification", extra={"event_id": event_id})

    try:
        processor_payment = processor.get_payment(data_id)
    except Exception:
        db.rollback()
        raise

    record = ledger.reconcile_payment(db, processor_payment)
    event.processed_at = utcnow()
    db.add(event)
    db.commit()

    logger.info(
        "Mercado Pago notification processed",
        extra={
            "event_id": event_id,
            "processor_payment_id": data_id,
            "status": processor_payment.status,
            "known": record is not None,
        },
    )
    if record is None:
        return {"status": "payment not found"}
    return {"status": "ok"}


__all__ = [
    "compute_signature",
    "handle_mercadopago_notification",
    "verify_mercadopago_signature",
]
