"""Routes for Mercado Pago notifications."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from woorkpay.db import get_db
from woorkpay.services import webhooks
from woorkpay.services.payment_initiator import PaymentProcessor
from woorkpay.services.psp_mercadopago import get_processor
from woorkpay.utils.errors import WebhookPayloadInvalid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/mercadopago", status_code=status.HTTP_200_OK)
async def mercadopago_webhook(
    request: Request,
    db: Session = Depends(get_db),
    processor: PaymentProcessor = Depends(get_processor),
) -> dict[str, str]:
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        raise WebhookPayloadInvalid("Webhook body is not valid JSON.")
    if not isinstance(payload, dict):
        raise WebhookPayloadInvalid("Webhook body must be a JSON object.")

    # Query-string notifications (?type=payment&data.id=...) carry no body.
    if "data" not in payload and request.query_params.get("data.id"):
        payload["data"] = {"id": request.query_params["data.id"]}
        payload.setdefault("type", request.query_params.get("type") or request.query_params.get("topic"))

    headers = {k: v for k, v in request.headers.items()}
    return webhooks.handle_mercadopago_notification(
        db,
        payload=payload,
        headers=headers,
        processor=processor,
    )


__all__ = ["router"]
