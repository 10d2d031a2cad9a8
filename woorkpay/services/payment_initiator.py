"""Charge submission: gateway config, discount, processor payload and call."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Protocol
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from woorkpay.models import PaymentGatewayConfig, PaymentMethod
from woorkpay.schemas.payment import CardDetails, Customer
from woorkpay.schemas.processor import ProcessorPayment
from woorkpay.services.split import apply_discount, round_money, to_decimal
from woorkpay.utils.errors import GatewayDisabled

logger = logging.getLogger(__name__)


class PaymentProcessor(Protocol):
    def create_payment(self, payload: dict[str, Any], *, idempotency_key: str) -> ProcessorPayment: ...

    def get_payment(self, payment_id: str) -> ProcessorPayment: ...


@dataclass(frozen=True)
class GatewayConfig:
    """Per-request snapshot of the gateway configuration row."""

    enabled: bool
    pix_discount_percent: Decimal
    card_discount_percent: Decimal

    def discount_for(self, method: PaymentMethod) -> Decimal:
        if method == PaymentMethod.PIX:
            return self.pix_discount_percent
        return self.card_discount_percent


GatewayConfigLookup = Callable[[], GatewayConfig]


def load_gateway_config(db: Session) -> GatewayConfig:
    """Read the singleton gateway row; raise ``GatewayDisabled`` when unusable."""

    row = db.scalars(select(PaymentGatewayConfig).order_by(PaymentGatewayConfig.id).limit(1)).first()
    if row is None or not row.mercadopago_enabled:
        raise GatewayDisabled()
    return GatewayConfig(
        enabled=True,
        pix_discount_percent=to_decimal(row.mercadopago_pix_discount_percent or 0),
        card_discount_percent=to_decimal(row.mercadopago_card_discount_percent or 0),
    )


@dataclass(frozen=True)
class PurchaseIntent:
    method: PaymentMethod
    gross_amount: Decimal
    description: str
    customer: Customer
    card_token: str | None = None
    card: CardDetails | None = None
    external_reference: str | None = None
    idempotency_key: str = ""


@dataclass(frozen=True)
class InitiatedPayment:
    processor_payment: ProcessorPayment
    method: PaymentMethod
    final_amount: Decimal
    original_amount: Decimal
    discount_applied: Decimal
    idempotency_key: str


def new_idempotency_key() -> str:
    return str(uuid4())


def _payer(customer: Customer) -> dict[str, Any]:
    payer: dict[str, Any] = {"email": customer.email}
    if customer.name and customer.name.strip():
        parts = customer.name.split()
        payer["first_name"] = parts[0]
        payer["last_name"] = " ".join(parts[1:]) or parts[0]
    if customer.document:
        payer["identification"] = {
            "type": "CPF" if len(customer.document) == 11 else "CNPJ",
            "number": customer.document,
        }
    return payer


def build_processor_payload(
    intent: PurchaseIntent,
    final_amount: Decimal,
    *,
    notification_url: str | None = None,
) -> dict[str, Any]:
    """Build the ``/v1/payments`` body for a PIX or tokenized card charge."""

    payload: dict[str, Any] = {
        "transaction_amount": float(final_amount),
        "description": intent.description,
        "payer": _payer(intent.customer),
    }
    if intent.external_reference:
        payload["external_reference"] = intent.external_reference
    if notification_url:
        payload["notification_url"] = notification_url

    if intent.method == PaymentMethod.PIX:
        payload["payment_method_id"] = "pix"
        return payload

    # Card: only a pre-tokenized card is forwarded. Brand and issuer are
    # detected by the processor from the token unless the client sent them.
    card = intent.card or CardDetails()
    payload["token"] = intent.card_token
    payload["installments"] = card.installments
    if card.payment_method_id:
        payload["payment_method_id"] = card.payment_method_id
    if card.issuer_id:
        payload["issuer_id"] = card.issuer_id
    return payload


def initiate_payment(
    intent: PurchaseIntent,
    *,
    gateway_lookup: GatewayConfigLookup,
    processor: PaymentProcessor,
    notification_url: str | None = None,
) -> InitiatedPayment:
    """Apply the method discount and submit the charge to the processor.

    Processor failures propagate as ``ProcessorRejected`` / ``ProcessorUnknown``
    and are never retried here.
    """

    gateway = gateway_lookup()
    discount = gateway.discount_for(intent.method)
    final_amount = apply_discount(intent.gross_amount, discount)
    idempotency_key = intent.idempotency_key or new_idempotency_key()

    logger.info(
        "Submitting payment to processor",
        extra={
            "method": intent.method.value,
            "amount": str(intent.gross_amount),
            "final_amount": str(final_amount),
            "discount": str(discount),
            "external_reference": intent.external_reference,
        },
    )
    payload = build_processor_payload(intent, final_amount, notification_url=notification_url)
    processor_payment = processor.create_payment(payload, idempotency_key=idempotency_key)
    logger.info(
        "Processor payment created",
        extra={"processor_payment_id": processor_payment.id, "status": processor_payment.status},
    )
    return InitiatedPayment(
        processor_payment=processor_payment,
        method=intent.method,
        final_amount=final_amount,
        original_amount=round_money(intent.gross_amount),
        discount_applied=discount,
        idempotency_key=idempotency_key,
    )


__all__ = [
    "GatewayConfig",
    "GatewayConfigLookup",
    "InitiatedPayment",
    "PaymentProcessor",
    "PurchaseIntent",
    "build_processor_payload",
    "initiate_payment",
    "load_gateway_config",
    "new_idempotency_key",
]
