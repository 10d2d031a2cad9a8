"""Mercado Pago checkout orchestration: validate, charge, split, credit, respond."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from woorkpay.config import Settings, get_settings
from woorkpay.models import (
    PaymentMethod,
    PaymentRecordStatus,
    Profile,
    ProposalPayment,
    WoorkoinsPayment,
)
from woorkpay.schemas.payment import (
    CardPaymentRead,
    CurrencyTarget,
    PaymentCreate,
    PaymentStatusRead,
    PaymentTarget,
    PixPaymentRead,
    ProposalTarget,
)
from woorkpay.services import ledger
from woorkpay.services.payment_initiator import (
    GatewayConfigLookup,
    InitiatedPayment,
    PaymentProcessor,
    PurchaseIntent,
    initiate_payment,
    load_gateway_config,
    new_idempotency_key,
)
from woorkpay.services.split import SplitResult, apply_discount, split
from woorkpay.utils.audit import actor_from_profile, log_audit
from woorkpay.utils.errors import CreditingIncomplete, PaymentNotFound

logger = logging.getLogger(__name__)


def processor_fee_percent(settings: Settings, method: PaymentMethod) -> Decimal:
    if method == PaymentMethod.PIX:
        return settings.MERCADOPAGO_PIX_FEE_PERCENT
    return settings.MERCADOPAGO_CARD_FEE_PERCENT


def _external_reference(target: PaymentTarget | None, profile: Profile) -> str | None:
    if isinstance(target, ProposalTarget):
        return f"proposal:{target.proposal_id}"
    if isinstance(target, CurrencyTarget):
        return f"woorkoins:{profile.id}:{target.coins}"
    return None


def format_payment_response(initiated: InitiatedPayment) -> PixPaymentRead | CardPaymentRead:
    """Shape the response for the payment method; PIX and card fields never mix."""

    processor_payment = initiated.processor_payment
    if initiated.method == PaymentMethod.PIX:
        return PixPaymentRead(
            payment_id=processor_payment.id,
            qrcode=processor_payment.qr_code,
            qrcode_base64=processor_payment.qr_code_base64,
            amount=initiated.final_amount,
            original_amount=initiated.original_amount,
            discount_applied=initiated.discount_applied,
            expires_at=processor_payment.expires_at,
        )
    return CardPaymentRead(
        payment_id=processor_payment.id,
        status=processor_payment.status,
        status_detail=processor_payment.status_detail,
        amount=initiated.final_amount,
        original_amount=initiated.original_amount,
        discount_applied=initiated.discount_applied,
    )


def create_mercadopago_payment(
    db: Session,
    *,
    profile: Profile,
    payload: PaymentCreate,
    processor: PaymentProcessor,
    gateway_lookup: GatewayConfigLookup | None = None,
    settings: Settings | None = None,
) -> PixPaymentRead | CardPaymentRead:
    """Charge the payer and credit the targeted ledger.

    Lookups and split validation happen before the processor call, so a
    failure there leaves no trace. After the charge, ledger failures surface
    as ``CreditingIncomplete`` with the payment already recorded.
    """

    settings = settings or get_settings()
    target = payload.target()

    # Validation: nothing below may fail after the processor has charged.
    gateway = (gateway_lookup or (lambda: load_gateway_config(db)))()
    expected_final = apply_discount(payload.amount, gateway.discount_for(payload.method))
    proposal_split: tuple[int, SplitResult] | None = None
    if isinstance(target, ProposalTarget):
        ledger.get_proposal_with_payee(db, target.proposal_id)
        proposal_split = (
            target.proposal_id,
            split(
                expected_final,
                settings.PLATFORM_COMMISSION_PERCENT,
                processor_fee_percent(settings, payload.method),
            ),
        )

    intent = PurchaseIntent(
        method=payload.method,
        gross_amount=payload.amount,
        description=payload.description,
        customer=payload.customer,
        card_token=payload.token,
        card=payload.card,
        external_reference=_external_reference(target, profile),
        idempotency_key=new_idempotency_key(),
    )
    initiated = initiate_payment(
        intent,
        gateway_lookup=lambda: gateway,
        processor=processor,
        notification_url=settings.MERCADOPAGO_NOTIFICATION_URL,
    )
    processor_payment = initiated.processor_payment

    try:
        log_audit(
            db,
            actor=actor_from_profile(profile),
            action="PAYMENT_CREATED",
            entity="ProcessorPayment",
            entity_id=processor_payment.id,
            data={
                "method": initiated.method.value,
                "status": processor_payment.status,
                "amount": str(initiated.final_amount),
                "original_amount": str(initiated.original_amount),
                "discount_applied": str(initiated.discount_applied),
                "external_reference": intent.external_reference,
                "email": payload.customer.email,
            },
        )
        db.commit()

        if proposal_split is not None:
            proposal_id, split_result = proposal_split
            ledger.apply_proposal_payment(
                db,
                proposal_id=proposal_id,
                processor_payment=processor_payment,
                method=initiated.method,
                final_amount=initiated.final_amount,
                split_result=split_result,
                payer_profile_id=profile.id,
            )
        elif isinstance(target, CurrencyTarget):
            ledger.apply_woorkoins_purchase(
                db,
                profile_id=profile.id,
                processor_payment=processor_payment,
                method=initiated.method,
                coins=target.coins,
                price=initiated.final_amount,
            )
        else:
            logger.warning(
                "Payment created without a ledger target",
                extra={"processor_payment_id": processor_payment.id, "profile_id": profile.id},
            )
    except CreditingIncomplete:
        raise
    except Exception as exc:
        db.rollback()
        logger.exception(
            "Charge succeeded but recording did not complete",
            extra={
                "processor_payment_id": processor_payment.id,
                "amount": str(initiated.final_amount),
                "external_reference": intent.external_reference,
            },
        )
        raise CreditingIncomplete(
            details={
                "processor_payment_id": processor_payment.id,
                "external_reference": intent.external_reference,
            }
        ) from exc

    return format_payment_response(initiated)


def _is_payer(record: ProposalPayment | WoorkoinsPayment, profile: Profile) -> bool:
    if isinstance(record, WoorkoinsPayment):
        return record.profile_id == profile.id
    return record.payer_profile_id == profile.id


def check_payment_status(
    db: Session,
    *,
    profile: Profile,
    processor_payment_id: str,
    processor: PaymentProcessor,
) -> PaymentStatusRead:
    """Poll the processor for a payment the caller owns and apply a late approval."""

    record = ledger.find_payment_record(db, processor_payment_id)
    if record is None or not _is_payer(record, profile):
        raise PaymentNotFound(details={"payment_id": processor_payment_id})

    processor_payment = processor.get_payment(processor_payment_id)
    logger.info(
        "Payment status checked",
        extra={"processor_payment_id": processor_payment_id, "status": processor_payment.status},
    )
    record = ledger.reconcile_payment(db, processor_payment) or record

    status = "paid" if record.status == PaymentRecordStatus.PAID else processor_payment.status
    return PaymentStatusRead(
        payment_id=processor_payment_id,
        status=status,
        credited=record.credited_at is not None,
    )


__all__ = [
    "check_payment_status",
    "create_mercadopago_payment",
    "format_payment_response",
    "processor_fee_percent",
]
