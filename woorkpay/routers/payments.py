"""Mercado Pago checkout endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from woorkpay.db import get_db
from woorkpay.models import Profile
from woorkpay.schemas.payment import CardPaymentRead, PaymentCreate, PaymentStatusRead, PixPaymentRead
from woorkpay.security import get_current_profile
from woorkpay.services import payments as payments_service
from woorkpay.services.payment_initiator import PaymentProcessor
from woorkpay.services.psp_mercadopago import get_processor

router = APIRouter(prefix="/payments/mercadopago", tags=["payments"])


@router.post(
    "",
    response_model=PixPaymentRead | CardPaymentRead,
    status_code=status.HTTP_200_OK,
)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
    processor: PaymentProcessor = Depends(get_processor),
):
    """Charge the payer with PIX or a tokenized card and credit the target ledger."""

    return payments_service.create_mercadopago_payment(
        db,
        profile=profile,
        payload=payload,
        processor=processor,
    )


@router.get("/{payment_id}", response_model=PaymentStatusRead)
def get_payment_status(
    payment_id: str,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
    processor: PaymentProcessor = Depends(get_processor),
):
    return payments_service.check_payment_status(
        db,
        profile=profile,
        processor_payment_id=payment_id,
        processor=processor,
    )
