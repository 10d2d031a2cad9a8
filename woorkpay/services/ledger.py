"""Payment records and ledger crediting for proposals and Woorkoins purchases.

Every write here is keyed by the processor payment ID and safe to replay:

* the payment row is upserted under a unique constraint and committed first;
* crediting is claimed by setting ``credited_at`` with a compare-and-set, so
  only one invocation ever mutates a balance for a given payment;
* balances move through SQL-side increments, never read-then-write.

A failure after the payment row is committed leaves it with ``credited_at``
NULL and raises ``CreditingIncomplete``; any replay (client retry, webhook,
status check or the reconciliation job) resumes at the credit step.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from woorkpay.models import (
    FreelancerWallet,
    PaymentMethod,
    PaymentRecordStatus,
    Profile,
    Proposal,
    ProposalPayment,
    ProposalPaymentStatus,
    ProposalStatusHistory,
    WoorkoinsBalance,
    WoorkoinsPayment,
    WoorkoinsTransaction,
)
from woorkpay.schemas.processor import ProcessorPayment
from woorkpay.services.idempotency import get_existing_by_key
from woorkpay.services.split import SplitResult, round_money
from woorkpay.utils.audit import log_audit
from woorkpay.utils.errors import CreditingIncomplete, ProposalNotFound
from woorkpay.utils.time import utcnow

logger = logging.getLogger(__name__)

PaymentRecord = TypeVar("PaymentRecord", ProposalPayment, WoorkoinsPayment)

PURCHASE_TRANSACTION_TYPE = "purchase"


def _initial_status(processor_payment: ProcessorPayment) -> PaymentRecordStatus:
    return PaymentRecordStatus.PAID if processor_payment.is_approved else PaymentRecordStatus.PENDING


def _apply_processor_status(record: ProposalPayment | WoorkoinsPayment, processor_payment: ProcessorPayment) -> None:
    """Move a local record forward according to the processor status. Never regresses ``paid``."""

    record.payment_data = processor_payment.raw
    if processor_payment.is_approved:
        if record.status != PaymentRecordStatus.PAID:
            record.status = PaymentRecordStatus.PAID
    elif processor_payment.is_failed:
        if record.status == PaymentRecordStatus.PENDING:
            record.status = PaymentRecordStatus.FAILED
        elif record.status == PaymentRecordStatus.PAID:
            logger.warning(
                "Processor reports a paid payment as %s; leaving ledger untouched",
                processor_payment.status,
                extra={"processor_payment_id": processor_payment.id},
            )


def _claim_credit(db: Session, model: Type[PaymentRecord], record_id: int) -> bool:
    """Set ``credited_at`` only if still NULL. Returns True for the single winner."""

    result = db.execute(
        update(model)
        .where(
            model.id == record_id,
            model.status == PaymentRecordStatus.PAID,
            model.credited_at.is_(None),
        )
        .values(credited_at=utcnow())
    )
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Proposal path
# ---------------------------------------------------------------------------


def get_proposal_with_payee(db: Session, proposal_id: int) -> tuple[Proposal, Profile]:
    proposal = db.get(Proposal, proposal_id)
    if proposal is None:
        raise ProposalNotFound(details={"proposal_id": proposal_id})
    payee = db.get(Profile, proposal.freelancer_id)
    if payee is None:
        raise ProposalNotFound(
            "Proposal payee profile not found.", details={"proposal_id": proposal_id}
        )
    return proposal, payee


def _find_proposal_payment(db: Session, proposal_id: int, processor_payment_id: str) -> ProposalPayment | None:
    stmt = (
        select(ProposalPayment)
        .where(
            ProposalPayment.proposal_id == proposal_id,
            ProposalPayment.processor_payment_id == processor_payment_id,
        )
        .execution_options(populate_existing=True)
        .limit(1)
    )
    return db.scalars(stmt).first()


def record_proposal_payment(
    db: Session,
    *,
    proposal: Proposal,
    processor_payment: ProcessorPayment,
    method: PaymentMethod,
    final_amount: Decimal,
    split_result: SplitResult,
    payer_profile_id: int | None,
) -> ProposalPayment:
    """Upsert and commit the payment row for ``(proposal, processor payment)``."""

    record = _find_proposal_payment(db, proposal.id, processor_payment.id)
    if record is None:
        record = ProposalPayment(
            proposal_id=proposal.id,
            processor_payment_id=processor_payment.id,
            payer_profile_id=payer_profile_id,
            payment_method=method,
            amount=round_money(final_amount),
            platform_commission=split_result.platform_commission,
            processor_fee=split_result.processor_fee,
            payee_net_amount=split_result.payee_net_amount,
            status=_initial_status(processor_payment),
            payment_data=processor_payment.raw,
        )
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
            logger.info(
                "Proposal payment recorded",
                extra={
                    "proposal_id": proposal.id,
                    "processor_payment_id": processor_payment.id,
                    "status": record.status.value,
                },
            )
            return record
        except IntegrityError:
            # Concurrent invocation inserted the same payment first.
            db.rollback()
            record = _find_proposal_payment(db, proposal.id, processor_payment.id)
            if record is None:
                raise
            logger.info(
                "Proposal payment reused after race",
                extra={"proposal_id": proposal.id, "processor_payment_id": processor_payment.id},
            )

    _apply_processor_status(record, processor_payment)
    db.commit()
    db.refresh(record)
    return record


def _credit_wallet(db: Session, profile_id: int, amount: Decimal) -> None:
    """Atomically add ``amount`` to the payee's pending balance, creating the wallet if absent."""

    increment = (
        update(FreelancerWallet)
        .where(FreelancerWallet.profile_id == profile_id)
        .values(pending_balance=FreelancerWallet.pending_balance + amount)
        .execution_options(synchronize_session=False)
    )
    if db.execute(increment).rowcount:
        return
    try:
        with db.begin_nested():
            db.add(
                FreelancerWallet(
                    profile_id=profile_id,
                    pending_balance=amount,
                    available_balance=Decimal("0"),
                    total_earned=Decimal("0"),
                    total_withdrawn=Decimal("0"),
                )
            )
    except IntegrityError:
        # Wallet created concurrently; fall back to the increment.
        if not db.execute(increment).rowcount:
            raise


def _update_proposal_summary(proposal: Proposal, record: ProposalPayment) -> None:
    proposal.accepted_amount = record.amount
    proposal.freelancer_amount = record.payee_net_amount
    proposal.platform_commission = record.platform_commission
    proposal.processor_fee = record.processor_fee
    if record.status == PaymentRecordStatus.PAID:
        if proposal.payment_status != ProposalPaymentStatus.PAID_ESCROW:
            proposal.payment_status = ProposalPaymentStatus.PAID_ESCROW
            proposal.work_status = "in_progress"
            proposal.paid_at = utcnow()
    elif proposal.payment_status != ProposalPaymentStatus.PAID_ESCROW:
        if record.status == PaymentRecordStatus.FAILED:
            proposal.payment_status = ProposalPaymentStatus.AWAITING_PAYMENT
        else:
            proposal.payment_status = ProposalPaymentStatus.PENDING


def settle_proposal_payment(db: Session, record: ProposalPayment) -> bool:
    """Refresh the proposal summary and credit the payee once. Returns True if credited now."""

    credited = False
    try:
        proposal = db.get(Proposal, record.proposal_id)
        if proposal is None:
            raise ProposalNotFound(details={"proposal_id": record.proposal_id})
        _update_proposal_summary(proposal, record)

        if record.status == PaymentRecordStatus.PAID and record.credited_at is None:
            if _claim_credit(db, ProposalPayment, record.id):
                _credit_wallet(db, proposal.freelancer_id, record.payee_net_amount)
                db.add(
                    ProposalStatusHistory(
                        proposal_id=proposal.id,
                        status_type="payment_made",
                        changed_by=record.payer_profile_id,
                        new_value={
                            "amount": str(record.amount),
                            "processor_payment_id": record.processor_payment_id,
                        },
                        message="Payment confirmed. Project started.",
                    )
                )
                log_audit(
                    db,
                    actor="system",
                    action="PROPOSAL_PAYMENT_CREDITED",
                    entity="ProposalPayment",
                    entity_id=record.processor_payment_id,
                    data={
                        "proposal_id": proposal.id,
                        "payee_profile_id": proposal.freelancer_id,
                        "amount": str(record.amount),
                        "platform_commission": str(record.platform_commission),
                        "processor_fee": str(record.processor_fee),
                        "payee_net_amount": str(record.payee_net_amount),
                    },
                )
                credited = True
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception(
            "Proposal crediting incomplete",
            extra={
                "processor_payment_id": record.processor_payment_id,
                "proposal_id": record.proposal_id,
                "amount": str(record.amount),
                "payee_net_amount": str(record.payee_net_amount),
            },
        )
        raise CreditingIncomplete(
            details={"processor_payment_id": record.processor_payment_id, "proposal_id": record.proposal_id}
        ) from exc

    db.refresh(record)
    if credited:
        logger.info(
            "Payee wallet credited",
            extra={
                "processor_payment_id": record.processor_payment_id,
                "proposal_id": record.proposal_id,
                "payee_net_amount": str(record.payee_net_amount),
            },
        )
    return credited


def apply_proposal_payment(
    db: Session,
    *,
    proposal_id: int,
    processor_payment: ProcessorPayment,
    method: PaymentMethod,
    final_amount: Decimal,
    split_result: SplitResult,
    payer_profile_id: int | None,
) -> ProposalPayment:
    """Record a proposal payment and, when approved, credit the payee's pending balance."""

    proposal, _payee = get_proposal_with_payee(db, proposal_id)
    record = record_proposal_payment(
        db,
        proposal=proposal,
        processor_payment=processor_payment,
        method=method,
        final_amount=final_amount,
        split_result=split_result,
        payer_profile_id=payer_profile_id,
    )
    settle_proposal_payment(db, record)
    return record


# ---------------------------------------------------------------------------
# Woorkoins path
# ---------------------------------------------------------------------------


def record_woorkoins_payment(
    db: Session,
    *,
    profile_id: int,
    processor_payment: ProcessorPayment,
    method: PaymentMethod,
    coins: int,
    price: Decimal,
) -> WoorkoinsPayment:
    """Upsert and commit the purchase payment row keyed by the processor payment ID."""

    record = get_existing_by_key(
        db, WoorkoinsPayment, processor_payment.id, key_field="processor_payment_id"
    )
    if record is None:
        record = WoorkoinsPayment(
            profile_id=profile_id,
            processor_payment_id=processor_payment.id,
            payment_method=method,
            amount=coins,
            price=round_money(price),
            status=_initial_status(processor_payment),
            payment_data=processor_payment.raw,
        )
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
            logger.info(
                "Woorkoins payment recorded",
                extra={
                    "profile_id": profile_id,
                    "processor_payment_id": processor_payment.id,
                    "status": record.status.value,
                },
            )
            return record
        except IntegrityError:
            db.rollback()
            record = get_existing_by_key(
                db, WoorkoinsPayment, processor_payment.id, key_field="processor_payment_id"
            )
            if record is None:
                raise

    _apply_processor_status(record, processor_payment)
    db.commit()
    db.refresh(record)
    return record


def _credit_woorkoins(db: Session, profile_id: int, coins: int) -> None:
    increment = (
        update(WoorkoinsBalance)
        .where(WoorkoinsBalance.profile_id == profile_id)
        .values(balance=WoorkoinsBalance.balance + coins)
        .execution_options(synchronize_session=False)
    )
    if db.execute(increment).rowcount:
        return
    try:
        with db.begin_nested():
            db.add(WoorkoinsBalance(profile_id=profile_id, balance=coins))
    except IntegrityError:
        if not db.execute(increment).rowcount:
            raise


def settle_woorkoins_payment(db: Session, record: WoorkoinsPayment) -> bool:
    """Credit the purchased Woorkoins once, logging the transaction first."""

    if record.status != PaymentRecordStatus.PAID or record.credited_at is not None:
        return False

    credited = False
    try:
        if _claim_credit(db, WoorkoinsPayment, record.id):
            db.add(
                WoorkoinsTransaction(
                    profile_id=record.profile_id,
                    type=PURCHASE_TRANSACTION_TYPE,
                    amount=record.amount,
                    description=f"Purchase of {record.amount} Woorkoins via Mercado Pago",
                    processor_payment_id=record.processor_payment_id,
                )
            )
            db.flush()
            _credit_woorkoins(db, record.profile_id, record.amount)
            log_audit(
                db,
                actor="system",
                action="WOORKOINS_CREDITED",
                entity="WoorkoinsPayment",
                entity_id=record.processor_payment_id,
                data={
                    "profile_id": record.profile_id,
                    "amount": record.amount,
                    "price": str(record.price),
                },
            )
            credited = True
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception(
            "Woorkoins crediting incomplete",
            extra={
                "processor_payment_id": record.processor_payment_id,
                "profile_id": record.profile_id,
                "amount": record.amount,
                "price": str(record.price),
            },
        )
        raise CreditingIncomplete(
            details={"processor_payment_id": record.processor_payment_id, "profile_id": record.profile_id}
        ) from exc

    db.refresh(record)
    if credited:
        logger.info(
            "Woorkoins credited",
            extra={
                "processor_payment_id": record.processor_payment_id,
                "profile_id": record.profile_id,
                "amount": record.amount,
            },
        )
    return credited


def apply_woorkoins_purchase(
    db: Session,
    *,
    profile_id: int,
    processor_payment: ProcessorPayment,
    method: PaymentMethod,
    coins: int,
    price: Decimal,
) -> WoorkoinsPayment:
    """Record a Woorkoins purchase and, when approved, credit the balance."""

    record = record_woorkoins_payment(
        db,
        profile_id=profile_id,
        processor_payment=processor_payment,
        method=method,
        coins=coins,
        price=price,
    )
    settle_woorkoins_payment(db, record)
    return record


# ---------------------------------------------------------------------------
# Reconciliation entry point
# ---------------------------------------------------------------------------


def find_payment_record(db: Session, processor_payment_id: str) -> ProposalPayment | WoorkoinsPayment | None:
    record = db.scalars(
        select(ProposalPayment)
        .where(ProposalPayment.processor_payment_id == processor_payment_id)
        .execution_options(populate_existing=True)
        .limit(1)
    ).first()
    if record is not None:
        return record
    return get_existing_by_key(db, WoorkoinsPayment, processor_payment_id, key_field="processor_payment_id")


def reconcile_payment(
    db: Session, processor_payment: ProcessorPayment
) -> ProposalPayment | WoorkoinsPayment | None:
    """Bring the local record in line with the processor and finish any pending credit."""

    record = find_payment_record(db, processor_payment.id)
    if record is None:
        logger.info(
            "Reconciliation for unknown payment", extra={"processor_payment_id": processor_payment.id}
        )
        return None

    _apply_processor_status(record, processor_payment)
    db.commit()
    db.refresh(record)
    if isinstance(record, ProposalPayment):
        settle_proposal_payment(db, record)
    else:
        settle_woorkoins_payment(db, record)
    return record


__all__ = [
    "apply_proposal_payment",
    "apply_woorkoins_purchase",
    "find_payment_record",
    "get_proposal_with_payee",
    "reconcile_payment",
    "record_proposal_payment",
    "record_woorkoins_payment",
    "settle_proposal_payment",
    "settle_woorkoins_payment",
]
