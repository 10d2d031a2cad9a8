"""Woorkoins purchase path."""
from decimal import Decimal

import pytest
from sqlalchemy import select

from woorkpay.models import (
    PaymentMethod,
    PaymentRecordStatus,
    WoorkoinsBalance,
    WoorkoinsPayment,
    WoorkoinsTransaction,
)
from woorkpay.schemas.processor import ProcessorPayment
from woorkpay.services import ledger
from woorkpay.utils.errors import CreditingIncomplete


def _purchase(db_session, profile, processor_payment, coins=500, price="50.00"):
    return ledger.apply_woorkoins_purchase(
        db_session,
        profile_id=profile.id,
        processor_payment=processor_payment,
        method=PaymentMethod.PIX,
        coins=coins,
        price=Decimal(price),
    )


def _balance(db_session, profile_id):
    db_session.expire_all()
    row = db_session.scalars(select(WoorkoinsBalance).where(WoorkoinsBalance.profile_id == profile_id)).one_or_none()
    return None if row is None else row.balance


def _transactions(db_session, profile_id):
    return db_session.scalars(
        select(WoorkoinsTransaction).where(WoorkoinsTransaction.profile_id == profile_id)
    ).all()


def test_approved_purchase_creates_balance_and_logs_once(db_session, payer, mp_response):
    approved = ProcessorPayment.from_response(mp_response("7001", "approved", amount="48.50"))

    record = _purchase(db_session, payer, approved, price="48.50")

    assert record.status == PaymentRecordStatus.PAID
    assert record.credited_at is not None
    assert record.price == Decimal("48.50")
    assert _balance(db_session, payer.id) == 500
    entries = _transactions(db_session, payer.id)
    assert len(entries) == 1
    assert entries[0].type == "purchase"
    assert entries[0].amount == 500
    assert entries[0].description == "Purchase of 500 Woorkoins via Mercado Pago"
    assert entries[0].processor_payment_id == "7001"


def test_existing_balance_is_incremented(db_session, payer, mp_response):
    db_session.add(WoorkoinsBalance(profile_id=payer.id, balance=120))
    db_session.commit()

    _purchase(db_session, payer, ProcessorPayment.from_response(mp_response("7002", "approved")), coins=80)

    assert _balance(db_session, payer.id) == 200


def test_redelivered_approval_credits_once(db_session, payer, mp_response):
    approved = ProcessorPayment.from_response(mp_response("7003", "approved"))

    _purchase(db_session, payer, approved)
    _purchase(db_session, payer, approved)
    ledger.reconcile_payment(db_session, approved)

    assert _balance(db_session, payer.id) == 500
    assert len(_transactions(db_session, payer.id)) == 1
    payments = db_session.scalars(
        select(WoorkoinsPayment).where(WoorkoinsPayment.processor_payment_id == "7003")
    ).all()
    assert len(payments) == 1


def test_pending_purchase_waits_for_approval(db_session, payer, mp_response):
    record = _purchase(db_session, payer, ProcessorPayment.from_response(mp_response("7004", "pending")))

    assert record.status == PaymentRecordStatus.PENDING
    assert _balance(db_session, payer.id) is None
    assert _transactions(db_session, payer.id) == []

    ledger.reconcile_payment(db_session, ProcessorPayment.from_response(mp_response("7004", "approved")))
    assert _balance(db_session, payer.id) == 500


def test_balance_failure_rolls_back_transaction_log(db_session, payer, mp_response, monkeypatch):
    approved = ProcessorPayment.from_response(mp_response("7005", "approved"))

    def broken_credit(*args, **kwargs):
        raise RuntimeError("balance row locked")

    monkeypatch.setattr(ledger, "_credit_woorkoins", broken_credit)
    with pytest.raises(CreditingIncomplete):
        _purchase(db_session, payer, approved)

    db_session.expire_all()
    assert _transactions(db_session, payer.id) == []
    record = db_session.scalars(
        select(WoorkoinsPayment).where(WoorkoinsPayment.processor_payment_id == "7005")
    ).one()
    assert record.status == PaymentRecordStatus.PAID
    assert record.credited_at is None


class _MissedUpdate:
    rowcount = 0


def test_concurrent_insert_reuses_existing_purchase(db_session, payer, mp_response, monkeypatch):
    _purchase(db_session, payer, ProcessorPayment.from_response(mp_response("7006", "pending")))

    real_lookup = ledger.get_existing_by_key
    lookups = []

    def lookup_after_first_miss(*args, **kwargs):
        lookups.append(args)
        if len(lookups) == 1:
            return None
        return real_lookup(*args, **kwargs)

    monkeypatch.setattr(ledger, "get_existing_by_key", lookup_after_first_miss)
    record = _purchase(db_session, payer, ProcessorPayment.from_response(mp_response("7006", "approved")))

    assert len(lookups) == 2
    assert record.status == PaymentRecordStatus.PAID
    assert record.credited_at is not None
    assert _balance(db_session, payer.id) == 500
    payments = db_session.scalars(
        select(WoorkoinsPayment).where(WoorkoinsPayment.processor_payment_id == "7006")
    ).all()
    assert len(payments) == 1


def test_balance_created_concurrently_falls_back_to_increment(db_session, payer, monkeypatch):
    db_session.add(WoorkoinsBalance(profile_id=payer.id, balance=40))
    db_session.commit()
    db_session.expunge_all()

    real_execute = db_session.execute
    calls = []

    def first_increment_misses(statement, *args, **kwargs):
        calls.append(statement)
        if len(calls) == 1:
            return _MissedUpdate()
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", first_increment_misses)
    ledger._credit_woorkoins(db_session, payer.id, 60)
    monkeypatch.undo()
    db_session.commit()

    assert len(calls) == 2
    assert _balance(db_session, payer.id) == 100
