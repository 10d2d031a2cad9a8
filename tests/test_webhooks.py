"""Tests for Mercado Pago notification processing."""
from __future__ import annotations

import json
import os
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from woorkpay.config import get_settings
from woorkpay.models import (
    FreelancerWallet,
    PaymentMethod,
    PaymentRecordStatus,
    ProcessorWebhookEvent,
    WoorkoinsBalance,
)
from woorkpay.schemas.processor import ProcessorPayment
from woorkpay.services import ledger
from woorkpay.services.split import split
from woorkpay.services.webhooks import compute_signature
from woorkpay.utils.errors import ProcessorUnknown


def _signed_headers(data_id: str, request_id: str = "req-1", ts: str = "1760000000") -> dict[str, str]:
    signature = compute_signature(
        os.environ["MERCADOPAGO_WEBHOOK_SECRET"], data_id=data_id, request_id=request_id, ts=ts
    )
    return {
        "Content-Type": "application/json",
        "x-signature": f"ts={ts},v1={signature}",
        "x-request-id": request_id,
    }


def _notification(data_id: str, notification_id: str = "notif-1") -> bytes:
    return json.dumps(
        {"id": notification_id, "type": "payment", "action": "payment.updated", "data": {"id": data_id}}
    ).encode()


def _pending_purchase(db_session, profile, mp_response, payment_id="3001"):
    return ledger.apply_woorkoins_purchase(
        db_session,
        profile_id=profile.id,
        processor_payment=ProcessorPayment.from_response(mp_response(payment_id, "pending")),
        method=PaymentMethod.PIX,
        coins=500,
        price=Decimal("194.00"),
    )


def _balance(db_session, profile_id):
    db_session.expire_all()
    row = db_session.scalars(select(WoorkoinsBalance).where(WoorkoinsBalance.profile_id == profile_id)).one_or_none()
    return None if row is None else row.balance


@pytest.mark.anyio
async def test_webhook_approval_credits_woorkoins_once(client, db_session, payer, fake_processor, mp_response):
    _pending_purchase(db_session, payer, mp_response)
    fake_processor.payments["3001"] = mp_response("3001", "approved")

    response = await client.post(
        "/webhooks/mercadopago", content=_notification("3001"), headers=_signed_headers("3001")
    )
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert _balance(db_session, payer.id) == 500

    replay = await client.post(
        "/webhooks/mercadopago", content=_notification("3001"), headers=_signed_headers("3001")
    )
    assert replay.json() == {"status": "duplicate"}
    assert fake_processor.fetched == ["3001"]

    # A distinct delivery for the same payment is processed but never credits twice.
    second = await client.post(
        "/webhooks/mercadopago",
        content=_notification("3001", notification_id="notif-2"),
        headers=_signed_headers("3001"),
    )
    assert second.json() == {"status": "ok"}
    assert _balance(db_session, payer.id) == 500
    assert db_session.scalar(select(func.count()).select_from(ProcessorWebhookEvent)) == 2


@pytest.mark.anyio
async def test_webhook_rejects_bad_signature(client, db_session, payer, fake_processor, mp_response):
    _pending_purchase(db_session, payer, mp_response)
    headers = _signed_headers("3001")
    headers["x-signature"] = "ts=1760000000,v1=deadbeef"

    response = await client.post("/webhooks/mercadopago", content=_notification("3001"), headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "WEBHOOK_SIGNATURE_INVALID"
    assert fake_processor.fetched == []
    assert _balance(db_session, payer.id) is None


@pytest.mark.anyio
async def test_webhook_signature_optional_without_secret(client, db_session, payer, fake_processor, mp_response, monkeypatch):
    monkeypatch.setattr(get_settings(), "MERCADOPAGO_WEBHOOK_SECRET", None)
    _pending_purchase(db_session, payer, mp_response)
    fake_processor.payments["3001"] = mp_response("3001", "approved")

    response = await client.post(
        "/webhooks/mercadopago", content=_notification("3001"), headers={"Content-Type": "application/json"}
    )

    assert response.json() == {"status": "ok"}
    assert _balance(db_session, payer.id) == 500


@pytest.mark.anyio
async def test_webhook_ignores_other_topics(client, fake_processor):
    body = json.dumps({"id": "n-9", "type": "merchant_order", "data": {"id": "42"}}).encode()

    response = await client.post("/webhooks/mercadopago", content=body, headers={"Content-Type": "application/json"})

    assert response.json() == {"status": "ignored"}
    assert fake_processor.fetched == []


@pytest.mark.anyio
async def test_webhook_for_unknown_payment(client, fake_processor, mp_response):
    fake_processor.payments["4040"] = mp_response("4040", "approved")

    response = await client.post(
        "/webhooks/mercadopago", content=_notification("4040"), headers=_signed_headers("4040")
    )

    assert response.status_code == 200
    assert response.json() == {"status": "payment not found"}


@pytest.mark.anyio
async def test_webhook_processor_failure_allows_redelivery(client, db_session, payer, fake_processor, mp_response):
    record = _pending_purchase(db_session, payer, mp_response)
    fake_processor.get_error = ProcessorUnknown()

    failed = await client.post(
        "/webhooks/mercadopago", content=_notification("3001"), headers=_signed_headers("3001")
    )
    assert failed.status_code == 400
    assert failed.json()["code"] == "PROCESSOR_UNKNOWN"

    fake_processor.get_error = None
    fake_processor.payments["3001"] = mp_response("3001", "approved")
    retried = await client.post(
        "/webhooks/mercadopago", content=_notification("3001"), headers=_signed_headers("3001")
    )
    assert retried.json() == {"status": "ok"}
    db_session.refresh(record)
    assert record.status == PaymentRecordStatus.PAID
    assert _balance(db_session, payer.id) == 500


@pytest.mark.anyio
async def test_webhook_requires_data_id(client):
    body = json.dumps({"type": "payment", "data": {}}).encode()

    response = await client.post("/webhooks/mercadopago", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["code"] == "WEBHOOK_PAYLOAD_INVALID"


@pytest.mark.anyio
async def test_redelivery_resumes_incomplete_credit(client, db_session, make_proposal, fake_processor, mp_response, monkeypatch):
    proposal = make_proposal()
    ledger.apply_proposal_payment(
        db_session,
        proposal_id=proposal.id,
        processor_payment=ProcessorPayment.from_response(mp_response("5001", "pending")),
        method=PaymentMethod.PIX,
        final_amount=Decimal("194.00"),
        split_result=split(Decimal("194.00"), Decimal("10")),
        payer_profile_id=None,
    )
    fake_processor.payments["5001"] = mp_response("5001", "approved")

    def broken_credit(*args, **kwargs):
        raise RuntimeError("wallet table locked")

    monkeypatch.setattr(ledger, "_credit_wallet", broken_credit)
    failed = await client.post(
        "/webhooks/mercadopago", content=_notification("5001"), headers=_signed_headers("5001")
    )
    assert failed.status_code == 400
    assert failed.json()["code"] == "CREDITING_INCOMPLETE"

    monkeypatch.undo()
    retried = await client.post(
        "/webhooks/mercadopago", content=_notification("5001"), headers=_signed_headers("5001")
    )
    assert retried.json() == {"status": "ok"}

    db_session.expire_all()
    wallet = db_session.scalars(
        select(FreelancerWallet).where(FreelancerWallet.profile_id == proposal.freelancer_id)
    ).one()
    assert wallet.pending_balance == Decimal("174.60")
    event = db_session.scalars(select(ProcessorWebhookEvent)).one()
    assert event.processed_at is not None

    replay = await client.post(
        "/webhooks/mercadopago", content=_notification("5001"), headers=_signed_headers("5001")
    )
    assert replay.json() == {"status": "duplicate"}
