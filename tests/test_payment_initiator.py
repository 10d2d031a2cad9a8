from decimal import Decimal

import pytest

from woorkpay.models import PaymentGatewayConfig, PaymentMethod
from woorkpay.schemas.payment import CardDetails, Customer
from woorkpay.services.payment_initiator import (
    GatewayConfig,
    PurchaseIntent,
    build_processor_payload,
    initiate_payment,
    load_gateway_config,
)
from woorkpay.utils.errors import GatewayDisabled, ProcessorRejected


def _intent(method=PaymentMethod.PIX, **overrides) -> PurchaseIntent:
    values = dict(
        method=method,
        gross_amount=Decimal("200.00"),
        description="Proposal payment",
        customer=Customer(name="Ana Maria Souza", email="ana@example.com", document="12345678901"),
        external_reference="proposal:7",
        idempotency_key="idem-1",
    )
    values.update(overrides)
    return PurchaseIntent(**values)


def _gateway(pix="3", card="0") -> GatewayConfig:
    return GatewayConfig(enabled=True, pix_discount_percent=Decimal(pix), card_discount_percent=Decimal(card))


def test_pix_payload_contains_payer_and_reference():
    payload = build_processor_payload(_intent(), Decimal("194.00"), notification_url="https://hooks.example/mp")

    assert payload["payment_method_id"] == "pix"
    assert payload["transaction_amount"] == 194.0
    assert payload["external_reference"] == "proposal:7"
    assert payload["notification_url"] == "https://hooks.example/mp"
    assert payload["payer"] == {
        "email": "ana@example.com",
        "first_name": "Ana",
        "last_name": "Maria Souza",
        "identification": {"type": "CPF", "number": "12345678901"},
    }
    assert "token" not in payload


def test_card_payload_forwards_token_only():
    intent = _intent(
        PaymentMethod.CARD,
        customer=Customer(name="Acme", email="billing@acme.example", document="12345678000190"),
        card_token="tok_123",
        card=CardDetails(installments=3, payment_method_id="visa"),
    )
    payload = build_processor_payload(intent, Decimal("200.00"))

    assert payload["token"] == "tok_123"
    assert payload["installments"] == 3
    assert payload["payment_method_id"] == "visa"
    assert "issuer_id" not in payload
    assert payload["payer"]["identification"]["type"] == "CNPJ"
    assert payload["payer"]["last_name"] == "Acme"
    assert "notification_url" not in payload


def test_card_payload_lets_processor_detect_brand():
    payload = build_processor_payload(_intent(PaymentMethod.CARD, card_token="tok_1"), Decimal("10.00"))
    assert payload["installments"] == 1
    assert "payment_method_id" not in payload


def test_initiate_payment_applies_method_discount(fake_processor, mp_response):
    fake_processor.create_response = mp_response("1001", "pending")

    initiated = initiate_payment(_intent(), gateway_lookup=_gateway, processor=fake_processor)

    assert initiated.final_amount == Decimal("194.00")
    assert initiated.original_amount == Decimal("200.00")
    assert initiated.discount_applied == Decimal("3")
    assert initiated.processor_payment.id == "1001"
    sent_payload, key = fake_processor.created[0]
    assert sent_payload["transaction_amount"] == 194.0
    assert key == "idem-1"


def test_initiate_payment_card_without_discount(fake_processor, mp_response):
    fake_processor.create_response = mp_response("1002", "approved", amount="200.00", pix=False)

    initiated = initiate_payment(
        _intent(PaymentMethod.CARD, card_token="tok"), gateway_lookup=_gateway, processor=fake_processor
    )

    assert initiated.final_amount == Decimal("200.00")
    assert initiated.processor_payment.is_approved


def test_initiate_payment_propagates_rejection(fake_processor):
    fake_processor.create_error = ProcessorRejected(400, '{"message":"invalid token"}')

    with pytest.raises(ProcessorRejected) as excinfo:
        initiate_payment(_intent(), gateway_lookup=_gateway, processor=fake_processor)

    assert excinfo.value.processor_status == 400
    assert "invalid token" in excinfo.value.message
    assert len(fake_processor.created) == 1


def test_load_gateway_config_requires_enabled_row(db_session):
    with pytest.raises(GatewayDisabled):
        load_gateway_config(db_session)

    row = PaymentGatewayConfig(mercadopago_enabled=False)
    db_session.add(row)
    db_session.commit()
    with pytest.raises(GatewayDisabled):
        load_gateway_config(db_session)

    row.mercadopago_enabled = True
    row.mercadopago_pix_discount_percent = Decimal("5.00")
    db_session.commit()
    config = load_gateway_config(db_session)
    assert config.discount_for(PaymentMethod.PIX) == Decimal("5.00")
    assert config.discount_for(PaymentMethod.CARD) == Decimal("0")
