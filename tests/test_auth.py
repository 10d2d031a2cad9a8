import pytest

from woorkpay.config import get_settings


def _body():
    return {
        "method": "pix",
        "amount": "10.00",
        "description": "Woorkoins",
        "customer": {"name": "Ana", "email": "ana@example.com"},
    }


@pytest.mark.anyio
async def test_missing_token_is_unauthenticated(client, fake_processor):
    response = await client.post("/payments/mercadopago", json=_body())

    assert response.status_code == 400
    assert response.json() == {"error": "Authorization header missing.", "code": "UNAUTHENTICATED"}
    assert fake_processor.created == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    "token_kwargs, message",
    [
        ({"expires_in": -60}, "Session expired."),
        ({"secret": "another-secret"}, "Invalid token."),
        ({"audience": "anon"}, "Invalid token."),
    ],
)
async def test_bad_tokens_are_rejected(client, payer, make_token, token_kwargs, message):
    token = make_token(payer.user_id, **token_kwargs)

    response = await client.post(
        "/payments/mercadopago", json=_body(), headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "UNAUTHENTICATED"
    assert response.json()["error"] == message


@pytest.mark.anyio
async def test_user_without_profile(client, make_token):
    token = make_token("user-without-profile")

    response = await client.post(
        "/payments/mercadopago", json=_body(), headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "PROFILE_NOT_FOUND"


@pytest.mark.anyio
async def test_unconfigured_secret_refuses_all_tokens(client, payer, make_token, monkeypatch):
    token = make_token(payer.user_id)
    monkeypatch.setattr(get_settings(), "AUTH_JWT_SECRET", None)

    response = await client.post(
        "/payments/mercadopago", json=_body(), headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "UNAUTHENTICATED"
