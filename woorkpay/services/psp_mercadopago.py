"""Mercado Pago REST wrapper for payment creation and lookup."""
from __future__ import annotations

import logging
from typing import Any

import requests

from woorkpay.config import Settings, get_settings
from woorkpay.schemas.processor import ProcessorPayment
from woorkpay.utils.errors import GatewayDisabled, ProcessorRejected, ProcessorUnknown

logger = logging.getLogger(__name__)

PAYMENTS_PATH = "/v1/payments"


class MercadoPagoClient:
    """Thin client around the Mercado Pago payments API to isolate PSP concerns."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._access_token = settings.MERCADOPAGO_ACCESS_TOKEN
        if not self._access_token:
            raise GatewayDisabled("Mercado Pago access token is not configured.")
        self._base_url = settings.MERCADOPAGO_API_BASE_URL.rstrip("/")
        self._timeout = settings.MERCADOPAGO_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "MercadoPagoClient":
        """Instantiate a client using the cached application settings."""

        return cls(get_settings())

    def _headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    def _send(self, method: str, path: str, **kwargs: Any) -> ProcessorPayment:
        url = f"{self._base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self._timeout, **kwargs)
        except requests.Timeout as exc:
            logger.error("Mercado Pago request timed out", extra={"path": path, "method": method})
            raise ProcessorUnknown("Mercado Pago did not answer in time.") from exc
        except requests.RequestException as exc:
            logger.error(
                "Mercado Pago request failed",
                extra={"path": path, "method": method, "error": type(exc).__name__},
            )
            raise ProcessorUnknown("Mercado Pago could not be reached.") from exc

        if not response.ok:
            logger.warning(
                "Mercado Pago returned an error",
                extra={"path": path, "method": method, "status": response.status_code},
            )
            raise ProcessorRejected(response.status_code, response.text)

        try:
            return ProcessorPayment.from_response(response.json())
        except ValueError as exc:
            logger.error(
                "Mercado Pago returned an unreadable payment",
                extra={"path": path, "status": response.status_code},
            )
            raise ProcessorUnknown("Mercado Pago returned an unreadable payment.") from exc

    def create_payment(self, payload: dict[str, Any], *, idempotency_key: str) -> ProcessorPayment:
        """Create a payment; ``idempotency_key`` must be unique per attempt."""

        return self._send(
            "POST",
            PAYMENTS_PATH,
            json=payload,
            headers=self._headers(idempotency_key),
        )

    def get_payment(self, payment_id: str) -> ProcessorPayment:
        """Fetch the current state of a payment."""

        return self._send("GET", f"{PAYMENTS_PATH}/{payment_id}", headers=self._headers())


def get_processor() -> MercadoPagoClient:
    """FastAPI dependency returning a client bound to the current settings."""

    return MercadoPagoClient.from_env()


__all__ = ["MercadoPagoClient", "PAYMENTS_PATH", "get_processor"]
