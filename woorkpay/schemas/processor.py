"""Typed view of Mercado Pago payment resources."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

APPROVED_STATUSES = {"approved"}
FAILED_STATUSES = {"rejected", "cancelled", "refunded", "charged_back"}


class ProcessorPayment(BaseModel):
    """Processor-side payment as observed by this service."""

    id: str
    status: str
    status_detail: str | None = None
    qr_code: str | None = None
    qr_code_base64: str | None = None
    expires_at: str | None = None
    external_reference: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    model_config = ConfigDict(frozen=True)

    @property
    def is_approved(self) -> bool:
        return self.status in APPROVED_STATUSES

    @property
    def is_failed(self) -> bool:
        return self.status in FAILED_STATUSES

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "ProcessorPayment":
        """Build from a ``/v1/payments`` response body; raises ``ValueError`` if malformed."""

        if not isinstance(data, dict) or data.get("id") in (None, ""):
            raise ValueError("Processor response is missing the payment id.")
        status = data.get("status")
        if not isinstance(status, str) or not status:
            raise ValueError("Processor response is missing the payment status.")

        transaction_data = (data.get("point_of_interaction") or {}).get("transaction_data") or {}
        return cls(
            id=str(data["id"]),
            status=status,
            status_detail=data.get("status_detail"),
            qr_code=transaction_data.get("qr_code"),
            qr_code_base64=transaction_data.get("qr_code_base64"),
            expires_at=data.get("date_of_expiration"),
            external_reference=data.get("external_reference"),
            raw=data,
        )
