"""Payment error taxonomy and standardized error responses."""
from __future__ import annotations

from typing import Any


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": message, "code": code}
    if details:
        payload["details"] = details
    return payload


class PaymentError(Exception):
    """Base class for every handled failure of the payment flow.

    Subclasses set ``code``; ``status_code`` is the HTTP status used when the
    error reaches the API layer. Payment flow errors are all reported as 400.
    """

    code = "PAYMENT_ERROR"
    status_code = 400
    default_message = "Payment could not be processed."

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return error_response(self.code, self.message, self.details or None)


class Unauthenticated(PaymentError):
    code = "UNAUTHENTICATED"
    default_message = "User not authenticated."


class ProfileNotFound(PaymentError):
    code = "PROFILE_NOT_FOUND"
    default_message = "User profile not found."


class GatewayDisabled(PaymentError):
    code = "GATEWAY_DISABLED"
    default_message = "Mercado Pago is not configured or not enabled."


class ProcessorRejected(PaymentError):
    """The processor answered with a non-success HTTP status."""

    code = "PROCESSOR_REJECTED"
    default_message = "Payment was rejected by the processor."

    def __init__(self, status: int, body: str, message: str | None = None) -> None:
        self.processor_status = status
        self.body = body
        super().__init__(
            message or f"Error processing payment: {body}",
            details={"processor_status": status},
        )


class ProcessorUnknown(PaymentError):
    """The processor call timed out or failed mid-flight; the outcome is unknown."""

    code = "PROCESSOR_UNKNOWN"
    default_message = "Payment outcome is unknown; it will be reconciled."


class InvalidSplitInput(PaymentError):
    code = "INVALID_SPLIT_INPUT"
    default_message = "Invalid amount or commission for payment split."


class ProposalNotFound(PaymentError):
    code = "PROPOSAL_NOT_FOUND"
    default_message = "Proposal not found."


class CreditingIncomplete(PaymentError):
    """Payment is recorded but the ledger could not be updated."""

    code = "CREDITING_INCOMPLETE"
    default_message = "Payment recorded but crediting did not complete; it will be reconciled."


class PaymentNotFound(PaymentError):
    code = "PAYMENT_NOT_FOUND"
    default_message = "Payment not found."


class WebhookSignatureInvalid(PaymentError):
    code = "WEBHOOK_SIGNATURE_INVALID"
    status_code = 401
    default_message = "Invalid Mercado Pago webhook signature."


class WebhookPayloadInvalid(PaymentError):
    code = "WEBHOOK_PAYLOAD_INVALID"
    default_message = "Webhook payload is missing required fields."


class InternalError(PaymentError):
    code = "INTERNAL"
    default_message = "An unexpected error occurred."


__all__ = [
    "error_response",
    "PaymentError",
    "Unauthenticated",
    "ProfileNotFound",
    "GatewayDisabled",
    "ProcessorRejected",
    "ProcessorUnknown",
    "InvalidSplitInput",
    "ProposalNotFound",
    "CreditingIncomplete",
    "PaymentNotFound",
    "WebhookSignatureInvalid",
    "WebhookPayloadInvalid",
    "InternalError",
]
