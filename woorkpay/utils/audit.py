"""Audit logging helper utilities."""
from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy.orm import Session

from woorkpay.models.audit import AuditLog
from woorkpay.utils.time import utcnow


SENSITIVE_KEYS = {
    "email",
    "document",
    "number",
    "token",
    "card_token",
    "qr_code",
    "qr_code_base64",
    "qrcode",
    "qrcode_base64",
    "first_name",
    "last_name",
    "cardholder_name",
}


def _mask_value(key: str, value: Any) -> Any:
    if value is None:
        return None

    if key == "email":
        text = str(value)
        if "@" in text:
            _, domain = text.split("@", 1)
            return f"***@{domain}"
        return "***"

    if key in {"document", "number"}:
        digits = "".join(ch for ch in str(value) if ch.isalnum())
        if len(digits) <= 2:
            return "***"
        return f"***{digits[-2:]}"

    if key in {"first_name", "last_name", "cardholder_name"}:
        text = str(value)
        return f"{text[:1]}***" if text else "***"

    # Card tokens and PIX payloads are bearer instruments.
    return "***"


def sanitize_payload_for_audit(data: Any) -> Any:
    """Return a copy of ``data`` with obvious PII fields masked."""

    if isinstance(data, Mapping):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS and not isinstance(value, (Mapping, list)):
                sanitized[key] = _mask_value(key, value)
            else:
                sanitized[key] = sanitize_payload_for_audit(value)
        return sanitized

    if isinstance(data, list):
        return [sanitize_payload_for_audit(item) for item in data]

    return data


def log_audit(
    db: Session,
    *,
    actor: str,
    action: str,
    entity: str,
    entity_id: str | int | None,
    data: dict | None = None,
) -> None:
    """Persist an audit entry in the shared AuditLog table."""

    db.add(
        AuditLog(
            actor=actor,
            action=action,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else "",
            data_json=sanitize_payload_for_audit(data or {}),
            at=utcnow(),
        )
    )


def actor_from_profile(profile: Any, fallback: str = "system") -> str:
    """Return the canonical actor string for a profile."""

    profile_id = getattr(profile, "id", None)
    if profile_id is not None:
        return f"profile:{profile_id}"
    return fallback


__all__ = ["sanitize_payload_for_audit", "log_audit", "actor_from_profile"]
