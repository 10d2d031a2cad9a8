"""Processor webhook persistence models."""
from datetime import datetime

from sqlalchemy import DateTime, Index, JSON, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProcessorWebhookEvent(Base):
    """Incoming processor notification, stored once per delivery."""

    __tablename__ = "processor_webhook_events"
    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_processor_webhook_events_provider_event_id"),
        Index("ix_processor_webhook_events_received", "received_at"),
    )

    provider: Mapped[str] = mapped_column(String(50), nullable=False, default="mercadopago")
    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    processor_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    raw_json: Mapped[dict] = mapped_column(JSON, nullable=False)
