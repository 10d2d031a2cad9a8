"""Proposal model definitions."""
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum as SqlEnum, ForeignKey, Index, JSON, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class ProposalPaymentStatus(str, enum.Enum):
    """Payment summary status carried on the proposal itself."""

    AWAITING_PAYMENT = "awaiting_payment"
    PENDING = "pending"
    PAID_ESCROW = "paid_escrow"


class Proposal(Base):
    """Marketplace agreement between a project owner and a freelancer."""

    __tablename__ = "proposals"
    __table_args__ = (Index("ix_proposals_payment_status", "payment_status"),)

    freelancer_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    client_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True, index=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accepted_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    freelancer_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    platform_commission: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    processor_fee: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    payment_status: Mapped[ProposalPaymentStatus] = mapped_column(
        SqlEnum(
            ProposalPaymentStatus,
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            length=32,
        ),
        nullable=False,
        default=ProposalPaymentStatus.AWAITING_PAYMENT,
    )
    work_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    freelancer = relationship("Profile", foreign_keys=[freelancer_id])


class ProposalStatusHistory(Base):
    """Append-only timeline entry for a proposal."""

    __tablename__ = "proposal_status_history"

    proposal_id: Mapped[int] = mapped_column(ForeignKey("proposals.id"), nullable=False, index=True)
    status_type: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    new_value: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
