"""Processor payment records for the two purchasable products."""
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class PaymentMethod(str, enum.Enum):
    PIX = "pix"
    CARD = "card"


class PaymentRecordStatus(str, enum.Enum):
    """Local status of a processor payment."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ProposalPayment(Base):
    """Payment charged for a proposal, keyed by the processor payment ID."""

    __tablename__ = "proposal_payments"
    __table_args__ = (
        UniqueConstraint(
            "proposal_id", "processor_payment_id", name="uq_proposal_payments_proposal_processor"
        ),
        CheckConstraint("amount >= 0", name="ck_proposal_payment_amount_non_negative"),
        CheckConstraint("payee_net_amount >= 0", name="ck_proposal_payment_net_non_negative"),
        Index("ix_proposal_payments_status", "status"),
        Index("ix_proposal_payments_processor_payment_id", "processor_payment_id"),
    )

    proposal_id: Mapped[int] = mapped_column(ForeignKey("proposals.id"), nullable=False, index=True)
    processor_payment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payer_profile_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SqlEnum(PaymentMethod, values_callable=_enum_values, native_enum=False, length=16), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    platform_commission: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    processor_fee: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    payee_net_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    status: Mapped[PaymentRecordStatus] = mapped_column(
        SqlEnum(PaymentRecordStatus, values_callable=_enum_values, native_enum=False, length=16),
        nullable=False,
        default=PaymentRecordStatus.PENDING,
    )
    payment_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    credited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    proposal = relationship("Proposal")


class WoorkoinsPayment(Base):
    """Payment charged for a Woorkoins purchase."""

    __tablename__ = "woorkoins_payments"
    __table_args__ = (
        UniqueConstraint("processor_payment_id", name="uq_woorkoins_payments_processor_payment_id"),
        CheckConstraint("amount > 0", name="ck_woorkoins_payment_amount_positive"),
        CheckConstraint("price >= 0", name="ck_woorkoins_payment_price_non_negative"),
        Index("ix_woorkoins_payments_status", "status"),
    )

    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    processor_payment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SqlEnum(PaymentMethod, values_callable=_enum_values, native_enum=False, length=16), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    status: Mapped[PaymentRecordStatus] = mapped_column(
        SqlEnum(PaymentRecordStatus, values_callable=_enum_values, native_enum=False, length=16),
        nullable=False,
        default=PaymentRecordStatus.PENDING,
    )
    payment_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    credited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
