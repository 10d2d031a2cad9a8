"""Balance ledgers credited by confirmed payments."""
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class FreelancerWallet(Base):
    """Earnings ledger of a payee, split between pending and available funds."""

    __tablename__ = "freelancer_wallets"
    __table_args__ = (
        CheckConstraint("pending_balance >= 0", name="ck_wallet_pending_non_negative"),
        CheckConstraint("available_balance >= 0", name="ck_wallet_available_non_negative"),
        CheckConstraint("total_earned >= 0", name="ck_wallet_earned_non_negative"),
        CheckConstraint("total_withdrawn >= 0", name="ck_wallet_withdrawn_non_negative"),
    )

    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), unique=True, nullable=False)
    pending_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    available_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    total_earned: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    total_withdrawn: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))


class WoorkoinsBalance(Base):
    """Platform-currency balance of a profile."""

    __tablename__ = "woorkoins_balances"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_woorkoins_balance_non_negative"),)

    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), unique=True, nullable=False)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class WoorkoinsTransaction(Base):
    """Immutable audit trail entry for every Woorkoins balance change."""

    __tablename__ = "woorkoins_transactions"

    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    processor_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
