"""Payment gateway configuration model."""
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PaymentGatewayConfig(Base):
    """Singleton row holding the processor toggle and per-method discounts."""

    __tablename__ = "payment_gateway_config"
    __table_args__ = (
        CheckConstraint(
            "mercadopago_pix_discount_percent IS NULL OR "
            "(mercadopago_pix_discount_percent >= 0 AND mercadopago_pix_discount_percent <= 100)",
            name="ck_gateway_pix_discount_range",
        ),
        CheckConstraint(
            "mercadopago_card_discount_percent IS NULL OR "
            "(mercadopago_card_discount_percent >= 0 AND mercadopago_card_discount_percent <= 100)",
            name="ck_gateway_card_discount_range",
        ),
    )

    mercadopago_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    mercadopago_pix_discount_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    mercadopago_card_discount_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
