"""Payment request / response schemas."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, model_validator

from woorkpay.models.payment_record import PaymentMethod


class Customer(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    email: EmailStr
    document: str | None = Field(default=None, pattern=r"^\d{11}$|^\d{14}$")


class CardDetails(BaseModel):
    cardholder_name: str | None = Field(default=None, max_length=255)
    payment_method_id: str | None = Field(default=None, max_length=32)
    issuer_id: str | None = Field(default=None, max_length=32)
    installments: int = Field(default=1, ge=1, le=24)


@dataclass(frozen=True)
class ProposalTarget:
    proposal_id: int


@dataclass(frozen=True)
class CurrencyTarget:
    coins: int
    price: Decimal


PaymentTarget = Union[ProposalTarget, CurrencyTarget]


class PaymentCreate(BaseModel):
    method: PaymentMethod = Field(validation_alias=AliasChoices("method", "paymentMethod"))
    amount: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)
    description: str = Field(min_length=1, max_length=255)
    customer: Customer
    token: str | None = Field(default=None, max_length=255)
    card: CardDetails | None = None
    woorkoins_amount: int | None = Field(default=None, gt=0)
    woorkoins_price: Decimal | None = Field(default=None, ge=Decimal("0"), decimal_places=2)
    proposal_id: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_consistency(self) -> "PaymentCreate":
        if self.method == PaymentMethod.CARD and not self.token:
            raise ValueError("Card payments require a card token.")
        has_coins = self.woorkoins_amount is not None or self.woorkoins_price is not None
        if has_coins and (self.woorkoins_amount is None or self.woorkoins_price is None):
            raise ValueError("woorkoins_amount and woorkoins_price must be sent together.")
        if has_coins and self.proposal_id is not None:
            raise ValueError("A payment targets either a proposal or a Woorkoins purchase, not both.")
        if has_coins and self.woorkoins_price != self.amount:
            raise ValueError("amount must equal woorkoins_price for a Woorkoins purchase.")
        return self

    def target(self) -> PaymentTarget | None:
        if self.proposal_id is not None:
            return ProposalTarget(proposal_id=self.proposal_id)
        if self.woorkoins_amount is not None and self.woorkoins_price is not None:
            return CurrencyTarget(coins=self.woorkoins_amount, price=self.woorkoins_price)
        return None


class PixPaymentRead(BaseModel):
    payment_id: str
    qrcode: str | None
    qrcode_base64: str | None
    amount: Decimal
    original_amount: Decimal
    discount_applied: Decimal
    expires_at: str | None


class CardPaymentRead(BaseModel):
    payment_id: str
    status: str
    status_detail: str | None
    amount: Decimal
    original_amount: Decimal
    discount_applied: Decimal


class PaymentStatusRead(BaseModel):
    payment_id: str
    status: str
    credited: bool

    model_config = ConfigDict(from_attributes=True)


__all__ = [
    "Customer",
    "CardDetails",
    "ProposalTarget",
    "CurrencyTarget",
    "PaymentTarget",
    "PaymentCreate",
    "PixPaymentRead",
    "CardPaymentRead",
    "PaymentStatusRead",
]
