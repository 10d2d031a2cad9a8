"""Commission / processor-fee / payee split for marketplace payments."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from woorkpay.utils.errors import InvalidSplitInput

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    """Round to the currency minor unit using round-half-up."""

    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SplitResult:
    platform_commission: Decimal
    processor_fee: Decimal
    payee_net_amount: Decimal

    @property
    def total(self) -> Decimal:
        return self.platform_commission + self.processor_fee + self.payee_net_amount


def _check_percent(name: str, value: Decimal) -> None:
    if value.is_nan() or value < 0 or value > HUNDRED:
        raise InvalidSplitInput(
            f"{name} must be between 0 and 100.",
            details={name: str(value)},
        )


def split(final_amount, platform_commission_percent, processor_fee_percent=Decimal("0")) -> SplitResult:
    """Split ``final_amount`` into commission, processor fee and payee net.

    Commission and fee are rounded half-up to the cent; the payee net takes the
    residual so the three parts always sum to the (cent-rounded) final amount.
    """

    amount = round_money(final_amount)
    commission_percent = to_decimal(platform_commission_percent)
    fee_percent = to_decimal(processor_fee_percent)

    if amount < 0:
        raise InvalidSplitInput("Amount must not be negative.", details={"final_amount": str(amount)})
    _check_percent("platform_commission_percent", commission_percent)
    _check_percent("processor_fee_percent", fee_percent)

    commission = round_money(amount * commission_percent / HUNDRED)
    fee = round_money(amount * fee_percent / HUNDRED)
    net = amount - commission - fee
    if net < 0:
        raise InvalidSplitInput(
            "Commission and fees exceed the payment amount.",
            details={
                "final_amount": str(amount),
                "platform_commission": str(commission),
                "processor_fee": str(fee),
            },
        )
    return SplitResult(platform_commission=commission, processor_fee=fee, payee_net_amount=net)


def apply_discount(gross_amount, discount_percent) -> Decimal:
    """Return ``gross * (1 - discount/100)`` rounded to the cent."""

    gross = to_decimal(gross_amount)
    discount = to_decimal(discount_percent or 0)
    if discount.is_nan() or discount < 0 or discount > HUNDRED:
        raise InvalidSplitInput(
            "Discount must be between 0 and 100.", details={"discount_percent": str(discount)}
        )
    if gross < 0:
        raise InvalidSplitInput("Amount must not be negative.", details={"amount": str(gross)})
    if discount == 0:
        return round_money(gross)
    return round_money(gross * (HUNDRED - discount) / HUNDRED)


__all__ = ["SplitResult", "split", "apply_discount", "round_money", "to_decimal"]
