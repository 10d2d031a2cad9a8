"""Schema package exports."""
from .payment import (
    CardDetails,
    CardPaymentRead,
    CurrencyTarget,
    Customer,
    PaymentCreate,
    PaymentStatusRead,
    PaymentTarget,
    PixPaymentRead,
    ProposalTarget,
)
from .processor import ProcessorPayment

__all__ = [
    "CardDetails",
    "CardPaymentRead",
    "CurrencyTarget",
    "Customer",
    "PaymentCreate",
    "PaymentStatusRead",
    "PaymentTarget",
    "PixPaymentRead",
    "ProcessorPayment",
    "ProposalTarget",
]
