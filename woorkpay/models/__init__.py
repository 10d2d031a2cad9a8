"""ORM models package."""
from .audit import AuditLog
from .base import Base
from .gateway_config import PaymentGatewayConfig
from .ledger import FreelancerWallet, WoorkoinsBalance, WoorkoinsTransaction
from .payment_record import (
    PaymentMethod,
    PaymentRecordStatus,
    ProposalPayment,
    WoorkoinsPayment,
)
from .processor_webhook import ProcessorWebhookEvent
from .profile import Profile
from .proposal import Proposal, ProposalPaymentStatus, ProposalStatusHistory
from .scheduler_lock import SchedulerLock

__all__ = [
    "AuditLog",
    "Base",
    "FreelancerWallet",
    "PaymentGatewayConfig",
    "PaymentMethod",
    "PaymentRecordStatus",
    "ProcessorWebhookEvent",
    "Profile",
    "Proposal",
    "ProposalPayment",
    "ProposalPaymentStatus",
    "ProposalStatusHistory",
    "SchedulerLock",
    "WoorkoinsBalance",
    "WoorkoinsPayment",
    "WoorkoinsTransaction",
]
