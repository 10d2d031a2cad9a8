"""API routers for the Woorkpay backend."""
from fastapi import APIRouter

from . import health, payments, webhooks


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(payments.router)
    api_router.include_router(webhooks.router)
    return api_router
