"""Bearer token verification and profile resolution."""
from __future__ import annotations

import logging

import jwt
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.orm import Session

from woorkpay.config import get_settings
from woorkpay.db import get_db
from woorkpay.models.profile import Profile
from woorkpay.utils.errors import ProfileNotFound, Unauthenticated

logger = logging.getLogger(__name__)


def _extract_bearer(authorization: str | None = Header(default=None)) -> str | None:
    """Read the token from ``Authorization: Bearer ...``."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        return token or None
    return None


def verify_access_token(token: str) -> str:
    """Verify an HS256 access token and return its subject (the auth user id)."""

    settings = get_settings()
    if not settings.AUTH_JWT_SECRET:
        logger.error("AUTH_JWT_SECRET is not configured; rejecting request")
        raise Unauthenticated("Authentication is not configured.")

    try:
        claims = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.AUTH_JWT_AUDIENCE,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Session expired.")
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid token.")

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise Unauthenticated("Invalid token.")
    return subject


def get_current_profile(
    db: Session = Depends(get_db),
    token: str | None = Depends(_extract_bearer),
) -> Profile:
    """Resolve the caller's profile; fails before any payment work is done."""
    if not token:
        raise Unauthenticated("Authorization header missing.")

    user_id = verify_access_token(token)
    profile = db.scalars(select(Profile).where(Profile.user_id == user_id).limit(1)).first()
    if profile is None:
        logger.warning("Authenticated user has no profile", extra={"user_id": user_id})
        raise ProfileNotFound()
    return profile


__all__ = ["get_current_profile", "verify_access_token"]
