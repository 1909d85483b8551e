"""
Authentication utilities for FastAPI routes.

Shared auth dependency used by all route modules.
"""

import logging

from fastapi import HTTPException, Header
from pydantic import BaseModel

from onboarding.client import OnboardingAPIClient
from onboarding.errors import CollaboratorError, UnauthorizedError

logger = logging.getLogger(__name__)


class AuthenticatedUser(BaseModel):
    """Authenticated user info from the FluentPro backend."""
    id: str
    email: str | None
    access_token: str


async def get_current_user(authorization: str = Header(None)) -> AuthenticatedUser:
    """
    Validate the bearer token against the backend and extract user info.

    Expects Authorization header: "Bearer <access_token>"
    """
    from fluentpro.config import get_settings

    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization format")

    access_token = authorization[7:]  # Remove "Bearer " prefix

    settings = get_settings()
    try:
        async with OnboardingAPIClient(
            settings.fluentpro_api_base_url,
            access_token,
            timeout=settings.collaborator_timeout_seconds,
        ) as client:
            profile = await client.fetch_profile()
    except UnauthorizedError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    except CollaboratorError as e:
        logger.warning(f"Auth validation failed: {e.message}")
        raise HTTPException(status_code=503, detail="Authentication service unavailable")

    return AuthenticatedUser(
        id=profile.id,
        email=profile.email,
        access_token=access_token,
    )
