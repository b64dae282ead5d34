"""Provides API key-based security and request principals for FastAPI endpoints."""

import logging

from fastapi import Depends
from fastapi import Header
from fastapi import HTTPException
from fastapi.security import APIKeyHeader

from edugen.core.config import settings

# Initialize logger
logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key")


async def verify_api_key(key: str = Depends(api_key_header)) -> bool:
    """Verifies the provided API key against the server's configured API key.

    Used as a FastAPI dependency to protect routes.

    Raises:
        HTTPException: With status code 403 if the API key is invalid or
                       if the server has no API key configured.
    """
    if not settings.api_key:
        logger.critical(
            "CRITICAL: API key security is enforced, but no API_KEY is configured "
            "on the server. All API requests requiring this key will be denied."
        )

    if key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid API Key")
    return True


class HeaderAuthProvider:
    """Principal forwarded by the trusted front end in the ``X-User-Id`` header."""

    def __init__(self, user_id: str | None):
        self._user_id = user_id.strip() if user_id else None

    def current_user(self) -> str | None:
        return self._user_id or None


async def get_auth_provider(x_user_id: str | None = Header(default=None)) -> HeaderAuthProvider:
    return HeaderAuthProvider(x_user_id)
