"""Shared-secret authentication for the task API."""

import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from minion.core.config import settings

api_key_header = APIKeyHeader(
    name="X-API-Key",
    description="Must equal API_SECRET_KEY of the server",
)


def verify_api_key(api_key: str = Security(api_key_header)) -> str:
    """Reject requests whose X-API-Key does not match the configured secret."""
    if not secrets.compare_digest(api_key.encode(), settings.api_secret_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )
    return api_key
