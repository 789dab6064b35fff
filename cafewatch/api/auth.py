"""
API authentication using X-API-KEY header.
"""

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from cafewatch.config.settings import get_settings

api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


def valid_api_keys() -> list[str]:
    """Configured keys (API_KEYS, comma-separated); empty means dev mode."""
    settings = get_settings()
    if not settings.api_keys:
        return []
    return [k.strip() for k in settings.api_keys.split(",") if k.strip()]


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Verify API key from X-API-KEY header.

    Returns:
        The validated API key ("dev-mode" when no keys are configured)

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = get_settings()

    # No API keys configured: allow all requests (dev mode)
    if not settings.api_keys:
        return "dev-mode"

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    valid_keys = valid_api_keys()
    if not valid_keys or api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key
