"""API authentication using API keys"""
import os
import logging
from fastapi import HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _load_keys(env_var: str) -> list[str]:
    keys_str = os.getenv(env_var, "")
    return [key.strip() for key in keys_str.split(",") if key.strip()]


def get_api_keys() -> list[str]:
    """Load client API keys from API_KEYS"""
    keys = _load_keys("API_KEYS")
    if not keys:
        logger.warning("No API_KEYS configured in environment")
    return keys


def get_admin_api_keys() -> list[str]:
    """Load catalog administration keys from ADMIN_API_KEYS"""
    return _load_keys("ADMIN_API_KEYS")


def _check_key(api_key: str, valid_keys: list[str], scope: str) -> str:
    if not valid_keys:
        logger.error(f"No {scope} API keys configured - rejecting request")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{scope.capitalize()} API authentication not configured"
        )

    if api_key not in valid_keys:
        logger.warning(f"Invalid {scope} API key attempt: {api_key[:10]}...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )

    logger.debug(f"{scope.capitalize()} API key validated: {api_key[:10]}...")
    return api_key


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """
    Verify client API key from Authorization header

    Raises:
        HTTPException: If API key is invalid
    """
    return _check_key(credentials.credentials, get_api_keys(), "client")


async def verify_admin_api_key(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """
    Verify admin API key (catalog seeding and edits)

    Raises:
        HTTPException: If API key is not an admin key
    """
    return _check_key(credentials.credentials, get_admin_api_keys(), "admin")
