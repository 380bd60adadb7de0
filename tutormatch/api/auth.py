"""
Admin Authentication

Bearer token check for the admin trigger endpoints. Student authentication
is handled by the main application, not by this service.
"""
import logging
import os
import secrets
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

load_dotenv()

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)

ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "dev_admin_token")


def _unauthorized(code: str, message: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": details
            }
        },
        headers={"WWW-Authenticate": "Bearer"}
    )


async def verify_token(credentials: Optional[HTTPAuthorizationCredentials]) -> bool:
    """
    Verify bearer token.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        True if valid, raises HTTPException otherwise
    """
    if credentials is None:
        raise _unauthorized(
            "AUTH_001",
            "Authorization header missing",
            "Please provide a valid bearer token",
        )

    if not secrets.compare_digest(credentials.credentials, ADMIN_API_TOKEN):
        logger.warning("Invalid admin token attempt")
        raise _unauthorized(
            "AUTH_002",
            "Invalid or expired token",
            "The provided token is not valid",
        )

    return True


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """FastAPI dependency guarding admin endpoints."""
    await verify_token(credentials)
    return {"role": "admin"}
