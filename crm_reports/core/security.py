"""Security utilities for handling the auth provider's JWT tokens."""

import logging
from typing import Optional
from datetime import datetime, timedelta, timezone
import jwt
from .config import settings
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from crm_reports.core.database import aget_db
from crm_reports.schemas.reportSchema import Principal
from crm_reports.services.IdentityResolver import resolve_principal

logger = logging.getLogger(__name__)


def create_jwt_token(data: dict, expires_delta: timedelta = timedelta(hours=1)):
    """
    Creates a JWT (JSON Web Token) with the provided data and expiration time.

    Args:
        data (dict): The payload data to be encoded in the JWT.
        expires_delta (timedelta, optional): The time until the token expires.
            Defaults to 1 hour.

    Returns:
        str: The encoded JWT string.

    Example:
        >>> data = {"email": "teacher@example.com", "user_metadata": {"role": "Teacher"}}
        >>> token = create_jwt_token(data)
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_jwt_token(token: str):
    """Decodes and validates a JWT token.

    Args:
        token (str): The JWT token string to decode.

    Returns:
        dict: The decoded token payload containing the claims.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or improperly formatted.
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_aud": False}
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"JWT decode error: {str(e)}")
        raise


def extract_token(request: Request) -> Optional[str]:
    """Read the session token from the Authorization header or the auth cookie."""
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


def role_hint_from_claims(claims: dict) -> Optional[str]:
    """Role hint the auth provider stores in the token metadata."""
    for key in ("user_metadata", "app_metadata"):
        metadata = claims.get(key) or {}
        if isinstance(metadata, dict) and metadata.get("role"):
            return str(metadata["role"])
    return None


async def get_current_principal(
    request: Request,
    db: AsyncSession = Depends(aget_db)
) -> Principal:
    """Dependency resolving the current principal once per request."""
    return await principal_from_request(request, db)


async def principal_from_request(request: Request, db: AsyncSession) -> Principal:
    """
    No session resolves to an anonymous principal with an empty email;
    a token that fails verification raises 401.
    """
    token = extract_token(request)

    if not token:
        return await resolve_principal(db, "", None)

    try:
        claims = decode_jwt_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token"
        )

    email = claims.get("email") or ""
    return await resolve_principal(db, email, role_hint_from_claims(claims))
