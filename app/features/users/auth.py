"""
Authentication utilities for bearer JWT issuing and verification.
"""
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import HTTPException, status

from app.core import config


def create_access_token(user_id: str, expires_minutes: int | None = None) -> str:
    """
    Sign a bearer token for ``user_id``.

    Args:
        user_id: ULID of the user the token identifies
        expires_minutes: Lifetime override, defaults to ``JWT_EXPIRES_MINUTES``
    """
    lifetime = expires_minutes if expires_minutes is not None else config.JWT_EXPIRES_MINUTES
    payload = {
        "id": user_id,
        "exp": datetime.now(tz=UTC) + timedelta(minutes=lifetime),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_jwt_token(token: str) -> dict:
    """
    Verify a bearer JWT and return its payload.
    
    Args:
        token: JWT token from Authorization header
        
    Returns:
        Decoded JWT payload containing the user id
        
    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )
