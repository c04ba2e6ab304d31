"""
Authentication utilities for password hashing and JWT token management.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from passlib.context import CryptContext
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .config import settings

# Prefer bcrypt_sha256 (avoids 72-byte limit), but also accept legacy bcrypt hashes
pwd_context = CryptContext(schemes=["bcrypt_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except JWTError:
        raise _credentials_exception()


def get_user_id_from_token(token: str) -> uuid.UUID:
    """Extract user ID from JWT token."""
    payload = verify_token(token)
    user_id_str = payload.get("sub")
    if not user_id_str:
        raise _credentials_exception()
    try:
        return uuid.UUID(user_id_str)
    except ValueError:
        raise _credentials_exception("Invalid user id in token")


def create_token_response(user_id: uuid.UUID) -> Dict[str, Any]:
    expires_minutes = settings.access_token_expire_minutes
    access_token = create_access_token(
        data={"sub": str(user_id)},
        expires_delta=timedelta(minutes=expires_minutes),
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": expires_minutes * 60,
    }


auth_scheme = HTTPBearer(auto_error=False)


def get_current_user_id(
    authorization: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
) -> uuid.UUID:
    """Authentication dependency resolving the caller's user id (the entry owner)."""
    if authorization is None:
        raise _credentials_exception("Authorization token is missing")
    return get_user_id_from_token(authorization.credentials)
