"""
JWT token utilities for authentication.

Bearer tokens carry the caller's email in `email` (or `sub`). With the
default HS256 setting they are signed with the shared `secret_key`; an
external identity provider such as Firebase signs with RS256 instead, and
is verified against `jwt_public_key`, optionally pinning `jwt_audience` and
`jwt_issuer`. Only one PEM key is configured; rotating provider key sets
are not fetched. `create_access_token` signs with the shared secret and is
meant for tooling and tests.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from parcel_backend.app.core.config import settings
from parcel_backend.app.core.exceptions import AuthenticationError


@dataclass(frozen=True)
class Identity:
    """Verified caller identity."""
    email: str
    claims: Dict[str, Any] = field(default_factory=dict)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.
    
    Args:
        data: Data payload to encode in the token (should include: sub or email)
        expires_delta: Optional custom expiration time
        
    Returns:
        Encoded JWT token string
        
    Example payload:
        {
            "sub": "rider@example.com",
            "email": "rider@example.com",
            "exp": 1234567890
        }
    """
    to_encode = data.copy()
    
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    
    return encoded_jwt


def _verification_key() -> str:
    if settings.algorithm.startswith(("RS", "ES", "PS")):
        return settings.jwt_public_key
    return settings.secret_key


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.
    
    Args:
        token: JWT token string to decode
        
    Returns:
        Decoded token payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            _verification_key(),
            algorithms=[settings.algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
        return payload
    except JWTError:
        return None


def verify_identity(token: str) -> Identity:
    """
    Verify a bearer token and resolve the caller's email.
    
    Raises:
        AuthenticationError: if the token is invalid, expired or carries no email
    """
    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")
    
    email = payload.get("email") or payload.get("sub")
    if not email or "@" not in email:
        raise AuthenticationError("Invalid token payload")
    
    return Identity(email=email.lower(), claims=payload)
