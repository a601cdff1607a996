"""
Authentication dependencies for FastAPI.

Resolves the bearer token into the caller's email and the role recorded
for that email in the users table.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from parcel_backend.app.core.exceptions import AuthenticationError
from parcel_backend.app.core.jwt import verify_identity
from parcel_backend.app.core.token_revocation import get_redis, is_token_revoked
from parcel_backend.app.db.session import get_db
from parcel_backend.app.domain.lifecycle.manager import ParcelLifecycleManager
from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.models.user import User

# HTTP Bearer security scheme; missing headers are reported as 401 by us
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
) -> dict:
    """
    FastAPI dependency for bearer authentication.
    
    Checks:
    1. A bearer token is present
    2. Token signature, expiry and email claim are valid
    3. Token has not been revoked (logout)
    4. Role is looked up from the users table; callers without a
       user record act with the default USER role
        
    Returns:
        {"email", "role", "user_id", "token"} for the caller
        
    Raises:
        AuthenticationError: 401 if authentication fails for any reason
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")
    
    token = credentials.credentials
    identity = verify_identity(token)
    
    if await is_token_revoked(redis, token):
        raise AuthenticationError("Token has been revoked")
    
    result = await db.execute(select(User).where(User.email == identity.email))
    user = result.scalar_one_or_none()
    
    role = user.role if user else UserRole.USER
    
    return {
        "email": identity.email,
        "role": role.value,
        "user_id": user.id if user else None,
        "token": token,
    }


def get_lifecycle_manager(db: AsyncSession = Depends(get_db)) -> ParcelLifecycleManager:
    """Lifecycle manager bound to the request's session."""
    return ParcelLifecycleManager(db)
