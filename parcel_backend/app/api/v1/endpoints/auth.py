"""
Authentication API endpoints.

Tokens are issued by the identity provider; this service only revokes them.
"""

from fastapi import APIRouter, Depends
from parcel_backend.app.core.dependencies import get_current_user
from parcel_backend.app.core.token_revocation import get_redis, revoke_token

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/logout")
async def logout(
    current_user: dict = Depends(get_current_user),
    redis=Depends(get_redis)
):
    """Revoke the bearer token used for this request."""
    revoked = await revoke_token(redis, current_user["token"], current_user["email"])
    return {"message": "Logged out" if revoked else "Logout could not be recorded", "revoked": revoked}


@router.get("/me")
async def me(current_user: dict = Depends(get_current_user)):
    """Return the authenticated identity and its role."""
    return {
        "email": current_user["email"],
        "role": current_user["role"],
        "user_id": current_user["user_id"],
    }
