"""
User API Endpoints.

Sign-in upsert, role lookup and admin role management.
"""

from typing import List
from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from parcel_backend.app.db.session import get_db
from parcel_backend.app.models.user import User
from parcel_backend.app.schemas.user import (
    UserUpsert,
    UserUpsertResponse,
    UserRoleUpdate,
    UserRoleResponse,
    UserResponse,
)
from parcel_backend.app.core.guards import require_admin, OwnershipGuard
from parcel_backend.app.core.dependencies import get_current_user, get_lifecycle_manager
from parcel_backend.app.core.exceptions import ResourceNotFoundError
from parcel_backend.app.domain.lifecycle.manager import ParcelLifecycleManager

router = APIRouter(prefix="/users", tags=["Users"])
ownership_guard = OwnershipGuard()


@router.post("", response_model=UserUpsertResponse, status_code=status.HTTP_201_CREATED)
async def register_or_touch_user(
    user_data: UserUpsert,
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Register a user on first sign-in, otherwise record the login time.
    
    Returns 201 for a new user and 200 when the user already existed.
    """
    user, inserted = await manager.register_or_touch(
        user_data.email,
        user_data.model_dump(exclude={"email"}, exclude_unset=True)
    )
    
    if not inserted:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=UserUpsertResponse(message="User already exists", inserted=False, user_id=user.id).model_dump()
        )
    
    return UserUpsertResponse(message="User created", inserted=True, user_id=user.id)


@router.get("/search", response_model=List[UserResponse])
async def search_users(
    email: str = Query(..., min_length=1, description="Case-insensitive email fragment"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Search users by email fragment (Admin only)."""
    result = await db.execute(
        select(User)
        .where(User.email.icontains(email, autoescape=True))
        .order_by(User.created_at.desc())
        .limit(10)
    )
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.get("/{email}/role", response_model=UserRoleResponse)
async def get_user_role(
    email: str = Path(..., description="User email"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a user's role. Non-admins may only look up themselves."""
    ownership_guard.enforce(email, current_user, "user")
    
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    
    if not user:
        raise ResourceNotFoundError("User", email)
    
    return UserRoleResponse(email=user.email, role=user.role)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: int = Path(..., description="User ID"),
    role_data: UserRoleUpdate = ...,
    current_user: dict = Depends(require_admin),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """Change a user's role (Admin only)."""
    user = await manager.set_user_role(user_id, role_data.role.value)
    return UserResponse.model_validate(user)
