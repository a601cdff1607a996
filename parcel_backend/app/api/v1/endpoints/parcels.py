"""
Parcel API Endpoints.

Parcel creation and lookup for senders, plus the delivery transitions:
assignment (admin), status advance and cash-out (assigned rider or admin).
"""

from typing import Optional
from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from parcel_backend.app.db.session import get_db
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.parcel_enums import DeliveryStatus, PaymentStatus
from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.schemas.parcel import (
    ParcelCreate,
    ParcelAssign,
    ParcelStatusUpdate,
    ParcelResponse,
    ParcelListResponse,
)
from parcel_backend.app.core.guards import require_admin, require_role, OwnershipGuard
from parcel_backend.app.core.dependencies import get_current_user, get_lifecycle_manager
from parcel_backend.app.domain.lifecycle.manager import ParcelLifecycleManager

router = APIRouter(prefix="/parcels", tags=["Parcels"])
ownership_guard = OwnershipGuard()


async def _list_parcels(
    db: AsyncSession,
    owner_email: Optional[str],
    payment_status: Optional[PaymentStatus],
    delivery_status: Optional[DeliveryStatus],
    page: int,
    page_size: int,
) -> ParcelListResponse:
    filters = []
    if owner_email:
        filters.append(Parcel.created_by == owner_email)
    if payment_status:
        filters.append(Parcel.payment_status == payment_status)
    if delivery_status:
        filters.append(Parcel.delivery_status == delivery_status)

    total = await db.scalar(select(func.count(Parcel.id)).where(*filters))

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Parcel)
        .where(*filters)
        .order_by(Parcel.creation_date.desc(), Parcel.id.desc())
        .offset(offset)
        .limit(page_size)
    )
    parcels = result.scalars().all()

    return ParcelListResponse(
        parcels=[ParcelResponse.model_validate(p) for p in parcels],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("", response_model=ParcelListResponse)
async def list_parcels(
    email: Optional[str] = Query(None, description="Filter by creator email"),
    payment_status: Optional[PaymentStatus] = Query(None),
    delivery_status: Optional[DeliveryStatus] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List parcels, newest first.

    Admins may list everything or filter by any email; everyone else only
    sees the parcels they created.
    """
    owner_email = ownership_guard.filter_by_ownership(email, current_user)
    return await _list_parcels(db, owner_email, payment_status, delivery_status, page, page_size)


@router.post("", response_model=ParcelResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_data: ParcelCreate,
    current_user: dict = Depends(get_current_user),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """Create a parcel owned by the caller. It starts unpaid and pending."""
    parcel = await manager.create_parcel(current_user["email"], parcel_data.model_dump())
    return ParcelResponse.model_validate(parcel)


@router.get("/user/{email}", response_model=ParcelListResponse)
async def list_user_parcels(
    email: str = Path(..., description="Creator email"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List one user's parcels. Non-admins may only list their own."""
    owner_email = ownership_guard.filter_by_ownership(email, current_user)
    return await _list_parcels(db, owner_email, None, None, page, page_size)


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(get_current_user),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """Get a parcel. Visible to its creator, its assigned rider and admins."""
    parcel = await manager.get_parcel(parcel_id)
    ownership_guard.enforce_any([parcel.created_by, parcel.assigned_rider_email], current_user, "parcel")
    return ParcelResponse.model_validate(parcel)


@router.delete("/{parcel_id}")
async def delete_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(get_current_user),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """Delete an unpaid, unassigned parcel (creator or admin)."""
    parcel = await manager.get_parcel(parcel_id)
    ownership_guard.enforce(parcel.created_by, current_user, "parcel")

    await manager.delete_parcel(parcel_id)

    return {"message": "Parcel deleted successfully", "deleted_count": 1}


@router.patch("/{parcel_id}/assign", response_model=ParcelResponse)
async def assign_rider(
    parcel_id: int = Path(..., description="Parcel ID"),
    assignment: ParcelAssign = ...,
    current_user: dict = Depends(require_admin),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Assign an active rider to a pending parcel (Admin only).

    Validates:
    - Parcel and rider exist
    - Rider is active
    - Parcel is still pending
    """
    parcel = await manager.assign(parcel_id, assignment.rider_id, current_user["email"])
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/status", response_model=ParcelResponse)
async def update_delivery_status(
    parcel_id: int = Path(..., description="Parcel ID"),
    status_data: ParcelStatusUpdate = ...,
    current_user: dict = Depends(require_role([UserRole.RIDER, UserRole.ADMIN])),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """Mark a parcel in transit or delivered (assigned rider or admin)."""
    parcel = await manager.get_parcel(parcel_id)
    ownership_guard.enforce(parcel.assigned_rider_email, current_user, "parcel")

    parcel = await manager.advance(parcel_id, status_data.status, current_user["email"], status_data.location)
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/cashout", response_model=ParcelResponse)
async def cash_out_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(require_role([UserRole.RIDER, UserRole.ADMIN])),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """Cash out the rider's earning for a delivered parcel (assigned rider or admin)."""
    parcel = await manager.get_parcel(parcel_id)
    ownership_guard.enforce(parcel.assigned_rider_email, current_user, "parcel")

    parcel = await manager.cash_out(parcel_id)
    return ParcelResponse.model_validate(parcel)
