"""
Rider API Endpoints.

Rider applications, admin review, and the rider's own assignment views.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, status, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from parcel_backend.app.db.session import get_db
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.parcel_enums import (
    CashoutStatus,
    DELIVERED_STATES,
    OPEN_ASSIGNMENT_STATES,
)
from parcel_backend.app.models.rider import Rider
from parcel_backend.app.models.rider_enums import RiderStatus
from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.schemas.parcel import ParcelResponse
from parcel_backend.app.schemas.rider import (
    RiderApplication,
    RiderStatusUpdate,
    RiderResponse,
    RiderEarningsResponse,
)
from parcel_backend.app.core.guards import require_admin, require_role
from parcel_backend.app.core.dependencies import get_current_user, get_lifecycle_manager
from parcel_backend.app.core.exceptions import InsufficientPermissionsError
from parcel_backend.app.domain.lifecycle.earnings import calculate_rider_earning
from parcel_backend.app.domain.lifecycle.manager import ParcelLifecycleManager

router = APIRouter(prefix="/riders", tags=["Riders"])


async def _current_rider(current_user: dict, manager: ParcelLifecycleManager) -> Rider:
    rider = await manager.get_rider_by_email(current_user["email"])
    if not rider:
        raise InsufficientPermissionsError("No rider profile for this account")
    return rider


async def _list_riders(db: AsyncSession, rider_status: RiderStatus, district: Optional[str] = None) -> List[RiderResponse]:
    query = select(Rider).where(Rider.status == rider_status)
    if district:
        query = query.where(func.lower(Rider.district) == district.lower())
    result = await db.execute(query.order_by(Rider.created_at.desc(), Rider.id.desc()))
    return [RiderResponse.model_validate(r) for r in result.scalars().all()]


@router.post("", response_model=RiderResponse, status_code=status.HTTP_201_CREATED)
async def apply_as_rider(
    application: RiderApplication,
    current_user: dict = Depends(get_current_user),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """Submit a rider application for the caller. It starts pending."""
    rider = await manager.apply_rider(current_user["email"], application.model_dump())
    return RiderResponse.model_validate(rider)


@router.get("/pending", response_model=List[RiderResponse])
async def list_pending_riders(
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List rider applications awaiting review (Admin only)."""
    return await _list_riders(db, RiderStatus.PENDING)


@router.get("/active", response_model=List[RiderResponse])
async def list_active_riders(
    district: Optional[str] = Query(None, description="Only riders working in this district"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List active riders, optionally by district (Admin only)."""
    return await _list_riders(db, RiderStatus.ACTIVE, district)


@router.get("/parcels", response_model=List[ParcelResponse])
async def list_my_open_parcels(
    current_user: dict = Depends(require_role([UserRole.RIDER])),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager),
    db: AsyncSession = Depends(get_db)
):
    """Parcels assigned to the calling rider that are not delivered yet."""
    rider = await _current_rider(current_user, manager)
    result = await db.execute(
        select(Parcel)
        .where(
            Parcel.assigned_rider_id == rider.id,
            Parcel.delivery_status.in_(OPEN_ASSIGNMENT_STATES),
        )
        .order_by(Parcel.assigned_at.asc(), Parcel.id.asc())
    )
    return [ParcelResponse.model_validate(p) for p in result.scalars().all()]


@router.get("/parcels/completed", response_model=List[ParcelResponse])
async def list_my_completed_parcels(
    current_user: dict = Depends(require_role([UserRole.RIDER])),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager),
    db: AsyncSession = Depends(get_db)
):
    """Parcels the calling rider has delivered, newest first."""
    rider = await _current_rider(current_user, manager)
    result = await db.execute(
        select(Parcel)
        .where(
            Parcel.assigned_rider_id == rider.id,
            Parcel.delivery_status.in_(DELIVERED_STATES),
        )
        .order_by(Parcel.delivered_at.desc(), Parcel.id.desc())
    )
    return [ParcelResponse.model_validate(p) for p in result.scalars().all()]


@router.get("/earnings", response_model=RiderEarningsResponse)
async def get_my_earnings(
    current_user: dict = Depends(require_role([UserRole.RIDER])),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager),
    db: AsyncSession = Depends(get_db)
):
    """Cash-out summary for the calling rider."""
    rider = await _current_rider(current_user, manager)

    cashed_out = await db.scalar(
        select(func.count(Parcel.id)).where(
            Parcel.assigned_rider_id == rider.id,
            Parcel.cashed_out_status == CashoutStatus.CASHED_OUT,
        )
    )
    result = await db.execute(
        select(Parcel).where(
            Parcel.assigned_rider_id == rider.id,
            Parcel.delivery_status.in_(DELIVERED_STATES),
            Parcel.cashed_out_status == CashoutStatus.NOT_CASHED_OUT,
        )
    )
    pending = result.scalars().all()

    pending_amount = sum(
        calculate_rider_earning(p.cost, p.sender_district, p.receiver_district) for p in pending
    )

    return RiderEarningsResponse(
        rider_id=rider.id,
        total_earnings=rider.total_earnings,
        cashed_out_parcels=cashed_out or 0,
        pending_cashout_parcels=len(pending),
        pending_cashout_amount=pending_amount,
    )


@router.patch("/{rider_id}", response_model=RiderResponse)
async def update_rider_status(
    rider_id: int = Path(..., description="Rider ID"),
    status_data: RiderStatusUpdate = ...,
    current_user: dict = Depends(require_admin),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Approve, cancel or deactivate a rider (Admin only).

    Approving a rider also gives the matching user account the rider role.
    """
    rider = await manager.set_rider_status(rider_id, status_data.status)
    return RiderResponse.model_validate(rider)
