"""
Tracking API Endpoints.

Read and append the per-parcel tracking log. Entries are never edited.
"""

from typing import List
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from parcel_backend.app.db.session import get_db
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.tracking_event import TrackingEvent
from parcel_backend.app.schemas.tracking import TrackingEventCreate, TrackingEventResponse
from parcel_backend.app.core.guards import OwnershipGuard, is_admin
from parcel_backend.app.core.dependencies import get_current_user, get_lifecycle_manager
from parcel_backend.app.core.exceptions import InvalidInputError, ResourceNotFoundError
from parcel_backend.app.domain.lifecycle.manager import ParcelLifecycleManager

router = APIRouter(prefix="/trackings", tags=["Tracking"])
ownership_guard = OwnershipGuard()


@router.get("", response_model=List[TrackingEventResponse])
async def get_tracking_history(
    tracking_id: str = Query(..., min_length=1, description="Parcel tracking ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Tracking history of a parcel, oldest first."""
    result = await db.execute(select(Parcel).where(Parcel.tracking_id == tracking_id))
    parcel = result.scalar_one_or_none()
    
    if parcel is not None:
        ownership_guard.enforce_any([parcel.created_by, parcel.assigned_rider_email], current_user, "parcel")
    elif not is_admin(current_user):
        # Deleted parcels keep their history, visible to admins only
        raise ResourceNotFoundError("Tracking ID", tracking_id)
    
    events = await db.execute(
        select(TrackingEvent)
        .where(TrackingEvent.tracking_id == tracking_id)
        .order_by(TrackingEvent.timestamp.asc(), TrackingEvent.id.asc())
    )
    rows = events.scalars().all()
    
    if not rows:
        raise ResourceNotFoundError("Tracking ID", tracking_id)
    
    return [TrackingEventResponse.model_validate(e) for e in rows]


@router.post("", response_model=TrackingEventResponse, status_code=status.HTTP_201_CREATED)
async def add_tracking_event(
    event_data: TrackingEventCreate,
    current_user: dict = Depends(get_current_user),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Append a tracking entry (parcel creator, assigned rider or admin).
    
    The tracking ID must belong to the referenced parcel.
    """
    parcel = await manager.get_parcel(event_data.parcel_id)
    ownership_guard.enforce_any([parcel.created_by, parcel.assigned_rider_email], current_user, "parcel")
    
    if parcel.tracking_id != event_data.tracking_id:
        raise InvalidInputError(
            "Tracking ID does not match the parcel",
            details={"parcel_id": parcel.id, "tracking_id": event_data.tracking_id}
        )
    
    event = await manager.log_tracking_event(
        parcel,
        event_data.status,
        event_data.message,
        current_user["email"],
        event_data.location
    )
    return TrackingEventResponse.model_validate(event)
