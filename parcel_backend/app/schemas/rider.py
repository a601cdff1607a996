"""
Rider Pydantic schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional
from parcel_backend.app.models.rider_enums import RiderStatus, WorkStatus


class RiderApplication(BaseModel):
    """Schema for POST /riders. The rider's email is the caller's."""
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=50)
    age: Optional[int] = Field(None, ge=18, le=100)
    region: str = Field(..., min_length=1, max_length=100)
    district: str = Field(..., min_length=1, max_length=100)
    national_id: Optional[str] = Field(None, max_length=100)
    bike_brand: Optional[str] = Field(None, max_length=100)
    bike_registration: Optional[str] = Field(None, max_length=100)


class RiderStatusUpdate(BaseModel):
    """Kept as a plain string so unsupported values are reported as invalid statuses."""
    status: str = Field(..., min_length=1)


class RiderResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    age: Optional[int]
    region: str
    district: str
    national_id: Optional[str]
    bike_brand: Optional[str]
    bike_registration: Optional[str]
    status: RiderStatus
    work_status: WorkStatus
    total_earnings: float
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class RiderEarningsResponse(BaseModel):
    """Cash-out summary for the calling rider."""
    rider_id: int
    total_earnings: float
    cashed_out_parcels: int
    pending_cashout_parcels: int
    pending_cashout_amount: float
