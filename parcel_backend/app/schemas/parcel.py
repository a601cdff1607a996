"""
Parcel Pydantic schemas.

Defines request and response models for parcel management.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List
from parcel_backend.app.models.parcel_enums import (
    DeliveryStatus,
    PaymentStatus,
    CashoutStatus,
    ParcelType,
)


class ParcelCreate(BaseModel):
    """Schema for creating a new parcel."""
    tracking_id: Optional[str] = Field(None, min_length=1, max_length=64, description="Generated when omitted")
    title: str = Field(..., min_length=1, max_length=255)
    parcel_type: ParcelType = Field(default=ParcelType.DOCUMENT)
    weight_kg: Optional[float] = Field(None, gt=0, description="Weight in kilograms")
    instructions: Optional[str] = Field(None, max_length=1000)
    
    sender_name: str = Field(..., min_length=1, max_length=255)
    sender_contact: str = Field(..., min_length=1, max_length=50)
    sender_region: str = Field(..., min_length=1, max_length=100)
    sender_district: str = Field(..., min_length=1, max_length=100)
    sender_address: str = Field(..., min_length=1, max_length=500)
    
    receiver_name: str = Field(..., min_length=1, max_length=255)
    receiver_contact: str = Field(..., min_length=1, max_length=50)
    receiver_region: str = Field(..., min_length=1, max_length=100)
    receiver_district: str = Field(..., min_length=1, max_length=100)
    receiver_address: str = Field(..., min_length=1, max_length=500)
    
    cost: float = Field(..., gt=0, description="Delivery cost")


class ParcelAssign(BaseModel):
    """Schema for assigning a rider to a parcel."""
    rider_id: int


class ParcelStatusUpdate(BaseModel):
    """
    Schema for advancing a parcel.
    
    Kept as a plain string so unsupported values reach the state machine
    and are reported as invalid transitions.
    """
    status: str = Field(..., min_length=1)
    location: Optional[str] = Field(None, max_length=255)


class ParcelResponse(BaseModel):
    """Schema for parcel response."""
    id: int
    tracking_id: str
    created_by: str
    title: str
    parcel_type: ParcelType
    weight_kg: Optional[float]
    instructions: Optional[str]
    sender_name: str
    sender_contact: str
    sender_region: str
    sender_district: str
    sender_address: str
    receiver_name: str
    receiver_contact: str
    receiver_region: str
    receiver_district: str
    receiver_address: str
    cost: float
    payment_status: PaymentStatus
    delivery_status: DeliveryStatus
    cashed_out_status: CashoutStatus
    assigned_rider_id: Optional[int]
    assigned_rider_name: Optional[str]
    assigned_rider_email: Optional[str]
    rider_earning: Optional[float]
    creation_date: datetime
    assigned_at: Optional[datetime]
    picked_at: Optional[datetime]
    delivered_at: Optional[datetime]
    cashed_out_at: Optional[datetime]
    
    model_config = ConfigDict(from_attributes=True)


class ParcelListResponse(BaseModel):
    """Schema for paginated parcel list."""
    parcels: List[ParcelResponse]
    total: int
    page: int
    page_size: int
