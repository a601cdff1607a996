"""
Tracking event Pydantic schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class TrackingEventCreate(BaseModel):
    tracking_id: str = Field(..., min_length=1, max_length=64)
    parcel_id: int
    status: str = Field(..., min_length=1, max_length=50)
    message: str = Field(..., min_length=1, max_length=1000)
    location: Optional[str] = Field(None, max_length=255)


class TrackingEventResponse(BaseModel):
    id: int
    tracking_id: str
    parcel_id: int
    status: str
    message: str
    location: Optional[str]
    updated_by: str
    timestamp: datetime
    
    model_config = ConfigDict(from_attributes=True)
