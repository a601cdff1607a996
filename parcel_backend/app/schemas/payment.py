"""
Payment Pydantic schemas.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from datetime import datetime


class PaymentCreate(BaseModel):
    """Schema for POST /payments, sent after the card payment succeeds."""
    parcel_id: int
    email: EmailStr
    amount: float = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1, max_length=50)
    transaction_id: str = Field(..., min_length=1, max_length=255)
    
    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class PaymentResponse(BaseModel):
    id: int
    parcel_id: int
    email: str
    amount: float
    payment_method: str
    transaction_id: str
    paid_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class PaymentIntentRequest(BaseModel):
    """Amount in the currency's minor unit (cents)."""
    amount: int = Field(..., gt=0)


class PaymentIntentResponse(BaseModel):
    client_secret: str = Field(..., serialization_alias="clientSecret")
