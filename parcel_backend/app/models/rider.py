"""
Rider database model.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base
from parcel_backend.app.models.rider_enums import RiderStatus, WorkStatus


class Rider(Base):
    """
    Rider (courier) model.
    
    total_earnings only ever grows, and only through parcel cash-out.
    """
    __tablename__ = "riders"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Applicant details
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=False)
    age = Column(Integer, nullable=True)
    region = Column(String(100), nullable=False)
    district = Column(String(100), nullable=False, index=True)
    national_id = Column(String(100), nullable=True)
    bike_brand = Column(String(100), nullable=True)
    bike_registration = Column(String(100), nullable=True)
    
    # Status
    status = Column(Enum(RiderStatus), default=RiderStatus.PENDING, nullable=False, index=True)
    work_status = Column(Enum(WorkStatus), default=WorkStatus.IDLE, nullable=False)
    total_earnings = Column(Float, default=0, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Rider(id={self.id}, email='{self.email}', status='{self.status.value}')>"
