"""
Parcel database model.

The parcel is the aggregate root of the delivery workflow.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base
from parcel_backend.app.models.parcel_enums import (
    DeliveryStatus,
    PaymentStatus,
    CashoutStatus,
    ParcelType,
)


class Parcel(Base):
    """
    Parcel model.
    
    The assigned rider is referenced weakly: an id plus a name/email
    snapshot taken at assignment, with no foreign key. The snapshot is
    not refreshed when the rider record changes.
    """
    __tablename__ = "parcels"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_id = Column(String(64), unique=True, nullable=False, index=True)
    
    # Ownership
    created_by = Column(String(255), nullable=False, index=True)
    
    # Contents
    title = Column(String(255), nullable=False)
    parcel_type = Column(Enum(ParcelType), default=ParcelType.DOCUMENT, nullable=False)
    weight_kg = Column(Float, nullable=True)
    instructions = Column(String(1000), nullable=True)
    
    # Sender
    sender_name = Column(String(255), nullable=False)
    sender_contact = Column(String(50), nullable=False)
    sender_region = Column(String(100), nullable=False)
    sender_district = Column(String(100), nullable=False)
    sender_address = Column(String(500), nullable=False)
    
    # Receiver
    receiver_name = Column(String(255), nullable=False)
    receiver_contact = Column(String(50), nullable=False)
    receiver_region = Column(String(100), nullable=False)
    receiver_district = Column(String(100), nullable=False)
    receiver_address = Column(String(500), nullable=False)
    
    cost = Column(Float, nullable=False)
    
    # Status
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False, index=True)
    delivery_status = Column(Enum(DeliveryStatus), default=DeliveryStatus.PENDING, nullable=False, index=True)
    cashed_out_status = Column(Enum(CashoutStatus), default=CashoutStatus.NOT_CASHED_OUT, nullable=False)
    
    # Assigned rider snapshot
    assigned_rider_id = Column(Integer, nullable=True, index=True)
    assigned_rider_name = Column(String(255), nullable=True)
    assigned_rider_email = Column(String(255), nullable=True, index=True)
    rider_earning = Column(Float, nullable=True)
    
    # Timestamps
    creation_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    picked_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cashed_out_at = Column(DateTime(timezone=True), nullable=True)
    
    def __repr__(self):
        return f"<Parcel(id={self.id}, tracking_id='{self.tracking_id}', status='{self.delivery_status.value}')>"
