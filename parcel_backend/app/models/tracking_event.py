"""
Tracking event model.

Append-only log of parcel status changes. Rows are never updated or deleted.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base


class TrackingEvent(Base):
    __tablename__ = "tracking_events"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Parcel reference (no FK: history outlives the parcel)
    tracking_id = Column(String(64), nullable=False, index=True)
    parcel_id = Column(Integer, nullable=False, index=True)
    
    status = Column(String(50), nullable=False)
    message = Column(String(1000), nullable=False)
    location = Column(String(255), nullable=True)
    updated_by = Column(String(255), nullable=False)
    
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<TrackingEvent(id={self.id}, tracking_id='{self.tracking_id}', status='{self.status}')>"
