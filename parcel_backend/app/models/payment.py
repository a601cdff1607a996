"""
Payment record model.

Append-only history of parcel payments.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base


class PaymentRecord(Base):
    __tablename__ = "payments"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    parcel_id = Column(Integer, nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(String(50), nullable=False)
    transaction_id = Column(String(255), nullable=False, index=True)
    paid_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<PaymentRecord(id={self.id}, parcel_id={self.parcel_id}, amount={self.amount})>"
