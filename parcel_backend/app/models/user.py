"""
User database model.

Users are keyed by email; the identity provider owns credentials.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base
from parcel_backend.app.models.enums import UserRole


class User(Base):
    """
    User model.
    
    Role changes only through an admin or the rider-activation side effect.
    """
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    photo_url = Column(String(1024), nullable=True)
    
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_log_in = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
