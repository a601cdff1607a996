"""
Rider status enumerations.
"""

import enum


class RiderStatus(str, enum.Enum):
    """
    Rider application status.
    
    PENDING applications are reviewed by an admin and become ACTIVE,
    CANCELLED or later DEACTIVATED. Only ACTIVE riders take parcels.
    """
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    DEACTIVATED = "deactivated"


class WorkStatus(str, enum.Enum):
    IDLE = "idle"
    IN_DELIVERY = "in_delivery"
